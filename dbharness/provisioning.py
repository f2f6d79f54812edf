"""One-time provisioning of the shared test database.

Provisioning connects with privileged parameters and brings the test
database to a clean, existing state. How that is done depends on the dialect
family, so each ``DialectVariant`` has a strategy implementing three steps run
in order: ``reset``, ``ensure_absent``, ``ensure_present``.

No locking is done around the initialization flag; provisioning assumes a
single-threaded test process.
"""

import logging
import os
from abc import ABC
from typing import Any, Callable, Dict, Mapping, Type

from dbharness.config.models import ConnectionParameters
from dbharness.config.resolver import get_privileged_connection_params, get_test_connection_params
from dbharness.db.connection import DriverManager, TestConnection
from dbharness.db.platforms import DialectVariant
from dbharness.exceptions import DatabaseObjectNotFoundError

logger = logging.getLogger(__name__)

ConnectionOpener = Callable[[ConnectionParameters], TestConnection]


class ProvisioningStrategy(ABC):
    """Per-dialect steps converging on "the test database exists and is empty".

    Every step defaults to doing nothing.
    """

    def __init__(self, open_connection: ConnectionOpener) -> None:
        self.open_connection = open_connection

    def reset(self, privileged: TestConnection, test_params: ConnectionParameters) -> None:
        """Empty the test database in place."""

    def ensure_absent(self, privileged: TestConnection, test_params: ConnectionParameters) -> None:
        """Remove the test database if it exists."""

    def ensure_present(self, privileged: TestConnection, test_params: ConnectionParameters) -> None:
        """Create the test database."""

    def provision(self, privileged: TestConnection, test_params: ConnectionParameters) -> None:
        self.reset(privileged, test_params)
        self.ensure_absent(privileged, test_params)
        self.ensure_present(privileged, test_params)


class SQLiteStrategy(ProvisioningStrategy):
    """Deletes the database file; a missing file is the clean state."""

    def ensure_absent(self, privileged: TestConnection, test_params: ConnectionParameters) -> None:
        path = test_params.get("path")
        if path and os.path.exists(path):
            os.unlink(path)
            logger.info("Removed SQLite database file %s", path)


class DB2Strategy(ProvisioningStrategy):
    """Drops every object of the test schema instead of recreating the database."""

    def reset(self, privileged: TestConnection, test_params: ConnectionParameters) -> None:
        test_connection = self.open_connection(test_params)
        try:
            schema_manager = test_connection.create_schema_manager()
            schema = schema_manager.introspect_schema()
            schema_manager.drop_schema_objects(schema)
        finally:
            test_connection.close()


class GenericStrategy(ProvisioningStrategy):
    """Drops the test database if present, then creates it."""

    def database_name(self, test_params: ConnectionParameters) -> Any:
        return test_params.get("dbname")

    def ensure_absent(self, privileged: TestConnection, test_params: ConnectionParameters) -> None:
        dbname = self.database_name(test_params)
        try:
            privileged.create_schema_manager().drop_database(dbname)
        except DatabaseObjectNotFoundError:
            logger.debug("Test database %s did not exist", dbname)

    def ensure_present(self, privileged: TestConnection, test_params: ConnectionParameters) -> None:
        privileged.create_schema_manager().create_database(self.database_name(test_params))


class OracleStrategy(GenericStrategy):
    """On Oracle the test "database" is the schema owned by the test user."""

    def database_name(self, test_params: ConnectionParameters) -> Any:
        return test_params.get("user")

    def ensure_present(self, privileged: TestConnection, test_params: ConnectionParameters) -> None:
        password = test_params.get("password")
        if password is None:
            password = privileged.params.get("password")
        privileged.create_schema_manager().create_database(self.database_name(test_params), password)


class TestDatabaseProvisioner:
    """Provisions the test database at most once per instance.

    ``initialized`` becomes True only after the whole sequence, including
    closing the privileged connection, has completed. A failed attempt leaves
    it False so the next call retries from the start.
    """

    __test__ = False

    _strategies: Dict[DialectVariant, Type[ProvisioningStrategy]] = {
        DialectVariant.GENERIC: GenericStrategy,
        DialectVariant.SQLITE: SQLiteStrategy,
        DialectVariant.DB2: DB2Strategy,
        DialectVariant.ORACLE: OracleStrategy,
    }

    def __init__(self, open_connection: ConnectionOpener = DriverManager.get_connection) -> None:
        self.open_connection = open_connection
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @classmethod
    def register_strategy(cls, variant: DialectVariant, strategy_class: Type[ProvisioningStrategy]) -> None:
        cls._strategies[variant] = strategy_class

    @classmethod
    def get_strategy_class(cls, variant: DialectVariant) -> Type[ProvisioningStrategy]:
        return cls._strategies.get(variant, GenericStrategy)

    def ensure_initialized(self, source: Mapping[str, Any]) -> bool:
        """Provision unless already done.

        Returns:
            True if this call ran provisioning.
        """
        if self._initialized:
            return False

        self.initialize_database(source)
        self._initialized = True
        return True

    def initialize_database(self, source: Mapping[str, Any]) -> None:
        """Run the provisioning sequence unconditionally.

        Raises:
            DatabaseError: Any failure other than a missing database on drop.
        """
        test_params = get_test_connection_params(source)
        privileged_params = get_privileged_connection_params(source)

        privileged = self.open_connection(privileged_params)
        try:
            variant = privileged.dialect_variant
            strategy = self.get_strategy_class(variant)(self.open_connection)
            logger.info("Provisioning test database with %s (%s)", type(strategy).__name__, variant.value)
            strategy.provision(privileged, test_params)
        finally:
            privileged.close()
