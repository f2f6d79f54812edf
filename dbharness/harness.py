"""Entry point for test code that needs a database connection."""

import logging
from typing import Any, Dict, Mapping, Optional

from dbharness.config.models import ConnectionParameters
from dbharness.config.parser import load_source
from dbharness.config.resolver import (
    get_connection_params,
    get_privileged_connection_params,
    has_required_params,
    is_driver_one_of,
)
from dbharness.db.connection import DriverManager, TestConnection
from dbharness.events import add_event_subscribers
from dbharness.provisioning import ConnectionOpener, TestDatabaseProvisioner

logger = logging.getLogger(__name__)


class TestHarness:
    """Hands out test connections for a configuration source.

    When the source configures a driver (``db_driver``), the first call to
    ``get_connection`` provisions the test database. Without a driver every
    connection is an in-memory SQLite database.
    """

    __test__ = False

    def __init__(
        self,
        source: Mapping[str, Any],
        open_connection: ConnectionOpener = DriverManager.get_connection,
        provisioner: Optional[TestDatabaseProvisioner] = None,
    ) -> None:
        """Initialize the harness.

        Args:
            source: Flat configuration source.
            open_connection: Callable turning parameters into a TestConnection.
            provisioner: Provisioner owning the initialization flag.
        """
        self.source: Dict[str, Any] = dict(source)
        self.open_connection = open_connection
        self.provisioner = provisioner or TestDatabaseProvisioner(open_connection)

    def has_required_params(self) -> bool:
        return has_required_params(self.source)

    def get_connection(self) -> TestConnection:
        """Create a test connection, provisioning the database on first use.

        Raises:
            MissingExtensionError: If the fallback SQLite driver is unavailable.
            InvalidSubscriberError: If a configured event subscriber is invalid.
            DatabaseError: If provisioning or engine creation fails.
        """
        if self.has_required_params() and not self.provisioner.initialized:
            self.provisioner.ensure_initialized(self.source)

        params = self.get_connection_params()
        connection = self.open_connection(params)

        subscribers = params.subscriber_names()
        if subscribers:
            try:
                add_event_subscribers(connection, subscribers)
            except Exception:
                connection.close()
                raise

        return connection

    def get_connection_params(self) -> ConnectionParameters:
        return get_connection_params(self.source)

    def get_privileged_connection(self) -> TestConnection:
        return self.open_connection(get_privileged_connection_params(self.source))

    def is_driver_one_of(self, *names: str) -> bool:
        return is_driver_one_of(self.source, *names)


# Global harness instance
_harness: Optional[TestHarness] = None


def get_harness(config_path: Optional[str] = None) -> TestHarness:
    """Get the process-wide harness, creating it from the layered configuration.

    Args:
        config_path: YAML configuration file used on first creation.
    """
    global _harness

    if _harness is None:
        _harness = TestHarness(load_source(config_path))
        logger.debug("Created default test harness")

    return _harness


def set_harness(harness: Optional[TestHarness]) -> None:
    """Replace the process-wide harness; None discards it."""
    global _harness
    _harness = harness
