"""Dialect platforms: quoting, literal rendering and database DDL per engine."""

import logging
import math
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from sqlalchemy.engine import Dialect
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError, NoSuchModuleError

from dbharness.exceptions import DialectOperationError, InvalidRowSetError

logger = logging.getLogger(__name__)


class DialectVariant(str, Enum):
    """Dialect families with distinct provisioning behaviour."""
    GENERIC = "generic"
    SQLITE = "sqlite"
    DB2 = "db2"
    ORACLE = "oracle"


class DatabasePlatform:
    """Generic SQL platform backed by a SQLAlchemy dialect.

    Identifier quoting is delegated to the dialect's identifier preparer; the
    rest is plain ANSI SQL that subclasses override where their engine differs.
    """

    variant = DialectVariant.GENERIC
    # Substrings of driver messages that mean "database does not exist" on drop.
    not_found_messages = ("does not exist", "doesn't exist")
    not_found_sqlstates = ("3D000",)

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect

    @property
    def name(self) -> str:
        return self.dialect.name

    def quote_identifier(self, identifier: str) -> str:
        """Quote an identifier, quoting each part of a dotted name separately."""
        preparer = self.dialect.identifier_preparer
        return ".".join(preparer.quote_identifier(part) for part in identifier.split("."))

    def quote_string_literal(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def render_literal(self, value: Any) -> str:
        """Render a non-textual value as SQL literal syntax."""
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            if self.dialect.supports_native_boolean:
                return "TRUE" if value else "FALSE"
            return "1" if value else "0"
        if isinstance(value, float):
            if not math.isfinite(value):
                raise InvalidRowSetError(f"Cannot render non-finite number {value!r} as SQL")
            return repr(value)
        if isinstance(value, Decimal):
            if not value.is_finite():
                raise InvalidRowSetError(f"Cannot render non-finite number {value!r} as SQL")
            return str(value)
        if isinstance(value, int):
            return str(value)
        return str(value)

    def get_dummy_select_sql(self, expression: str = "1") -> str:
        """Build a SELECT that returns ``expression`` without reading a table."""
        return f"SELECT {expression}"

    def get_create_database_sql(self, name: str, password: Optional[str] = None) -> List[str]:
        return [f"CREATE DATABASE {self.quote_identifier(name)}"]

    def get_drop_database_sql(self, name: str) -> List[str]:
        return [f"DROP DATABASE {self.quote_identifier(name)}"]

    def get_list_databases_sql(self) -> str:
        raise DialectOperationError(
            f"Listing databases is not supported on {self.name}",
            driver=self.name,
        )

    def is_object_not_found(self, error: BaseException) -> bool:
        """Whether a driver error raised by a drop means the object was absent."""
        orig = getattr(error, "orig", error)
        sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if sqlstate in self.not_found_sqlstates:
            return True
        message = str(orig).lower()
        return any(fragment in message for fragment in self.not_found_messages)


class SQLitePlatform(DatabasePlatform):
    """SQLite platform; a database is a file, so there is no create/drop SQL."""

    variant = DialectVariant.SQLITE

    def get_create_database_sql(self, name: str, password: Optional[str] = None) -> List[str]:
        raise DialectOperationError("SQLite databases are created by opening the file", driver=self.name)

    def get_drop_database_sql(self, name: str) -> List[str]:
        raise DialectOperationError("SQLite databases are dropped by deleting the file", driver=self.name)


class PostgreSQLPlatform(DatabasePlatform):
    """PostgreSQL platform."""

    def get_list_databases_sql(self) -> str:
        return "SELECT datname FROM pg_database WHERE datistemplate = false ORDER BY datname"


class MySQLPlatform(DatabasePlatform):
    """MySQL / MariaDB platform."""

    not_found_messages = ("database doesn't exist", "can't drop database")

    def quote_string_literal(self, value: str) -> str:
        # MySQL treats backslash as an escape character inside string literals.
        return super().quote_string_literal(value.replace("\\", "\\\\"))

    def get_list_databases_sql(self) -> str:
        return "SHOW DATABASES"

    def is_object_not_found(self, error: BaseException) -> bool:
        orig = getattr(error, "orig", error)
        args = getattr(orig, "args", ())
        if args and args[0] == 1008:
            return True
        return super().is_object_not_found(error)


class SQLServerPlatform(DatabasePlatform):
    """Microsoft SQL Server platform."""

    not_found_messages = ("does not exist", "(3701)")

    def get_list_databases_sql(self) -> str:
        return "SELECT name FROM sys.databases ORDER BY name"


class OraclePlatform(DatabasePlatform):
    """Oracle platform.

    A "database" is a user and its schema, so create/drop operate on users.
    """

    variant = DialectVariant.ORACLE
    not_found_messages = ("ora-01918",)

    def get_dummy_select_sql(self, expression: str = "1") -> str:
        return f"SELECT {expression} FROM DUAL"

    def quote_user_name(self, name: str) -> str:
        """Quote a user name only where needed, so lowercase names fold to upper case."""
        return self.dialect.identifier_preparer.quote(name)

    def get_create_database_sql(self, name: str, password: Optional[str] = None) -> List[str]:
        """Create the user, identified by ``password`` or by its own name when none is given."""
        user = self.quote_user_name(name)
        secret = self.dialect.identifier_preparer.quote_identifier(name if password is None else str(password))
        return [
            f"CREATE USER {user} IDENTIFIED BY {secret}",
            f"GRANT DBA TO {user}",
        ]

    def get_drop_database_sql(self, name: str) -> List[str]:
        return [f"DROP USER {self.quote_user_name(name)} CASCADE"]

    def get_list_databases_sql(self) -> str:
        return "SELECT username FROM all_users ORDER BY username"


class DB2Platform(DatabasePlatform):
    """IBM DB2 platform."""

    variant = DialectVariant.DB2
    not_found_messages = ("sql1013n",)

    def get_dummy_select_sql(self, expression: str = "1") -> str:
        return f"SELECT {expression} FROM sysibm.sysdummy1"


class PlatformFactory:
    """Factory for creating platforms from SQLAlchemy dialects."""

    _platforms: Dict[str, Type[DatabasePlatform]] = {
        "sqlite": SQLitePlatform,
        "postgresql": PostgreSQLPlatform,
        "mysql": MySQLPlatform,
        "mariadb": MySQLPlatform,
        "mssql": SQLServerPlatform,
        "oracle": OraclePlatform,
        "ibm_db_sa": DB2Platform,
        "db2": DB2Platform,
    }

    @classmethod
    def create_platform(cls, dialect: Dialect) -> DatabasePlatform:
        """Create the platform for a dialect, falling back to the generic one."""
        platform_class = cls._platforms.get(dialect.name, DatabasePlatform)
        return platform_class(dialect)

    @classmethod
    def for_driver(cls, driver: str) -> DatabasePlatform:
        """Create a platform from a driver name such as ``postgresql+psycopg2``.

        The dialect is instantiated without importing its DBAPI module.

        Raises:
            DialectOperationError: If SQLAlchemy does not know the driver.
        """
        try:
            dialect_class = make_url(f"{driver}://").get_dialect()
        except (ArgumentError, NoSuchModuleError) as e:
            raise DialectOperationError(f"Unknown driver '{driver}': {e}", driver=driver) from e

        return cls.create_platform(dialect_class())

    @classmethod
    def register_platform(cls, dialect_name: str, platform_class: Type[DatabasePlatform]) -> None:
        """Register a platform for a dialect name.

        Args:
            dialect_name: SQLAlchemy ``Dialect.name``.
            platform_class: Platform class to register.
        """
        cls._platforms[dialect_name] = platform_class

    @classmethod
    def get_supported_dialects(cls) -> List[str]:
        return list(cls._platforms.keys())

    @classmethod
    def get_variant(cls, dialect_name: str) -> Optional[DialectVariant]:
        platform_class = cls._platforms.get(dialect_name)
        return platform_class.variant if platform_class else None
