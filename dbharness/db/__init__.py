"""Database connectivity, dialect platforms and schema management."""

from dbharness.db.connection import DriverManager, QueryResult, TestConnection
from dbharness.db.platforms import (
    DatabasePlatform,
    DB2Platform,
    DialectVariant,
    MySQLPlatform,
    OraclePlatform,
    PlatformFactory,
    PostgreSQLPlatform,
    SQLitePlatform,
    SQLServerPlatform,
)
from dbharness.db.schema_manager import Schema, SchemaManager

__all__ = [
    # Connections
    "DriverManager",
    "QueryResult",
    "TestConnection",
    # Platforms
    "DatabasePlatform",
    "DB2Platform",
    "DialectVariant",
    "MySQLPlatform",
    "OraclePlatform",
    "PlatformFactory",
    "PostgreSQLPlatform",
    "SQLitePlatform",
    "SQLServerPlatform",
    # Schema management
    "Schema",
    "SchemaManager",
]
