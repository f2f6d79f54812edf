"""dbharness: test database provisioning for integration test suites.

dbharness provides:
- Connection parameter resolution from prefix-keyed configuration (``db_*``, ``tmpdb_*``)
- One-time provisioning of the shared test database, per dialect
- Configuration-driven connection event subscribers
- Result-set queries built from literal rows, without temporary tables
- A pytest plugin and a small CLI
"""

__version__ = "0.1.0"
__license__ = "MIT"

from dbharness.exceptions import (
    ConfigurationError,
    DatabaseError,
    DatabaseObjectNotFoundError,
    DBHarnessError,
    DialectOperationError,
    DriverConnectError,
    InvalidRowSetError,
    InvalidSubscriberError,
    MissingExtensionError,
)
from dbharness.harness import TestHarness, get_harness, set_harness
from dbharness.query import generate_result_set_query

__all__ = [
    "__version__",
    "ConfigurationError",
    "DatabaseError",
    "DatabaseObjectNotFoundError",
    "DBHarnessError",
    "DialectOperationError",
    "DriverConnectError",
    "InvalidRowSetError",
    "InvalidSubscriberError",
    "MissingExtensionError",
    "TestHarness",
    "get_harness",
    "set_harness",
    "generate_result_set_query",
]
