"""Core exceptions for dbharness."""

from typing import Any, Dict, Optional


class DBHarnessError(Exception):
    """Base exception for all dbharness errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(DBHarnessError):
    """Raised when there's an error loading or interpolating the configuration source."""
    pass


class MissingExtensionError(DBHarnessError):
    """Raised when a DBAPI module required by a driver cannot be imported.

    Test helpers convert this into a skipped test instead of a failure.
    """

    def __init__(self, message: str, module: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.module = module


class InvalidSubscriberError(DBHarnessError):
    """Raised when a configured event subscriber is unknown or not an EventSubscriber."""

    def __init__(self, message: str, subscriber: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.subscriber = subscriber


class InvalidRowSetError(DBHarnessError):
    """Raised when rows passed to the result-set query builder are inconsistent."""

    def __init__(self, message: str, row_index: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.row_index = row_index


class DatabaseError(DBHarnessError):
    """Raised when there's an error connecting to or operating on a database."""

    def __init__(
        self,
        message: str,
        driver: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.driver = driver


class DriverConnectError(DatabaseError):
    """Raised when an engine cannot be created or a connection cannot be opened."""
    pass


class DialectOperationError(DatabaseError):
    """Raised when a create, drop or introspection operation fails."""
    pass


class DatabaseObjectNotFoundError(DialectOperationError):
    """Raised when dropping a database (or user-schema) that does not exist."""

    def __init__(
        self,
        message: str,
        object_name: Optional[str] = None,
        driver: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, driver, details)
        self.object_name = object_name
