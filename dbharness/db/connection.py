"""Opening test connections from resolved connection parameters."""

import logging
import time
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Dialect, Engine, URL
from sqlalchemy.exc import ArgumentError, NoSuchModuleError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from dbharness.config.models import ConnectionParameters
from dbharness.db.platforms import DatabasePlatform, DialectVariant, PlatformFactory
from dbharness.db.schema_manager import SchemaManager
from dbharness.events import ConnectionEventArgs, EventManager, Events
from dbharness.exceptions import DatabaseError, DriverConnectError, MissingExtensionError

logger = logging.getLogger(__name__)

TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


def _is_true(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


class QueryResult:
    """Container for query results with metadata."""

    def __init__(
        self,
        data: Optional[pd.DataFrame] = None,
        rows_affected: Optional[int] = None,
        execution_time: Optional[float] = None,
        columns: Optional[List[str]] = None,
    ) -> None:
        """Initialize query result.

        Args:
            data: Result data as DataFrame.
            rows_affected: Number of rows affected by query.
            execution_time: Query execution time in seconds.
            columns: Column names for the result.
        """
        self.data = data
        self.rows_affected = rows_affected or 0
        self.execution_time = execution_time or 0.0
        self.columns = columns or []

    @property
    def is_empty(self) -> bool:
        """Check if result is empty."""
        return self.data is None or self.data.empty

    @property
    def row_count(self) -> int:
        """Get number of rows in result."""
        return len(self.data) if self.data is not None else 0

    def to_records(self) -> List[Dict[str, Any]]:
        """Rows as dictionaries, in result order."""
        return self.data.to_dict('records') if self.data is not None else []


class TestConnection:
    """A lazily connected database handle used by test cases.

    Wraps a SQLAlchemy engine and a single SQLAlchemy connection. The
    ``post_connect`` event fires once, when the connection is first opened.
    """

    __test__ = False

    def __init__(self, params: ConnectionParameters, engine: Engine) -> None:
        self.params = params
        self.event_manager = EventManager()
        self._engine = engine
        self._connection: Optional[Connection] = None
        self._platform: Optional[DatabasePlatform] = None

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def dialect(self) -> Dialect:
        return self._engine.dialect

    @property
    def dialect_variant(self) -> DialectVariant:
        return self.get_database_platform().variant

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def get_database_platform(self) -> DatabasePlatform:
        if self._platform is None:
            self._platform = PlatformFactory.create_platform(self.dialect)
        return self._platform

    def create_schema_manager(self) -> SchemaManager:
        return SchemaManager(self)

    def connect(self) -> Connection:
        """Open the underlying connection if needed and return it.

        Raises:
            DriverConnectError: If the connection cannot be opened.
        """
        if self._connection is None:
            try:
                self._connection = self._engine.connect()
            except SQLAlchemyError as e:
                raise DriverConnectError(
                    f"Failed to connect using driver '{self.params.driver}': {e}",
                    driver=str(self.params.driver),
                ) from e

            logger.debug("Opened %s connection", self.dialect.name)
            self.event_manager.dispatch_event(Events.POST_CONNECT, ConnectionEventArgs(self))

        return self._connection

    def execute_statement(self, sql: str, params: Optional[Dict[str, Any]] = None) -> int:
        """Execute a statement, commit, and return the affected row count.

        Raises:
            DatabaseError: If execution fails.
        """
        connection = self.connect()
        try:
            result = connection.execute(text(sql), params or {})
            connection.commit()
        except SQLAlchemyError as e:
            connection.rollback()
            raise DatabaseError(f"Statement execution failed: {e}", driver=self.dialect.name) from e

        return result.rowcount if result.rowcount >= 0 else 0

    def execute_autocommit(self, sql: str) -> None:
        """Execute a statement outside of any transaction.

        Used for statements such as CREATE DATABASE that engines refuse to run
        inside a transaction block.

        Raises:
            DatabaseError: If execution fails.
        """
        try:
            with self._engine.connect() as connection:
                connection.execution_options(isolation_level="AUTOCOMMIT")
                connection.execute(text(sql))
        except SQLAlchemyError as e:
            raise DatabaseError(f"Statement '{sql}' failed: {e}", driver=self.dialect.name) from e

    def execute_query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> QueryResult:
        """Execute a query and return its rows as a DataFrame.

        Raises:
            DatabaseError: If query execution fails.
        """
        connection = self.connect()
        start_time = time.time()

        try:
            result = connection.execute(text(sql), params or {})
            rows = result.fetchall()
            columns = list(result.keys())
            connection.commit()
        except SQLAlchemyError as e:
            connection.rollback()
            execution_time = time.time() - start_time
            raise DatabaseError(
                f"Query execution failed after {execution_time:.2f}s: {e}",
                driver=self.dialect.name,
            ) from e

        execution_time = time.time() - start_time
        df = pd.DataFrame(rows, columns=columns) if rows else pd.DataFrame(columns=columns)
        return QueryResult(
            data=df,
            rows_affected=len(rows),
            execution_time=execution_time,
            columns=columns,
        )

    def fetch_all_associative(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Execute a query and return rows as dictionaries with native Python values.

        Raises:
            DatabaseError: If query execution fails.
        """
        connection = self.connect()
        try:
            rows = [dict(row) for row in connection.execute(text(sql), params or {}).mappings()]
            connection.commit()
        except SQLAlchemyError as e:
            connection.rollback()
            raise DatabaseError(f"Query execution failed: {e}", driver=self.dialect.name) from e
        return rows

    def close(self) -> None:
        """Close the connection and dispose of the engine."""
        if self._connection is not None:
            try:
                self._connection.close()
            finally:
                self._connection = None
        self._engine.dispose()

    def __enter__(self) -> "TestConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class DriverManager:
    """Builds SQLAlchemy engines from connection parameters."""

    @classmethod
    def get_connection(cls, params: ConnectionParameters) -> TestConnection:
        """Create a (not yet connected) TestConnection.

        Raises:
            DriverConnectError: If the parameters cannot produce an engine.
            MissingExtensionError: If the driver's DBAPI module is not installed.
        """
        url = cls.build_url(params)

        engine_args: Dict[str, Any] = {'connect_args': cls.build_connect_args(params)}
        if not cls._is_sqlite_memory(params):
            # Closing a test connection must really close it so the database can be dropped.
            engine_args['poolclass'] = NullPool

        try:
            engine = create_engine(url, **engine_args)
        except NoSuchModuleError as e:
            raise DriverConnectError(f"Unknown driver '{params.driver}': {e}", driver=str(params.driver)) from e
        except ImportError as e:
            raise MissingExtensionError(
                f"Driver '{params.driver}' requires a module that is not installed: {e}",
                module=getattr(e, 'name', None),
            ) from e
        except (ArgumentError, SQLAlchemyError) as e:
            raise DriverConnectError(f"Failed to create database engine: {e}", driver=str(params.driver)) from e

        logger.debug("Created engine for %s", url.render_as_string(hide_password=True))
        return TestConnection(params, engine)

    @classmethod
    def build_url(cls, params: ConnectionParameters) -> URL:
        """Build the SQLAlchemy URL.

        Raises:
            DriverConnectError: If no driver is configured or the port is invalid.
        """
        if not params.get('driver'):
            raise DriverConnectError("No driver configured")

        driver = str(params.driver)
        backend = driver.split('+', 1)[0]

        if backend == 'sqlite':
            if cls._is_sqlite_memory(params):
                return URL.create(driver)
            return URL.create(driver, database=str(params.path))

        port = params.get('port')
        try:
            port = int(port) if port not in (None, '') else None
        except (TypeError, ValueError) as e:
            raise DriverConnectError(f"Invalid port: {port!r}", driver=driver) from e

        host = params.get('host')
        if backend == 'mssql' and params.get('server'):
            host = f"{host or 'localhost'}\\{params.server}"

        query: Dict[str, str] = {}
        if params.get('charset'):
            query['client_encoding' if backend == 'postgresql' else 'charset'] = str(params.charset)
        if params.get('unix_socket'):
            query['host' if backend == 'postgresql' else 'unix_socket'] = str(params.unix_socket)

        return URL.create(
            driver,
            username=params.get('user'),
            password=params.get('password'),
            host=host,
            port=port,
            database=params.get('dbname'),
            query=query,
        )

    @classmethod
    def build_connect_args(cls, params: ConnectionParameters) -> Dict[str, Any]:
        """DBAPI connect arguments: TLS material per dialect family, then driver options."""
        backend = str(params.get('driver', '')).split('+', 1)[0]
        connect_args: Dict[str, Any] = {}

        ssl = {
            key: params.get(f"ssl_{key}")
            for key in ('key', 'cert', 'ca', 'capath', 'cipher')
            if params.get(f"ssl_{key}")
        }
        if ssl:
            if backend in ('mysql', 'mariadb'):
                connect_args['ssl'] = ssl
            elif backend == 'postgresql':
                mapping = {'key': 'sslkey', 'cert': 'sslcert', 'ca': 'sslrootcert'}
                for key, value in ssl.items():
                    if key in mapping:
                        connect_args[mapping[key]] = value
                    else:
                        logger.warning("ssl_%s is not supported by %s and is ignored", key, backend)
            else:
                connect_args.update({f"ssl_{key}": value for key, value in ssl.items()})

        connect_args.update(params.driver_options)
        return connect_args

    @staticmethod
    def _is_sqlite_memory(params: ConnectionParameters) -> bool:
        if not str(params.get('driver', '')).startswith('sqlite'):
            return False
        return _is_true(params.get('memory', False)) or not params.get('path')
