"""Schema introspection and database-level DDL for test connections."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import MetaData, inspect, text
from sqlalchemy.exc import SQLAlchemyError

from dbharness.exceptions import DatabaseError, DatabaseObjectNotFoundError, DialectOperationError

if TYPE_CHECKING:
    from dbharness.db.connection import TestConnection

logger = logging.getLogger(__name__)


@dataclass
class Schema:
    """Objects found by introspecting a database schema."""
    metadata: MetaData
    views: List[str] = field(default_factory=list)
    sequences: List[str] = field(default_factory=list)
    schema_name: Optional[str] = None

    @property
    def tables(self) -> List[str]:
        return [table.name for table in self.metadata.sorted_tables]

    @property
    def is_empty(self) -> bool:
        return not (self.metadata.tables or self.views or self.sequences)


class SchemaManager:
    """Introspects and alters the database behind a TestConnection."""

    def __init__(self, connection: "TestConnection") -> None:
        self.connection = connection
        self.platform = connection.get_database_platform()

    def introspect_schema(self, schema_name: Optional[str] = None) -> Schema:
        """Reflect tables, views and sequences of a schema.

        Raises:
            DialectOperationError: If introspection fails.
        """
        conn = self.connection.connect()
        try:
            inspector = inspect(conn)
            views = inspector.get_view_names(schema=schema_name)
            sequences = self._sequence_names(conn, schema_name)
            metadata = MetaData(schema=schema_name)
            metadata.reflect(bind=conn)
            conn.commit()
        except SQLAlchemyError as e:
            conn.rollback()
            raise DialectOperationError(f"Schema introspection failed: {e}", driver=self.platform.name) from e

        schema = Schema(metadata=metadata, views=views, sequences=sequences, schema_name=schema_name)
        logger.debug(
            "Introspected %d tables, %d views, %d sequences",
            len(metadata.tables), len(views), len(sequences),
        )
        return schema

    def drop_schema_objects(self, schema: Schema) -> None:
        """Drop every object of an introspected schema: views, tables, then sequences.

        Raises:
            DialectOperationError: If any drop fails.
        """
        conn = self.connection.connect()
        try:
            for view in schema.views:
                conn.execute(text(f"DROP VIEW {self._qualify(view, schema.schema_name)}"))

            schema.metadata.drop_all(bind=conn)

            # Sequences owned by a table may already be gone with it.
            remaining = set(self._sequence_names(conn, schema.schema_name))
            for sequence in schema.sequences:
                if sequence in remaining:
                    conn.execute(text(f"DROP SEQUENCE {self._qualify(sequence, schema.schema_name)}"))

            conn.commit()
        except SQLAlchemyError as e:
            conn.rollback()
            raise DialectOperationError(f"Dropping schema objects failed: {e}", driver=self.platform.name) from e

        logger.info("Dropped %d tables and %d views", len(schema.metadata.tables), len(schema.views))

    def create_database(self, name: str, password: Optional[str] = None) -> None:
        """Create a database (a user on Oracle, identified by ``password``).

        Raises:
            DialectOperationError: If creation fails.
        """
        for sql in self.platform.get_create_database_sql(name, password):
            try:
                self.connection.execute_autocommit(sql)
            except DatabaseError as e:
                raise DialectOperationError(
                    f"Failed to create database '{name}': {e}", driver=self.platform.name
                ) from e
        logger.info("Created database %s", name)

    def drop_database(self, name: str) -> None:
        """Drop a database (a user on Oracle).

        Raises:
            DatabaseObjectNotFoundError: If the database does not exist.
            DialectOperationError: If the drop fails for any other reason.
        """
        for sql in self.platform.get_drop_database_sql(name):
            try:
                self.connection.execute_autocommit(sql)
            except DatabaseError as e:
                if e.__cause__ is not None and self.platform.is_object_not_found(e.__cause__):
                    raise DatabaseObjectNotFoundError(
                        f"Database '{name}' does not exist",
                        object_name=name,
                        driver=self.platform.name,
                    ) from e
                raise DialectOperationError(
                    f"Failed to drop database '{name}': {e}", driver=self.platform.name
                ) from e
        logger.info("Dropped database %s", name)

    def list_databases(self) -> List[str]:
        """Names of the databases visible to this connection.

        Raises:
            DialectOperationError: If the platform cannot list databases or the query fails.
        """
        sql = self.platform.get_list_databases_sql()
        try:
            result = self.connection.execute_query(sql)
        except DatabaseError as e:
            raise DialectOperationError(f"Failed to list databases: {e}", driver=self.platform.name) from e
        return [str(row[result.columns[0]]) for row in result.to_records()]

    def list_table_names(self, schema_name: Optional[str] = None) -> List[str]:
        conn = self.connection.connect()
        try:
            names = inspect(conn).get_table_names(schema=schema_name)
            conn.commit()
        except SQLAlchemyError as e:
            conn.rollback()
            raise DialectOperationError(f"Failed to list tables: {e}", driver=self.platform.name) from e
        return names

    def _sequence_names(self, conn, schema_name: Optional[str]) -> List[str]:
        if not conn.dialect.supports_sequences:
            return []
        try:
            return inspect(conn).get_sequence_names(schema=schema_name)
        except NotImplementedError:
            return []

    def _qualify(self, name: str, schema_name: Optional[str]) -> str:
        quoted = self.platform.quote_identifier(name)
        if schema_name:
            return f"{self.platform.quote_identifier(schema_name)}.{quoted}"
        return quoted
