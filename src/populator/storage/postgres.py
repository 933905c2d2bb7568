"""
PostgreSQL storage backend on psycopg2.

Table and column names come from the entity schemas, which are trusted
configuration; values are always passed as query parameters.
"""

from typing import Any

import psycopg2
import structlog
from psycopg2.extensions import connection as PgConnection

from ..errors import PersistenceError
from ..record import Record
from ..schema import RelationField
from .base import StorageBackend, column_values

logger = structlog.get_logger(__name__)

QUERY_TIMEOUT_SEC = 30  # Per-statement timeout


def get_connection(
    host: str = "localhost",
    port: int = 5432,
    database: str = "populator",
    user: str = "populator",
    password: str = "dev_password",
    dsn: str | None = None,
) -> PgConnection:
    """
    Get a PostgreSQL connection with standard settings.

    Args:
        host: Database host
        port: Database port
        database: Database name
        user: Database user
        password: Database password
        dsn: Full connection string; overrides the individual settings

    Returns:
        PostgreSQL connection
    """
    if dsn:
        return psycopg2.connect(dsn)
    return psycopg2.connect(
        host=host,
        port=port,
        database=database,
        user=user,
        password=password,
    )


class PostgresStore(StorageBackend):
    """Write records into PostgreSQL inside a single transaction."""

    def __init__(self, conn: PgConnection):
        self.conn = conn

    def begin(self) -> None:
        try:
            # psycopg2 opens the transaction implicitly on the first statement
            self.conn.autocommit = False
            with self.conn.cursor() as cur:
                cur.execute(f"SET LOCAL statement_timeout = '{QUERY_TIMEOUT_SEC * 1000}'")
        except psycopg2.Error as exc:
            raise PersistenceError(f"Could not begin transaction: {exc}") from exc

    def commit(self) -> None:
        try:
            self.conn.commit()
        except psycopg2.Error as exc:
            raise PersistenceError(f"Could not commit transaction: {exc}") from exc

    def rollback(self) -> None:
        try:
            self.conn.rollback()
        except psycopg2.Error as exc:
            raise PersistenceError(f"Could not roll back transaction: {exc}") from exc

    def insert(self, record: Record) -> Any:
        schema = record.schema
        columns = column_values(record)
        pk = schema.primary_key

        if columns:
            col_spec = ", ".join(f'"{c}"' for c in columns)
            placeholders = ", ".join("%s" for _ in columns)
            query = f'INSERT INTO "{schema.table}" ({col_spec}) VALUES ({placeholders}) RETURNING "{pk}"'
        else:
            query = f'INSERT INTO "{schema.table}" DEFAULT VALUES RETURNING "{pk}"'

        try:
            with self.conn.cursor() as cur:
                cur.execute(query, tuple(columns.values()))
                row = cur.fetchone()
        except psycopg2.Error as exc:
            raise PersistenceError(f"Insert into {schema.table} failed: {exc}") from exc

        return row[0]

    def set_related(self, record: Record, field: RelationField, related: list[Record]) -> None:
        schema = record.schema
        source_col = field.source_column or f"{schema.table}_id"
        target_col = field.target_column or f"{field.name}_id"

        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    f'DELETE FROM "{field.through}" WHERE "{source_col}" = %s',
                    (record.identity,),
                )
                if related:
                    cur.executemany(
                        f'INSERT INTO "{field.through}" ("{source_col}", "{target_col}") VALUES (%s, %s)',
                        [(record.identity, other.identity) for other in related],
                    )
        except psycopg2.Error as exc:
            raise PersistenceError(
                f"Updating {schema.table}.{field.name} through {field.through} failed: {exc}"
            ) from exc

        logger.debug(
            "many_to_many_set",
            entity=schema.name,
            field=field.name,
            related=len(related),
        )
