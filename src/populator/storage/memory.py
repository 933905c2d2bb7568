"""
In-process storage backend.

Keeps one table per entity in plain dicts and enforces the constraints a
relational database would reject on insert: NOT NULL foreign keys and
explicitly-null scalars, unique foreign keys, string lengths, dangling
references and duplicate primary keys. begin() takes a snapshot that
rollback() restores, so a failed run leaves no rows behind.
"""

import copy
from typing import Any

from ..errors import PersistenceError
from ..record import Record
from ..schema import RelationField
from .base import StorageBackend, column_values


class MemoryStore(StorageBackend):
    """Dict-backed store with transactional snapshots."""

    def __init__(self) -> None:
        self._tables: dict[str, dict[Any, dict[str, Any]]] = {}
        self._links: dict[tuple[str, str], list[tuple[Any, Any]]] = {}
        self._sequences: dict[str, int] = {}
        self._snapshot: tuple | None = None

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    @property
    def in_transaction(self) -> bool:
        return self._snapshot is not None

    def begin(self) -> None:
        if self._snapshot is not None:
            raise PersistenceError("A transaction is already open")
        self._snapshot = copy.deepcopy((self._tables, self._links, self._sequences))

    def commit(self) -> None:
        if self._snapshot is None:
            raise PersistenceError("No transaction to commit")
        self._snapshot = None

    def rollback(self) -> None:
        if self._snapshot is None:
            raise PersistenceError("No transaction to roll back")
        self._tables, self._links, self._sequences = self._snapshot
        self._snapshot = None

    # =========================================================================
    # WRITES
    # =========================================================================

    def _check_constraints(self, record: Record, columns: dict[str, Any]) -> None:
        schema = record.schema
        table = self._tables.get(schema.name, {})

        for field in schema.fields:
            if field.primary_key:
                continue
            value = columns.get(field.name)
            if field.name in columns and value is None and not field.nullable:
                raise PersistenceError(
                    f"null value in column '{field.name}' of '{schema.table}' violates not-null constraint"
                )
            if field.max_length and isinstance(value, str) and len(value) > field.max_length:
                raise PersistenceError(
                    f"value too long for column '{field.name}' of '{schema.table}' "
                    f"({len(value)} > {field.max_length})"
                )

        for rel in schema.relations:
            value = columns.get(rel.column_name)
            if value is None:
                if not rel.nullable:
                    raise PersistenceError(
                        f"null value in column '{rel.column_name}' of '{schema.table}' "
                        "violates not-null constraint"
                    )
                continue
            target = self._tables.get(rel.target_name, {})
            if value not in target:
                raise PersistenceError(
                    f"insert on '{schema.table}' violates foreign key '{rel.column_name}': "
                    f"{rel.target_name} {value!r} does not exist"
                )
            if rel.unique and any(row.get(rel.column_name) == value for row in table.values()):
                raise PersistenceError(
                    f"duplicate key value violates unique constraint on '{schema.table}.{rel.column_name}'"
                )

    def insert(self, record: Record) -> Any:
        if self._snapshot is None:
            raise PersistenceError("insert outside of a transaction")

        schema = record.schema
        columns = column_values(record)
        self._check_constraints(record, columns)

        table = self._tables.setdefault(schema.name, {})
        pk = schema.primary_key
        identity = columns.get(pk)
        if identity is None:
            identity = self._sequences.get(schema.name, 0) + 1
            self._sequences[schema.name] = identity
        elif identity in table:
            raise PersistenceError(
                f"duplicate key value violates primary key of '{schema.table}': {identity!r}"
            )

        columns[pk] = identity
        table[identity] = columns
        return identity

    def set_related(self, record: Record, field: RelationField, related: list[Record]) -> None:
        if self._snapshot is None:
            raise PersistenceError("set_related outside of a transaction")
        if record.identity is None:
            raise PersistenceError(f"{record.entity} must be saved before setting '{field.name}'")

        key = (record.entity, field.name)
        links = [pair for pair in self._links.get(key, []) if pair[0] != record.identity]
        links.extend((record.identity, other.identity) for other in related)
        self._links[key] = links

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def rows(self, entity: str) -> list[dict[str, Any]]:
        """Committed (or in-transaction) rows of an entity, in insert order."""
        return [dict(row) for row in self._tables.get(entity, {}).values()]

    def count(self, entity: str) -> int:
        return len(self._tables.get(entity, {}))

    def links(self, entity: str, field: str) -> list[tuple[Any, Any]]:
        """(owner identity, related identity) pairs of a many-to-many field."""
        return list(self._links.get((entity, field), []))
