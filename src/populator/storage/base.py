"""
Storage backend interface.

The engine drives a backend through one transaction per run:

    storage.begin()
    storage.insert(record)            # -> identity, once per record
    storage.set_related(record, field, related)
    storage.commit()  /  storage.rollback()

Backends report every rejected operation as PersistenceError.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from ..record import Record
from ..schema import EntitySchema, RelationField


def column_values(record: Record) -> dict[str, Any]:
    """
    Map a record onto its table columns.

    Scalar fields keep their name; single-valued relations are written to
    their foreign key column as the related record's identity. Fields the
    record has no value for are left out so the column default applies.
    """
    schema: EntitySchema = record.schema
    columns: dict[str, Any] = {}
    for field in schema.fields:
        if field.name in record:
            columns[field.name] = record[field.name]
    for rel in schema.relations:
        if rel.name not in record:
            continue
        related = record[rel.name]
        columns[rel.column_name] = related.identity if isinstance(related, Record) else related
    return columns


class StorageBackend(ABC):
    """Transactional sink for generated records."""

    @abstractmethod
    def begin(self) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...

    @abstractmethod
    def insert(self, record: Record) -> Any:
        """Persist a record and return its identity."""

    @abstractmethod
    def set_related(self, record: Record, field: RelationField, related: list[Record]) -> None:
        """Replace the many-to-many links of a persisted record."""

    @contextmanager
    def transaction(self) -> Iterator["StorageBackend"]:
        """Begin; commit on success, roll back and re-raise on any error."""
        self.begin()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        self.commit()
