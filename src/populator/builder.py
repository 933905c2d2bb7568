"""
Per-entity record synthesis.

A RecordBuilder owns the column formatters and post-build modifiers of one
entity type and turns them into persisted records:

    a. instantiate a blank Record
    b. run every scalar / foreign key formatter, coercing the value
    c. run the modifiers in registration order
    d. insert the record through the storage backend
    e. resolve many-to-many formatters and replace the record's links

Formatters and modifiers may only be changed during registration; the
engine freezes the builder for the duration of a run.
"""

from collections.abc import Callable, Iterable, Mapping
from typing import Any

import structlog
from faker import Faker

from .errors import FormatterError
from .formatters import RelationFormatter, guess_column_formatters
from .record import InsertedRegistry, Record
from .schema import EntitySchema, ScalarField
from .storage import StorageBackend

logger = structlog.get_logger(__name__)

Modifier = Callable[[Record, Mapping[str, Any]], Any]


class RecordBuilder:
    """Synthesize and persist records of one entity type."""

    def __init__(self, schema: EntitySchema, generator: Faker | None = None):
        self.schema = schema
        self.generator = generator
        self.user_formatters: dict[str, Any] = {}
        self.generate_id = False
        self._column_formatters: dict[str, Any] = {}
        self._modifiers: list[Modifier] = []
        self._frozen = False

    @property
    def entity(self) -> str:
        return self.schema.name

    # =========================================================================
    # REGISTRATION PHASE
    # =========================================================================

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError(f"Formatters of {self.entity} cannot change while a run is in progress")

    @property
    def column_formatters(self) -> dict[str, Any]:
        return dict(self._column_formatters)

    @property
    def modifiers(self) -> list[Modifier]:
        return list(self._modifiers)

    def set_user_formatters(self, formatters: Mapping[str, Any]) -> None:
        self._check_mutable()
        self.user_formatters = dict(formatters)

    def guess_column_formatters(self) -> dict[str, Any]:
        if self.generator is None:
            raise RuntimeError(f"No Faker generator set for {self.entity}")
        return guess_column_formatters(
            self.schema, self.generator, self.user_formatters, self.generate_id
        )

    def set_column_formatters(self, formatters: Mapping[str, Any]) -> None:
        self._check_mutable()
        self._column_formatters = dict(formatters)

    def merge_column_formatters_with(self, formatters: Mapping[str, Any]) -> None:
        self._check_mutable()
        for name in formatters:
            try:
                self.schema.get_field(name)
            except KeyError:
                logger.warning("formatter_for_unknown_field", entity=self.entity, field=name)
        self._column_formatters.update(formatters)

    def set_modifiers(self, modifiers: Iterable[Modifier]) -> None:
        self._check_mutable()
        self._modifiers = list(modifiers)

    def merge_modifiers_with(self, modifiers: Iterable[Modifier]) -> None:
        self._check_mutable()
        self._modifiers.extend(modifiers)

    def freeze(self) -> None:
        """Lock formatters and rewind unique-relation cursors for a new run."""
        self._frozen = True
        for formatter in self._column_formatters.values():
            if isinstance(formatter, RelationFormatter):
                formatter.reset()

    def unfreeze(self) -> None:
        self._frozen = False

    # =========================================================================
    # RUN PHASE
    # =========================================================================

    def build(self, inserted: InsertedRegistry, storage: StorageBackend) -> Record:
        """
        Insert one new record of this entity.

        Args:
            inserted: All records inserted so far during this run, by entity
            storage: Backend the record is written to

        Returns:
            The persisted record, its identity filled in
        """
        record = Record(self.schema)

        self._fill_columns(record, inserted)
        self._call_modifiers(record, inserted)
        record.identity = storage.insert(record)
        self._save_many_to_many(record, inserted, storage)

        return record

    def _invoke(self, name: str, formatter: Any, inserted: InsertedRegistry, record: Record) -> Any:
        if not callable(formatter):
            return formatter
        try:
            return formatter(inserted, record)
        except (ValueError, TypeError) as exc:
            raise FormatterError(self.entity, name, exc) from exc

    def _fill_columns(self, record: Record, inserted: InsertedRegistry) -> None:
        for name, formatter in self._column_formatters.items():
            if formatter is None:
                continue
            try:
                field = self.schema.get_field(name)
            except KeyError:
                continue
            if self.schema.is_many_to_many(name):
                continue
            value = self._invoke(name, formatter, inserted, record)
            record[name] = self._prepare_value(field, value)

    def _prepare_value(self, field: Any, value: Any) -> Any:
        if isinstance(field, ScalarField) and field.max_length and isinstance(value, str):
            return value[: field.max_length]
        return value

    def _call_modifiers(self, record: Record, inserted: InsertedRegistry) -> None:
        for modifier in self._modifiers:
            modifier(record, inserted)

    def _save_many_to_many(
        self, record: Record, inserted: InsertedRegistry, storage: StorageBackend
    ) -> None:
        for field in self.schema.many_to_many:
            formatter = self._column_formatters.get(field.name)
            if formatter is None:
                continue
            value = self._invoke(field.name, formatter, inserted, record)
            if not field.through_auto_created:
                continue
            if value is None:
                related = []
            elif isinstance(value, Record):
                related = [value]
            else:
                related = list(value)
            record.links[field.name] = related
            storage.set_related(record, field, related)

    def __repr__(self):
        return f"<RecordBuilder {self.entity} formatters={len(self._column_formatters)}>"
