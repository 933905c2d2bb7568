"""
Records and the run-scoped registry of inserted records.

A persisted Record doubles as the handle that relation formatters hand to
other records: storage backends read `identity` off it when writing the
foreign key column.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from .schema import EntitySchema


@dataclass(eq=False)
class Record:
    """One generated row of an entity type."""

    schema: EntitySchema
    values: dict[str, Any] = field(default_factory=dict)
    identity: Any = None
    links: dict[str, list["Record"]] = field(default_factory=dict)

    @property
    def entity(self) -> str:
        return self.schema.name

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.values[name] = value

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def __repr__(self):
        return f"<Record {self.entity} identity={self.identity!r}>"


class InsertedRegistry(Mapping[str, tuple[Record, ...]]):
    """
    Records inserted so far during one run, by entity type.

    Append-only. Formatters only get read access through the Mapping
    interface; the engine is the sole caller of add(). Iteration order is the
    order in which entity types were first declared or added.
    """

    def __init__(self) -> None:
        self._records: dict[str, list[Record]] = {}

    def declare(self, entity: str) -> None:
        """Make `entity` a key even before its first record is added."""
        self._records.setdefault(entity, [])

    def add(self, entity: str, record: Record) -> None:
        self._records.setdefault(entity, []).append(record)

    def __getitem__(self, entity: str) -> tuple[Record, ...]:
        return tuple(self._records[entity])

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def count(self, entity: str) -> int:
        return len(self._records.get(entity, ()))

    def __repr__(self):
        counts = ", ".join(f"{k}={len(v)}" for k, v in self._records.items())
        return f"<InsertedRegistry {counts}>"
