"""
Relation-aware formatters.

Each relation field of each RecordBuilder owns one of these objects. They
are the only formatters with state: unique relations keep a cursor into the
inserted list of the target type so that no related record is handed out
twice.
"""

import random
from typing import Any

from ..schema import RelationField


class RelationFormatter:
    """
    Resolve a single-valued relation against already-inserted records.

    - target has no inserted records yet: None
    - unique relation: walk the inserted list by position, one related
      record per call, None once the list is exhausted
    - otherwise: uniform random pick among the inserted records
    """

    def __init__(self, field: RelationField, rng: random.Random):
        self.field = field
        self.target = field.target_name
        self.unique = field.unique
        self.optional = field.nullable
        self.rng = rng
        self.position = 0

    def _next_unique(self, choices: tuple) -> Any:
        related = choices[self.position] if self.position < len(choices) else None
        self.position += 1
        return related

    def __call__(self, inserted, record) -> Any:
        choices = inserted.get(self.target)
        if not choices:
            return None
        if self.unique:
            return self._next_unique(choices)
        return choices[self.rng.randrange(len(choices))]

    def reset(self) -> None:
        self.position = 0

    def __repr__(self):
        return f"<{type(self).__name__} {self.field.name} -> {self.target} unique={self.unique}>"


class ManyToManyFormatter(RelationFormatter):
    """
    Resolve a many-to-many relation after the owning record is persisted.

    Returns a list of related records: at most one (taken by position) for
    unique relations, otherwise a random sample of 0..N of the inserted
    records of the target type.
    """

    def __call__(self, inserted, record) -> list:
        choices = inserted.get(self.target)
        if not choices:
            return []
        if self.unique:
            related = self._next_unique(choices)
            return [] if related is None else [related]
        size = self.rng.randint(0, len(choices))
        return self.rng.sample(list(choices), size)
