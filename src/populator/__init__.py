"""
Populator - relationally consistent sample data for any store.

Registers entity types with a record count, orders them by their foreign
key dependencies and fills them with Faker-generated values inside a single
transaction, so a failed run never leaves partial data behind.
"""

from .builder import RecordBuilder
from .engine import PopulationEngine, strict_warnings
from .errors import (
    ConflictingOptionsError,
    CyclicDependencyError,
    FormatterError,
    PersistenceError,
    PopulationError,
    PopulatorError,
    UnresolvedModelError,
)
from .graph import DependencyGraph, topological_sort
from .record import InsertedRegistry, Record
from .schema import (
    EntitySchema,
    RelationField,
    ScalarField,
    SchemaRegistry,
    SelfDescribingFormatters,
    load_schemas,
)

__version__ = "0.1.0"

__all__ = [
    # Engine
    "PopulationEngine",
    "RecordBuilder",
    "strict_warnings",
    # Ordering
    "DependencyGraph",
    "topological_sort",
    # Records
    "InsertedRegistry",
    "Record",
    # Schema
    "EntitySchema",
    "RelationField",
    "ScalarField",
    "SchemaRegistry",
    "SelfDescribingFormatters",
    "load_schemas",
    # Errors
    "ConflictingOptionsError",
    "CyclicDependencyError",
    "FormatterError",
    "PersistenceError",
    "PopulationError",
    "PopulatorError",
    "UnresolvedModelError",
]
