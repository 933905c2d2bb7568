"""
Value formatters.

This package provides the field -> formatter machinery used by RecordBuilder:
- guessers: NameGuesser and ColumnTypeGuesser on top of Faker
- relations: stateful formatters for foreign key and many-to-many fields
- registry: per-entity resolution order
"""

from .guessers import (
    BIGINT_MAX,
    DEFAULT_DECIMAL_PLACES,
    DEFAULT_STRING_LENGTH,
    FLOAT_OPERAND_MAX,
    INTEGER_MAX,
    SMALLINT_MAX,
    ColumnTypeGuesser,
    Formatter,
    NameGuesser,
)
from .registry import guess_column_formatters
from .relations import ManyToManyFormatter, RelationFormatter

__all__ = [
    # Constants
    "BIGINT_MAX",
    "DEFAULT_DECIMAL_PLACES",
    "DEFAULT_STRING_LENGTH",
    "FLOAT_OPERAND_MAX",
    "INTEGER_MAX",
    "SMALLINT_MAX",
    # Types
    "Formatter",
    # Guessers
    "ColumnTypeGuesser",
    "NameGuesser",
    # Relations
    "ManyToManyFormatter",
    "RelationFormatter",
    # Resolution
    "guess_column_formatters",
]
