"""
Formatter resolution for one entity type.

First match wins per field:
1. formatters supplied by the entity itself (SelfDescribingFormatters)
2. NameGuesser, parameterized by the field's max length and column type
3. ColumnTypeGuesser, keyed off the declared column type
Relations always get a RelationFormatter / ManyToManyFormatter and are
never guessed. Per-call overrides are merged on top afterwards by the
RecordBuilder.
"""

from collections.abc import Mapping
from typing import Any

from faker import Faker

from ..schema import EntitySchema
from .guessers import ColumnTypeGuesser, NameGuesser
from .relations import ManyToManyFormatter, RelationFormatter


def guess_column_formatters(
    schema: EntitySchema,
    generator: Faker,
    user_formatters: Mapping[str, Any] | None = None,
    generate_id: bool = False,
) -> dict[str, Any]:
    """
    Build the formatter map for an entity.

    Args:
        schema: Entity to build formatters for
        generator: Faker instance shared by the whole run
        user_formatters: Formatters the entity supplies for its own fields
        generate_id: Also fake primary key columns instead of leaving them
                     to the database

    Returns:
        Dict of field name -> formatter, in field declaration order
    """
    user_formatters = user_formatters or {}
    formatters: dict[str, Any] = {}
    name_guesser = NameGuesser(generator)
    column_type_guesser = ColumnTypeGuesser(generator)

    for field in schema.fields:
        if field.primary_key and not generate_id:
            continue
        if field.name in user_formatters:
            formatters[field.name] = user_formatters[field.name]
            continue

        formatter = name_guesser.guess_format(field.name, field.max_length, field.db_type)
        if formatter is not None:
            formatters[field.name] = formatter
            continue

        formatter = column_type_guesser.guess_format(field)
        if formatter is not None:
            formatters[field.name] = formatter

    # forward relations, non m2m
    for rel in schema.relations:
        formatters[rel.name] = RelationFormatter(rel, generator.random)

    for rel in schema.many_to_many:
        formatters[rel.name] = ManyToManyFormatter(rel, generator.random)

    return formatters
