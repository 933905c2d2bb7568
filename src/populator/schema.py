"""
Entity schema descriptions and the metadata provider.

The engine never reflects over models at runtime. Callers describe each
entity type explicitly, either in code with the dataclasses below or in a
YAML schema file loaded through load_schemas().

Usage:
    registry = load_schemas(Path("schema.yaml"))
    user = registry.get("shop.User")
    user.fields          # scalar fields, in declaration order
    user.relations       # single-valued relations
    user.many_to_many    # multi-valued relations
"""

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Protocol, Union, runtime_checkable

import yaml

from .errors import UnresolvedModelError

# Semantic column types understood by ColumnTypeGuesser
DB_TYPES = frozenset(
    {
        "boolean",
        "decimal",
        "smallint",
        "integer",
        "bigint",
        "float",
        "string",
        "text",
        "date",
        "time",
        "datetime",
    }
)


@dataclass(frozen=True)
class ScalarField:
    """A plain column of an entity."""

    name: str
    db_type: str
    max_length: int | None = None
    nullable: bool = False
    decimal_places: int | None = None
    primary_key: bool = False


@dataclass(frozen=True)
class RelationField:
    """
    A foreign key (single-valued) or many-to-many (multi-valued) relation.

    For many-to-many relations `through` names the join table. A join that
    the caller manages itself is marked with through_auto_created=False and
    is never written by the engine.
    """

    name: str
    target: Union[str, "EntitySchema"]
    unique: bool = False
    nullable: bool = False
    column: str | None = None
    through: str | None = None
    through_auto_created: bool = True
    source_column: str | None = None
    target_column: str | None = None

    @property
    def target_name(self) -> str:
        """Identifier of the related entity type."""
        if isinstance(self.target, str):
            return self.target
        return self.target.name

    @property
    def column_name(self) -> str:
        """Foreign key column written for single-valued relations."""
        return self.column or f"{self.name}_id"


@dataclass(frozen=True)
class EntitySchema:
    """Immutable description of one entity type."""

    name: str
    table: str
    fields: tuple[ScalarField, ...] = ()
    relations: tuple[RelationField, ...] = ()
    many_to_many: tuple[RelationField, ...] = ()
    auto_created: bool = False

    @property
    def primary_key(self) -> str:
        for f in self.fields:
            if f.primary_key:
                return f.name
        return "id"

    def get_field(self, name: str) -> ScalarField | RelationField:
        """
        Look up a scalar or relation field by name.

        Raises:
            KeyError: If the entity has no such field
        """
        for f in (*self.fields, *self.relations, *self.many_to_many):
            if f.name == name:
                return f
        raise KeyError(f"{self.name} has no field '{name}'")

    def is_many_to_many(self, name: str) -> bool:
        return any(f.name == name for f in self.many_to_many)

    def dependencies(self) -> set[str]:
        """Entity types this one needs rows of, self references excluded."""
        return {
            rel.target_name
            for rel in (*self.relations, *self.many_to_many)
            if rel.target_name != self.name
        }


@runtime_checkable
class SelfDescribingFormatters(Protocol):
    """
    Capability of an entity that knows how to fake its own fields.

    register_formatters() receives the Faker generator and returns a mapping
    of field name to formatter. These formatters win over the name and type
    guessers but lose to per-call overrides passed to register().
    """

    def register_formatters(self, fake: Any) -> Mapping[str, Any]: ...


class SchemaRegistry:
    """
    Metadata provider: resolves entity identifiers to EntitySchema.

    Lookups are exact first, then case-insensitive, then by the short
    (unqualified) name when that is unambiguous.
    """

    def __init__(self, schemas: list[EntitySchema] | None = None):
        self._schemas: dict[str, EntitySchema] = {}
        for schema in schemas or []:
            self.add(schema)

    def add(self, schema: EntitySchema) -> None:
        self._schemas[schema.name] = schema

    def get(self, name: str) -> EntitySchema:
        """
        Resolve an entity identifier.

        Raises:
            UnresolvedModelError: If no schema matches the name
        """
        if name in self._schemas:
            return self._schemas[name]

        lowered = name.lower()
        for key, schema in self._schemas.items():
            if key.lower() == lowered:
                return schema

        short = [s for key, s in self._schemas.items() if key.rsplit(".", 1)[-1].lower() == lowered]
        if len(short) == 1:
            return short[0]

        raise UnresolvedModelError(f"Could not find a model named '{name}'")

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        try:
            self.get(name)
        except UnresolvedModelError:
            return False
        return True

    def __iter__(self) -> Iterator[EntitySchema]:
        return iter(self._schemas.values())

    def __len__(self) -> int:
        return len(self._schemas)

    def models(self, include_auto_created: bool = False) -> list[EntitySchema]:
        """All described entities, framework-internal ones excluded by default."""
        return [s for s in self._schemas.values() if include_auto_created or not s.auto_created]


# =========================================================================
# YAML LOADING
# =========================================================================


@dataclass
class ValidationError:
    """A problem found in a schema description file."""

    element_name: str
    field: str
    message: str

    def __str__(self):
        return f"entity '{self.element_name}': {self.field} - {self.message}"


class SchemaValidationError(Exception):
    """Raised when a schema description file is malformed."""

    def __init__(self, errors: list[ValidationError]):
        self.errors = errors
        message = f"Schema validation failed with {len(errors)} error(s):\n"
        message += "\n".join(f"  - {e}" for e in errors)
        super().__init__(message)


_SCALAR_KEYS = {"name", "type", "max_length", "nullable", "decimal_places", "primary_key"}
_RELATION_KEYS = {
    "name",
    "target",
    "unique",
    "nullable",
    "column",
    "through",
    "through_auto_created",
    "source_column",
    "target_column",
}


def _default_table(name: str) -> str:
    """shop.OrderLine -> order_line"""
    short = name.rsplit(".", 1)[-1]
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", short)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def _parse_scalar(entity: str, raw: dict, errors: list[ValidationError]) -> ScalarField | None:
    unknown = set(raw) - _SCALAR_KEYS
    if unknown:
        errors.append(ValidationError(entity, "fields", f"unknown keys {sorted(unknown)}"))
    if "name" not in raw or "type" not in raw:
        errors.append(ValidationError(entity, "fields", f"field requires 'name' and 'type': {raw}"))
        return None
    return ScalarField(
        name=raw["name"],
        db_type=str(raw["type"]).lower(),
        max_length=raw.get("max_length"),
        nullable=bool(raw.get("nullable", False)),
        decimal_places=raw.get("decimal_places"),
        primary_key=bool(raw.get("primary_key", False)),
    )


def _parse_relation(
    entity: str, section: str, raw: dict, errors: list[ValidationError]
) -> RelationField | None:
    unknown = set(raw) - _RELATION_KEYS
    if unknown:
        errors.append(ValidationError(entity, section, f"unknown keys {sorted(unknown)}"))
    if "name" not in raw or "target" not in raw:
        errors.append(
            ValidationError(entity, section, f"relation requires 'name' and 'target': {raw}")
        )
        return None
    return RelationField(
        name=raw["name"],
        target=raw["target"],
        unique=bool(raw.get("unique", False)),
        nullable=bool(raw.get("nullable", False)),
        column=raw.get("column"),
        through=raw.get("through"),
        through_auto_created=bool(raw.get("through_auto_created", True)),
        source_column=raw.get("source_column"),
        target_column=raw.get("target_column"),
    )


def parse_schemas(data: dict[str, Any]) -> SchemaRegistry:
    """
    Build a registry from an already-parsed schema document.

    Expected shape:
        entities:
          shop.User:
            table: users
            fields:
              - {name: id, type: integer, primary_key: true}
              - {name: email, type: string, max_length: 120}
            relations:
              - {name: manager, target: shop.User, nullable: true}
            many_to_many:
              - {name: groups, target: shop.Group, through: user_groups}

    Raises:
        SchemaValidationError: If any entity description is malformed
    """
    errors: list[ValidationError] = []
    schemas: list[EntitySchema] = []

    entities = (data or {}).get("entities")
    if not isinstance(entities, dict):
        raise SchemaValidationError(
            [ValidationError("<root>", "entities", "a mapping of entity names is required")]
        )

    for name, body in entities.items():
        body = body or {}
        fields = [_parse_scalar(name, f, errors) for f in body.get("fields", [])]
        relations = [_parse_relation(name, "relations", r, errors) for r in body.get("relations", [])]
        m2m = [_parse_relation(name, "many_to_many", r, errors) for r in body.get("many_to_many", [])]

        for rel in m2m:
            if rel is not None and rel.through is None:
                errors.append(
                    ValidationError(name, "many_to_many", f"'{rel.name}' requires a 'through' table")
                )

        schemas.append(
            EntitySchema(
                name=name,
                table=body.get("table") or _default_table(name),
                fields=tuple(f for f in fields if f is not None),
                relations=tuple(r for r in relations if r is not None),
                many_to_many=tuple(r for r in m2m if r is not None),
                auto_created=bool(body.get("auto_created", False)),
            )
        )

    # relation targets may use any name the registry accepts; store the canonical one
    registry = SchemaRegistry(schemas)
    schemas = [
        replace(
            schema,
            relations=tuple(
                _resolve_target(registry, schema.name, "relations", r, errors)
                for r in schema.relations
            ),
            many_to_many=tuple(
                _resolve_target(registry, schema.name, "many_to_many", r, errors)
                for r in schema.many_to_many
            ),
        )
        for schema in schemas
    ]

    if errors:
        raise SchemaValidationError(errors)
    return SchemaRegistry(schemas)


def _resolve_target(
    registry: SchemaRegistry,
    entity: str,
    section: str,
    rel: RelationField,
    errors: list[ValidationError],
) -> RelationField:
    try:
        target = registry.get(rel.target_name)
    except UnresolvedModelError:
        errors.append(
            ValidationError(entity, section, f"'{rel.name}' has unknown target '{rel.target_name}'")
        )
        return rel
    return replace(rel, target=target.name)


def load_schemas(schema_path: Path) -> SchemaRegistry:
    """
    Load a YAML schema description file into a SchemaRegistry.

    Raises:
        SchemaValidationError: If the file is not valid YAML or describes
                               malformed entities
    """
    with open(schema_path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise SchemaValidationError([ValidationError("<root>", "yaml", str(exc))]) from exc
    return parse_schemas(data)
