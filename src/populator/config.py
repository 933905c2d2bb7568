"""
Run configuration and model selection.

PopulationConfig can be built in code, from a YAML file via load_config(),
or from command line options (see cli.py).
"""

from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml
from faker import Faker

from .errors import ConflictingOptionsError, UnresolvedModelError
from .schema import EntitySchema, SchemaRegistry

DEFAULT_RECORDS = 5
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class PopulationConfig:
    """Configuration for one population run."""

    # Volume
    records: int = DEFAULT_RECORDS  # Records per selected model

    # Randomness
    seed: int | None = None  # Same seed -> same data
    locale: str = "en_US"

    # Model selection (mutually exclusive)
    only: list[str] = field(default_factory=list)
    ignore: list[str] = field(default_factory=list)

    # Inputs and outputs
    schema_path: Path | None = None
    dsn: str | None = None  # None -> in-memory dry run

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    def validate(self) -> None:
        """
        Reject inconsistent settings before anything is registered.

        Raises:
            ConflictingOptionsError: If both `only` and `ignore` are set
            ValueError: If records is not positive
        """
        if self.only and self.ignore:
            raise ConflictingOptionsError(
                "It is not allowed to set both 'only' and 'ignore' options at the same time"
            )
        if self.records < 1:
            raise ValueError(f"records must be >= 1, got {self.records}")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got {self.log_level!r}")


def load_config(config_path: Path) -> PopulationConfig:
    """
    Read a PopulationConfig from YAML.

    Raises:
        ValueError: On unknown keys or malformed YAML
    """
    with open(config_path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

    known = {f.name for f in fields(PopulationConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys in {config_path}: {sorted(unknown)}")

    if data.get("schema_path") is not None:
        data["schema_path"] = Path(data["schema_path"])
    for key in ("only", "ignore"):
        if isinstance(data.get(key), str):
            data[key] = [data[key]]

    return PopulationConfig(**data)


def select_models(registry: SchemaRegistry, config: PopulationConfig) -> list[EntitySchema]:
    """
    Pick the models to populate.

    `only` selects the named models. Otherwise every model is used, minus
    the `ignore` list. Framework-internal models are skipped either way, and
    every name in either list must exist.

    Raises:
        ConflictingOptionsError: If both lists are set
        UnresolvedModelError: If a listed name is unknown, or nothing is left
    """
    config.validate()

    if config.only:
        models = [m for m in (registry.get(name) for name in config.only) if not m.auto_created]
    else:
        ignored = {registry.get(name).name for name in config.ignore}
        models = [m for m in registry.models() if m.name not in ignored]

    if not models:
        raise UnresolvedModelError("Sorry could not locate models")
    return models


def build_faker(config: PopulationConfig) -> Faker:
    """Create the Faker generator, seeded when the config asks for it."""
    fake = Faker(config.locale)
    if config.seed is not None:
        fake.seed_instance(config.seed)
    return fake
