#!/usr/bin/env python3
"""
Generate sample data for the models described in a schema file.

Usage:
    populator schema.yaml --dry-run
    populator schema.yaml --dsn postgresql://user:pw@localhost/app --records 20
    populator schema.yaml --only shop.User shop.Post --seed 42
    populator schema.yaml --ignore shop.AuditLog
"""

import argparse
import sys
from pathlib import Path

import psycopg2
import structlog

from .config import PopulationConfig, build_faker, load_config, select_models
from .engine import PopulationEngine
from .errors import PersistenceError, PopulatorError
from .logging import configure_logging
from .progress import ConsoleProgress
from .schema import SchemaValidationError, load_schemas
from .storage import MemoryStore, PostgresStore, get_connection

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="populator",
        description="Generate sample data for your models.",
    )
    parser.add_argument("schema", type=Path, help="YAML file describing the models")
    parser.add_argument(
        "-r",
        "--records",
        type=int,
        default=None,
        help="The number of records to generate per model (default: 5)",
    )
    parser.add_argument(
        "-s",
        "--seed",
        type=int,
        default=None,
        help="Always the same generated data: the same seed produces the same results",
    )
    parser.add_argument(
        "-o",
        "--only",
        nargs="+",
        default=None,
        help="The list of models to use when generating records",
    )
    parser.add_argument(
        "-i",
        "--ignore",
        nargs="+",
        default=None,
        help="The list of models to ignore when generating records",
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--dsn", default=None, help="PostgreSQL connection string")
    target.add_argument(
        "--dry-run",
        action="store_true",
        help="Generate into an in-memory store and report row counts",
    )
    parser.add_argument("-c", "--config", type=Path, default=None, help="YAML config file")
    parser.add_argument("--locale", default=None, help="Faker locale (default: en_US)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON")
    return parser


def config_from_args(args: argparse.Namespace) -> PopulationConfig:
    """Layer command line options over the (optional) config file."""
    config = load_config(args.config) if args.config else PopulationConfig()

    config.schema_path = args.schema
    if args.records is not None:
        config.records = args.records
    if args.seed is not None:
        config.seed = args.seed
    if args.only is not None:
        config.only = args.only
    if args.ignore is not None:
        config.ignore = args.ignore
    if args.dsn is not None:
        config.dsn = args.dsn
    if args.dry_run:
        config.dsn = None
    if args.locale is not None:
        config.locale = args.locale
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.json_logs:
        config.json_logs = True
    return config


def run(config: PopulationConfig) -> dict[str, int]:
    """
    Populate the configured store.

    Returns:
        Dict of entity name -> number of records inserted
    """
    registry = load_schemas(config.schema_path)
    models = select_models(registry, config)

    engine = PopulationEngine(build_faker(config), registry)
    for model in models:
        engine.register(model, config.records)

    conn = None
    if config.dsn:
        try:
            conn = get_connection(dsn=config.dsn)
        except psycopg2.Error as exc:
            raise PersistenceError(f"Could not connect to the database: {exc}") from exc
        storage = PostgresStore(conn)
    else:
        storage = MemoryStore()

    try:
        inserted = engine.run(storage, ConsoleProgress())
    finally:
        if conn is not None:
            conn.close()

    return {entity: len(records) for entity, records in inserted.items()}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
        config.validate()
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    configure_logging(json_output=config.json_logs, level=config.log_level)

    try:
        counts = run(config)
    except (PopulatorError, SchemaValidationError, OSError, ValueError) as exc:
        logger.debug("command_failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print()
    print("Generation Summary")
    print("=" * 40)
    for entity, count in counts.items():
        print(f"  {entity}: {count:,} rows")
    print(f"Total rows: {sum(counts.values()):,}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
