"""
Population engine: registration, ordering and the transactional run loop.

Usage:
    engine = PopulationEngine(Faker(), registry)
    engine.register("shop.User", 10)
    engine.register("shop.Post", 50, formatter_overrides={"status": "draft"})
    inserted = engine.run(MemoryStore(), ConsoleProgress())

run() is all-or-nothing: the whole population happens inside one storage
transaction, and any error (including any warning, which is promoted to an
error for the duration of the run) rolls that transaction back and
surfaces as a single PopulationError.
"""

import time
import warnings
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import structlog
from faker import Faker

from .builder import Modifier, RecordBuilder
from .errors import CyclicDependencyError, PopulationError
from .graph import DependencyGraph
from .progress import NullProgress, ProgressObserver
from .record import InsertedRegistry
from .schema import EntitySchema, SchemaRegistry, SelfDescribingFormatters
from .storage import StorageBackend

logger = structlog.get_logger(__name__)

UNSATISFIED_DEPENDENCIES_MESSAGE = "Models might depend on models whose data isn't being generated"


@contextmanager
def strict_warnings() -> Iterator[None]:
    """
    Turn every warning into an exception inside the block.

    The previous warning filters are restored on every exit path.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        yield


class PopulationEngine:
    """
    Generate related records for a set of entity types in one transaction.

    Attributes:
        generator: Faker instance shared by every formatter
        registry: Metadata provider used to resolve entity names
        graph: "requires" edges between registered entities
    """

    def __init__(self, generator: Faker, registry: SchemaRegistry | None = None):
        self.generator = generator
        self.registry = registry or SchemaRegistry()
        self.graph = DependencyGraph()
        self._builders: dict[str, RecordBuilder] = {}
        self._quantities: dict[str, int] = {}

    @property
    def builders(self) -> dict[str, RecordBuilder]:
        return dict(self._builders)

    @property
    def quantities(self) -> dict[str, int]:
        return dict(self._quantities)

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def _resolve(self, entity: str | EntitySchema) -> EntitySchema:
        if isinstance(entity, EntitySchema):
            return entity
        return self.registry.get(entity)

    def register(
        self,
        entity: str | EntitySchema,
        count: int,
        formatter_overrides: Mapping[str, Any] | None = None,
        modifiers: Iterable[Modifier] | None = None,
        generate_id: bool = False,
    ) -> RecordBuilder:
        """
        Order the generation of `count` records of `entity`.

        Registering an entity again replaces its count, formatters and
        modifiers.

        Args:
            entity: Entity name (resolved through the registry) or schema
            count: Number of records to generate
            formatter_overrides: field name -> formatter or constant; wins
                                 over every guessed formatter
            modifiers: Hooks called as modifier(record, inserted) after the
                       columns are filled and before the record is saved
            generate_id: Fake primary key columns too

        Returns:
            The RecordBuilder created for the entity

        Raises:
            UnresolvedModelError: If `entity` is a name the registry lacks
            ValueError: If count is negative
        """
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")

        schema = self._resolve(entity)
        name = schema.name

        # self references are dropped by the graph
        self.graph.add_schema(schema)

        user_formatters: Mapping[str, Any] = {}
        if isinstance(schema, SelfDescribingFormatters):
            user_formatters = schema.register_formatters(self.generator)

        builder = RecordBuilder(schema, self.generator)
        builder.generate_id = generate_id
        builder.set_user_formatters(user_formatters)
        builder.set_column_formatters(builder.guess_column_formatters())
        if formatter_overrides:
            builder.merge_column_formatters_with(formatter_overrides)
        builder.merge_modifiers_with(modifiers or [])

        if name in self._builders:
            logger.info("entity_reregistered", entity=name)

        self._builders[name] = builder
        self._quantities[name] = count

        logger.debug(
            "entity_registered",
            entity=name,
            count=count,
            formatters=len(builder.column_formatters),
            modifiers=len(builder.modifiers),
            requires=sorted(self.graph.requires(name)),
        )
        return builder

    def unregister(self, entity: str) -> None:
        name = self._resolve(entity).name
        self._builders.pop(name, None)
        self._quantities.pop(name, None)
        self.graph.remove(name)

    # =========================================================================
    # PLANNING
    # =========================================================================

    def plan(self) -> list[str]:
        """
        Compute the insertion order of the registered entities.

        Raises:
            PopulationError: If some entities depend on entities that are not
                             registered, or on each other in a cycle
        """
        try:
            order = self.graph.order()
        except CyclicDependencyError as exc:
            missing = self.graph.missing()
            logger.error(
                "dependency_resolution_failed",
                remaining=sorted(exc.remaining),
                missing={k: sorted(v) for k, v in missing.items()},
                cycle=exc.cycle,
            )
            raise PopulationError(UNSATISFIED_DEPENDENCIES_MESSAGE, cause=exc) from exc

        logger.info("insertion_order_planned", order=order)
        return order

    # =========================================================================
    # RUN
    # =========================================================================

    def _notify(self, observer: ProgressObserver, hook: str, *args: Any) -> None:
        try:
            getattr(observer, hook)(*args)
        except Exception:
            logger.warning("progress_observer_failed", hook=hook, exc_info=True)

    def _populate(
        self,
        order: list[str],
        inserted: InsertedRegistry,
        storage: StorageBackend,
        observer: ProgressObserver,
    ) -> None:
        for entity in order:
            builder = self._builders[entity]
            number = self._quantities[entity]
            started = time.time()

            inserted.declare(entity)
            self._notify(observer, "on_type_start", entity, number)
            for _ in range(number):
                inserted.add(entity, builder.build(inserted, storage))
                self._notify(observer, "on_tick")
            self._notify(observer, "on_type_finish")

            logger.info(
                "entity_populated",
                entity=entity,
                records=number,
                elapsed=round(time.time() - started, 3),
            )

    def _rollback(self, storage: StorageBackend) -> None:
        try:
            storage.rollback()
        except Exception:
            # the population failure is what gets reported
            logger.error("rollback_failed", exc_info=True)
        else:
            logger.info("transaction_rolled_back")

    def run(self, storage: StorageBackend, observer: ProgressObserver | None = None) -> InsertedRegistry:
        """
        Populate the storage with every registered entity.

        Args:
            storage: Backend to write to
            observer: Progress observer (default: report nothing)

        Returns:
            InsertedRegistry of everything that was inserted, by entity, in
            insertion order

        Raises:
            PopulationError: On any failure. Nothing from this run remains in
                             storage when it is raised.
        """
        observer = observer or NullProgress()

        with strict_warnings():
            order = self.plan()
            inserted = InsertedRegistry()

            for builder in self._builders.values():
                builder.freeze()
            try:
                try:
                    storage.begin()
                except Exception as exc:
                    raise PopulationError(f"Failed to generate :: {exc}", cause=exc) from exc
                logger.debug("transaction_started")

                try:
                    self._populate(order, inserted, storage, observer)
                    storage.commit()
                except Exception as exc:
                    logger.error("population_failed", error=str(exc), exc_info=True)
                    self._rollback(storage)
                    raise PopulationError(f"Failed to generate :: {exc}", cause=exc) from exc
                except BaseException:
                    self._rollback(storage)
                    raise
            finally:
                for builder in self._builders.values():
                    builder.unfreeze()

        logger.info(
            "transaction_committed",
            records=sum(len(records) for records in inserted.values()),
        )
        return inserted
