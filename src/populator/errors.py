"""
Exception hierarchy for the population engine.

Planning errors (option validation, dependency ordering) are raised before
any transaction is opened. Everything raised after the transaction is open
is converted into a single PopulationError once the rollback has run.
"""

from typing import Any


class PopulatorError(Exception):
    """Base class for all populator errors."""

    pass


class CyclicDependencyError(PopulatorError):
    """Raised when the dependency graph has no valid insertion order."""

    def __init__(self, remaining: dict[str, set[str]], cycle: list[str] | None = None):
        self.remaining = remaining
        self.cycle = cycle
        message = "Cyclic dependency on topological sort, unresolved: "
        message += ", ".join(
            f"{name} -> [{', '.join(sorted(deps))}]" for name, deps in sorted(remaining.items())
        )
        if cycle:
            message += f" (cycle: {' -> '.join(cycle)})"
        super().__init__(message)


class UnresolvedModelError(PopulatorError, LookupError):
    """Raised when an entity type is referenced but was never described."""

    pass


class FormatterError(PopulatorError):
    """A formatter rejected its arguments while building a record."""

    def __init__(self, entity: str, field: str, cause: BaseException):
        self.entity = entity
        self.field = field
        self.cause = cause
        super().__init__(f"Failed to generate a value for {entity}::{field}: {cause}")


class PersistenceError(PopulatorError):
    """Raised when the storage backend rejects an insert or transaction call."""

    pass


class ConflictingOptionsError(PopulatorError, ValueError):
    """Raised when mutually exclusive selection options are combined."""

    pass


class PopulationError(PopulatorError):
    """
    Terminal failure of a population run.

    The underlying error is chained as ``__cause__`` and kept on ``cause``.
    """

    def __init__(self, message: str, cause: Any = None):
        self.cause = cause
        super().__init__(message)
