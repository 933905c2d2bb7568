"""
Entity dependency graph and insertion ordering.

An edge A -> B means "A needs at least one already-inserted row of B".
Self references never become edges, so an entity with a relation to itself
is free to be generated as soon as its other dependencies are.

Ordering uses Kahn's algorithm. Within one round every entity whose
dependency set is empty is emitted, in the order the entities were added
to the graph; that is the tie-break.
"""

from collections.abc import Iterable, Mapping

import networkx as nx

from .errors import CyclicDependencyError
from .schema import EntitySchema


def topological_sort(dependency: Mapping[str, Iterable[str]]) -> list[str]:
    """
    Sort entity ids so that every entity comes after everything it requires.

    Args:
        dependency: entity id -> ids it requires

    Returns:
        Entity ids in a valid insertion order

    Raises:
        CyclicDependencyError: If some entities can never be resolved, either
            because of a cycle or because they require an id that is not a
            key of `dependency`. No partial order is returned.
    """
    deps = {parent: set(dep) for parent, dep in dependency.items()}
    sorted_ids: list[str] = []

    while deps:
        no_deps = [parent for parent, dep in deps.items() if not dep]

        # no vertex with zero in-degree left, hence we have a loop
        if not no_deps:
            raise CyclicDependencyError(deps, find_cycle(deps))

        sorted_ids.extend(no_deps)
        resolved = set(no_deps)
        deps = {parent: dep - resolved for parent, dep in deps.items() if parent not in resolved}

    return sorted_ids


def _to_digraph(dependency: Mapping[str, Iterable[str]]) -> nx.DiGraph:
    graph = nx.DiGraph()
    for parent, deps in dependency.items():
        graph.add_node(parent)
        graph.add_edges_from((parent, dep) for dep in deps)
    return graph


def find_cycle(dependency: Mapping[str, Iterable[str]]) -> list[str] | None:
    """Return one dependency cycle as a closed path of ids, or None."""
    graph = _to_digraph(dependency)
    try:
        edges = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:
        return None
    return [edges[0][0]] + [to for _, to in edges]


class DependencyGraph:
    """Mutable "requires" mapping built up while entities are registered."""

    def __init__(self) -> None:
        self._requires: dict[str, set[str]] = {}

    def add(self, entity: str, requires: Iterable[str] = ()) -> None:
        """Set the dependencies of an entity, replacing earlier ones."""
        self._requires[entity] = {dep for dep in requires if dep != entity}

    def add_schema(self, schema: EntitySchema) -> None:
        self.add(schema.name, schema.dependencies())

    def remove(self, entity: str) -> None:
        self._requires.pop(entity, None)

    def requires(self, entity: str) -> set[str]:
        return set(self._requires[entity])

    def missing(self) -> dict[str, set[str]]:
        """Entities that require ids which were never added to the graph."""
        known = set(self._requires)
        result = {}
        for entity, deps in self._requires.items():
            unknown = deps - known
            if unknown:
                result[entity] = unknown
        return result

    def as_mapping(self) -> dict[str, set[str]]:
        return {entity: set(deps) for entity, deps in self._requires.items()}

    def order(self) -> list[str]:
        return topological_sort(self._requires)

    def to_networkx(self) -> nx.DiGraph:
        """Edges point from an entity to the entities it requires."""
        return _to_digraph(self._requires)

    def __contains__(self, entity: object) -> bool:
        return entity in self._requires

    def __len__(self) -> int:
        return len(self._requires)
