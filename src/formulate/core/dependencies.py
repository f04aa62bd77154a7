"""
Dependency resolver for computed fields and visibility rules.

Builds a directed "A reads B" graph over section and field ids, finds cycles
and produces the evaluation order that is cached on a compiled worksheet.
The order is computed once per schema, never per mutation.
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from . import ir
from .errors import DependencyCycleError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependencyGraph:
    """
    Reference graph of a worksheet.

    Attributes:
        nodes: Every section and field id, in declaration order (a section
            precedes its fields).
        edges: reader id -> ids it reads.
    """

    nodes: tuple[str, ...]
    edges: Mapping[str, frozenset[str]]

    def reads(self, node_id: str) -> frozenset[str]:
        return self.edges.get(node_id, frozenset())

    def readers(self, node_id: str) -> set[str]:
        return {reader for reader, deps in self.edges.items() if node_id in deps}

    def dependents_of(self, changed: Iterable[str]) -> set[str]:
        """Return every id that transitively reads any of the changed ids."""
        pending = list(changed)
        seen: set[str] = set()
        while pending:
            current = pending.pop()
            for reader in self.readers(current):
                if reader not in seen:
                    seen.add(reader)
                    pending.append(reader)
        return seen


def _rule_target(rule: ir.VisibilityRule | None) -> set[str]:
    return {rule.field} if rule is not None else set()


def _computed_targets(computation: ir.Computation) -> set[str]:
    targets: set[str] = set()
    for _attr, raw in computation.raw_paths:
        try:
            targets.add(ir.PathReference.parse(raw).field_id)
        except ValueError:
            # Unparseable paths are reported by the validator
            continue
    return targets


def build_dependency_graph(schema: ir.WorksheetSchema) -> DependencyGraph:
    """
    Build the reference graph for a schema.

    Edges are added for:
    - every computed path (the root field of the path)
    - every ``show_when`` rule on a section or field

    Edges to ids that do not exist in the schema are dropped; the validator
    reports them separately.
    """
    nodes: list[str] = []
    edges: dict[str, set[str]] = {}

    for section in schema.sections:
        nodes.append(section.id)
        edges.setdefault(section.id, set()).update(_rule_target(section.show_when))
        for fld in section.fields:
            nodes.append(fld.id)
            deps = edges.setdefault(fld.id, set())
            deps.update(_rule_target(fld.show_when))
            if isinstance(fld, ir.ComputedField):
                deps.update(_computed_targets(fld.computation))

    known = set(nodes)
    frozen = {
        node: frozenset(dep for dep in deps if dep in known)
        for node, deps in edges.items()
        if deps
    }
    return DependencyGraph(nodes=tuple(dict.fromkeys(nodes)), edges=frozen)


def detect_cycles(graph: DependencyGraph) -> list[list[str]]:
    """
    Find distinct cycles in the graph using depth-first search.

    Returns:
        List of cycles, each as a path that ends where it starts
        (e.g. ["a", "b", "a"]). A self-reference is reported as ["a", "a"].
    """

    def find_cycle(start: str) -> list[str] | None:
        visited: set[str] = set()
        path: list[str] = []

        def dfs(node: str) -> list[str] | None:
            if node in path:
                cycle_start = path.index(node)
                return path[cycle_start:] + [node]
            if node in visited:
                return None
            visited.add(node)
            path.append(node)
            for neighbor in sorted(graph.reads(node)):
                result = dfs(neighbor)
                if result:
                    return result
            path.pop()
            return None

        return dfs(start)

    cycles: list[list[str]] = []
    reported: set[tuple[str, ...]] = set()
    for node in graph.nodes:
        cycle = find_cycle(node)
        if cycle:
            # [a, b, a] and [b, a, b] are the same cycle
            body = cycle[:-1]
            min_idx = body.index(min(body))
            normalized = tuple(body[min_idx:] + body[:min_idx])
            if normalized not in reported:
                reported.add(normalized)
                cycles.append(list(normalized) + [normalized[0]])
    return cycles


def topological_order(graph: DependencyGraph) -> list[str]:
    """
    Order ids so that every id comes after everything it reads.

    Uses Kahn's algorithm; ties are broken by declaration order so the result
    is stable for a given schema.

    Raises:
        DependencyCycleError: If the graph is not acyclic
    """
    position = {node: i for i, node in enumerate(graph.nodes)}
    in_degree = {node: len(graph.reads(node)) for node in graph.nodes}
    readers: dict[str, list[str]] = {node: [] for node in graph.nodes}
    for reader, deps in graph.edges.items():
        for dep in deps:
            readers[dep].append(reader)

    queue = [(position[node], node) for node, degree in in_degree.items() if degree == 0]
    heapq.heapify(queue)
    ordered: list[str] = []

    while queue:
        _, node = heapq.heappop(queue)
        ordered.append(node)
        for reader in readers[node]:
            in_degree[reader] -= 1
            if in_degree[reader] == 0:
                heapq.heappush(queue, (position[reader], reader))

    if len(ordered) != len(graph.nodes):
        raise DependencyCycleError(set(graph.nodes) - set(ordered))

    logger.debug("Resolved evaluation order for %d nodes", len(ordered))
    return ordered
