"""Tests for the dependency resolver."""

from __future__ import annotations

from typing import Any

import pytest

from formulate.core.dependencies import (
    DependencyGraph,
    build_dependency_graph,
    detect_cycles,
    topological_order,
)
from formulate.core.errors import DependencyCycleError
from formulate.core.ir import WorksheetSchema


def graph(edges: dict[str, set[str]], nodes: list[str] | None = None) -> DependencyGraph:
    names = nodes or sorted(set(edges) | {d for deps in edges.values() for d in deps})
    return DependencyGraph(nodes=tuple(names), edges={k: frozenset(v) for k, v in edges.items()})


def schema(*fields: dict[str, Any], **section_extra: Any) -> WorksheetSchema:
    return WorksheetSchema.model_validate(
        {"sections": [{"id": "main", "fields": list(fields), **section_extra}]}
    )


class TestBuildGraph:
    """Tests for graph construction from a schema."""

    def test_computed_paths_become_edges(self) -> None:
        s = schema(
            {"id": "scores", "type": "table", "label": "Scores", "columns": [{"id": "v", "type": "number"}]},
            {
                "id": "total",
                "type": "computed",
                "label": "Total",
                "computation": {"operation": "sum", "field": "scores.v"},
            },
        )
        g = build_dependency_graph(s)
        assert g.reads("total") == {"scores"}
        assert g.nodes == ("main", "scores", "total")

    def test_visibility_rules_become_edges(self) -> None:
        s = schema(
            {"id": "a", "type": "text", "label": "A"},
            {"id": "b", "type": "text", "label": "B", "show_when": {"field": "a", "operator": "not_empty"}},
            show_when={"field": "a", "operator": "equals", "value": "x"},
        )
        g = build_dependency_graph(s)
        assert g.reads("b") == {"a"}
        assert g.reads("main") == {"a"}

    def test_unknown_targets_dropped(self) -> None:
        s = schema(
            {"id": "b", "type": "text", "label": "B", "show_when": {"field": "ghost", "operator": "empty"}},
        )
        assert build_dependency_graph(s).reads("b") == frozenset()

    def test_dependents_are_transitive(self) -> None:
        g = graph({"b": {"a"}, "c": {"b"}, "d": {"x"}})
        assert g.dependents_of({"a"}) == {"b", "c"}
        assert g.readers("b") == {"c"}


class TestDetectCycles:
    """Tests for cycle detection."""

    def test_acyclic_graph(self) -> None:
        assert detect_cycles(graph({"b": {"a"}, "c": {"a", "b"}})) == []

    def test_two_node_cycle(self) -> None:
        cycles = detect_cycles(graph({"a": {"b"}, "b": {"a"}}))
        assert cycles == [["a", "b", "a"]]

    def test_cycle_reported_once(self) -> None:
        cycles = detect_cycles(graph({"a": {"b"}, "b": {"c"}, "c": {"a"}}))
        assert len(cycles) == 1
        assert cycles[0][0] == cycles[0][-1] == "a"

    def test_self_reference(self) -> None:
        assert detect_cycles(graph({"a": {"a"}})) == [["a", "a"]]


class TestTopologicalOrder:
    """Tests for evaluation order."""

    def test_dependencies_first(self) -> None:
        order = topological_order(graph({"total": {"scores"}, "label": {"total"}}, ["label", "total", "scores"]))
        assert order.index("scores") < order.index("total") < order.index("label")

    def test_ties_follow_declaration_order(self) -> None:
        order = topological_order(graph({}, ["c", "a", "b"]))
        assert order == ["c", "a", "b"]

    def test_cycle_raises(self) -> None:
        with pytest.raises(DependencyCycleError) as exc_info:
            topological_order(graph({"a": {"b"}, "b": {"a"}}))
        assert exc_info.value.members == {"a", "b"}
