"""Tests for formulation layout templates."""

from __future__ import annotations

import pytest

from formulate.core.ir import (
    ConnectionDirection,
    ConnectionStyle,
    FormulationConnection,
    FormulationLayout,
    FormulationNode,
)
from formulate.core.topology import (
    LAYOUT_RULES,
    default_connections,
    is_valid_slot,
    layout_slots,
    validate_graph,
)


def nodes(*slots: str) -> list[FormulationNode]:
    """One node per slot, with the node id equal to its slot."""
    return [FormulationNode(id=slot, slot=slot) for slot in slots]


FIVE_AREAS = ("top", "left", "centre", "right", "bottom")


class TestLayoutSlots:
    """Tests for the slot vocabulary of each layout."""

    def test_cross_sectional_slots(self) -> None:
        assert layout_slots("cross_sectional") == list(FIVE_AREAS)

    def test_radial_slots(self) -> None:
        slots = layout_slots(FormulationLayout.RADIAL)
        assert slots[0] == "centre"
        assert slots[1:] == [f"petal-{i}" for i in range(8)]

    def test_vertical_flow_slots(self) -> None:
        slots = layout_slots("vertical_flow")
        assert [s for s in slots if s.startswith("step-")] == [f"step-{i}" for i in range(8)]
        assert [s for s in slots if s.startswith("grid-")] == [f"grid-{i}" for i in range(4)]

    def test_cycle_slots(self) -> None:
        assert layout_slots("cycle") == [f"cycle-{i}" for i in range(6)]

    def test_three_systems_slots(self) -> None:
        assert layout_slots("three_systems") == ["system-0", "system-1", "system-2"]

    def test_is_valid_slot(self) -> None:
        assert is_valid_slot("radial", "petal-7")
        assert not is_valid_slot("radial", "petal-8")
        assert not is_valid_slot("three_systems", "centre")

    def test_unknown_layout_rejected(self) -> None:
        with pytest.raises(ValueError):
            layout_slots("spiral")

    def test_every_layout_has_rule(self) -> None:
        assert set(LAYOUT_RULES) == set(FormulationLayout)


class TestCrossSectional:
    """Tests for the five areas layout."""

    def test_complete_diagram_is_valid(self) -> None:
        assert validate_graph("cross_sectional", nodes(*FIVE_AREAS), []) == []

    def test_missing_slot_reported(self) -> None:
        errors = validate_graph("cross_sectional", nodes("top", "left", "centre", "right"), [])
        assert any("slot 'bottom'" in e for e in errors)

    def test_slot_used_twice(self) -> None:
        diagram = nodes(*FIVE_AREAS) + [FormulationNode(id="extra", slot="top")]
        errors = validate_graph("cross_sectional", diagram, [])
        assert any("slot 'top' is used by 2 nodes" in e for e in errors)

    def test_foreign_slot_reported(self) -> None:
        diagram = nodes(*FIVE_AREAS) + [FormulationNode(id="petal", slot="petal-0")]
        errors = validate_graph("cross_sectional", diagram, [])
        assert any("'petal-0'" in e and "cross_sectional" in e for e in errors)


class TestRadial:
    """Tests for the vicious flower layout."""

    @pytest.mark.parametrize("count", [3, 5, 8])
    def test_petal_counts_in_range(self, count: int) -> None:
        diagram = nodes("centre", *(f"petal-{i}" for i in range(count)))
        assert validate_graph("radial", diagram, []) == []

    @pytest.mark.parametrize("count", [0, 2])
    def test_too_few_petals(self, count: int) -> None:
        diagram = nodes("centre", *(f"petal-{i}" for i in range(count)))
        errors = validate_graph("radial", diagram, [])
        assert f"layout 'radial' needs 3-8 'petal' nodes, found {count}" in errors

    def test_centre_required(self) -> None:
        errors = validate_graph("radial", nodes("petal-0", "petal-1", "petal-2"), [])
        assert any("requires a node in slot 'centre'" in e for e in errors)

    def test_petals_must_be_contiguous(self) -> None:
        errors = validate_graph("radial", nodes("centre", "petal-0", "petal-1", "petal-3"), [])
        assert any("contiguously" in e for e in errors)


class TestVerticalFlow:
    """Tests for the longitudinal layout."""

    def test_steps_only(self) -> None:
        assert validate_graph("vertical_flow", nodes("step-0", "step-1"), []) == []

    def test_steps_with_full_grid(self) -> None:
        diagram = nodes("step-0", "step-1", "step-2", "grid-0", "grid-1", "grid-2", "grid-3")
        assert validate_graph("vertical_flow", diagram, []) == []

    def test_single_step_rejected(self) -> None:
        errors = validate_graph("vertical_flow", nodes("step-0"), [])
        assert any("'step' nodes, found 1" in e for e in errors)

    def test_partial_grid_rejected(self) -> None:
        diagram = nodes("step-0", "step-1", "grid-0", "grid-1")
        errors = validate_graph("vertical_flow", diagram, [])
        assert "layout 'vertical_flow' needs 0 or 4 'grid' nodes, found 2" in errors


class TestCycle:
    """Tests for the maintenance cycle layout."""

    @pytest.mark.parametrize("count", [3, 6])
    def test_valid_ring_sizes(self, count: int) -> None:
        diagram = nodes(*(f"cycle-{i}" for i in range(count)))
        assert validate_graph("cycle", diagram, []) == []

    def test_two_nodes_is_not_a_cycle(self) -> None:
        errors = validate_graph("cycle", nodes("cycle-0", "cycle-1"), [])
        assert any("3-6 'cycle' nodes, found 2" in e for e in errors)


class TestThreeSystems:
    """Tests for the compassion-focused triangle."""

    def test_three_systems_valid(self) -> None:
        assert validate_graph("three_systems", nodes("system-0", "system-1", "system-2"), []) == []

    def test_centre_slot_rejected(self) -> None:
        diagram = nodes("system-0", "system-1", "system-2") + [FormulationNode(id="self", slot="centre")]
        errors = validate_graph("three_systems", diagram, [])
        assert "node 'self' uses slot 'centre', which three_systems does not permit" in errors

    def test_needs_exactly_three(self) -> None:
        errors = validate_graph("three_systems", nodes("system-0", "system-1"), [])
        assert any("exactly 3 'system' nodes, found 2" in e for e in errors)


class TestConnections:
    """Tests for connection checks and default edges."""

    def test_unknown_endpoint(self) -> None:
        conn = FormulationConnection(source="top", target="nowhere")
        errors = validate_graph("cross_sectional", nodes(*FIVE_AREAS), [conn])
        assert any("unknown node 'nowhere'" in e for e in errors)

    def test_self_loop(self) -> None:
        conn = FormulationConnection(source="top", target="top")
        errors = validate_graph("cross_sectional", nodes(*FIVE_AREAS), [conn])
        assert any("connects a node to itself" in e for e in errors)

    def test_wire_keys(self) -> None:
        conn = FormulationConnection.model_validate({"from": "a", "to": "b", "direction": "both"})
        assert conn.source == "a"
        assert conn.target == "b"
        assert str(conn) == "a <-> b"

    def test_duplicate_node_ids(self) -> None:
        diagram = nodes(*FIVE_AREAS)
        diagram[1] = FormulationNode(id="top", slot="left")
        errors = validate_graph("cross_sectional", diagram, [])
        assert "duplicate node ids: top" in errors

    def test_cross_sectional_defaults(self) -> None:
        edges = default_connections("cross_sectional", nodes(*FIVE_AREAS))
        pairs = {(e.source, e.target) for e in edges}
        assert ("top", "centre") in pairs
        assert ("left", "bottom") in pairs
        both = [e for e in edges if e.direction == ConnectionDirection.BOTH]
        assert len(both) == 3
        assert validate_graph("cross_sectional", nodes(*FIVE_AREAS), edges) == []

    def test_radial_defaults_point_at_centre(self) -> None:
        edges = default_connections("radial", nodes("centre", "petal-0", "petal-1", "petal-2"))
        assert len(edges) == 3
        assert all(e.target == "centre" for e in edges)
        assert all(e.style == ConnectionStyle.ARROW_DASHED for e in edges)

    def test_cycle_defaults_close_the_ring(self) -> None:
        edges = default_connections("cycle", nodes("cycle-0", "cycle-1", "cycle-2"))
        assert [(e.source, e.target) for e in edges] == [
            ("cycle-0", "cycle-1"),
            ("cycle-1", "cycle-2"),
            ("cycle-2", "cycle-0"),
        ]

    def test_vertical_flow_defaults_feed_the_grid(self) -> None:
        diagram = nodes("step-0", "step-1", "grid-0", "grid-1", "grid-2", "grid-3")
        pairs = {(e.source, e.target) for e in default_connections("vertical_flow", diagram)}
        assert ("step-0", "step-1") in pairs
        assert ("step-1", "grid-0") in pairs
        assert ("grid-2", "grid-3") in pairs

    def test_missing_slots_skipped(self) -> None:
        edges = default_connections("three_systems", nodes("system-0", "system-1"))
        assert [(e.source, e.target) for e in edges] == [("system-0", "system-1")]
