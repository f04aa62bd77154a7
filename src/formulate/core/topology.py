"""
Formulation topology model.

Each of the five layouts is a fixed graph template: a legal slot vocabulary,
cardinality rules for the indexed slot series, and a default set of
connections. The engine checks that a diagram conforms to its template; it
never lays out arbitrary graphs.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from .ir import (
    ConnectionDirection,
    ConnectionStyle,
    FormulationConnection,
    FormulationLayout,
    FormulationNode,
)

logger = logging.getLogger(__name__)

_SERIES_SLOT = re.compile(r"^(?P<prefix>[a-z]+)-(?P<index>\d+)$")


@dataclass(frozen=True)
class SlotSeries:
    """An indexed run of slots such as ``petal-0 .. petal-7``."""

    prefix: str
    min_count: int
    max_count: int
    allowed_counts: tuple[int, ...] | None = None

    @property
    def slots(self) -> list[str]:
        return [f"{self.prefix}-{i}" for i in range(self.max_count)]


@dataclass(frozen=True)
class LayoutRule:
    """Slot vocabulary and cardinality rules for one layout."""

    layout: FormulationLayout
    fixed: tuple[str, ...] = ()
    required: frozenset[str] = frozenset()
    series: tuple[SlotSeries, ...] = field(default_factory=tuple)

    @property
    def slots(self) -> list[str]:
        slots = list(self.fixed)
        for s in self.series:
            slots.extend(s.slots)
        return slots


LAYOUT_RULES: dict[FormulationLayout, LayoutRule] = {
    FormulationLayout.CROSS_SECTIONAL: LayoutRule(
        layout=FormulationLayout.CROSS_SECTIONAL,
        fixed=("top", "left", "centre", "right", "bottom"),
        required=frozenset({"top", "left", "centre", "right", "bottom"}),
    ),
    FormulationLayout.RADIAL: LayoutRule(
        layout=FormulationLayout.RADIAL,
        fixed=("centre",),
        required=frozenset({"centre"}),
        series=(SlotSeries("petal", 3, 8),),
    ),
    FormulationLayout.VERTICAL_FLOW: LayoutRule(
        layout=FormulationLayout.VERTICAL_FLOW,
        series=(
            SlotSeries("step", 2, 8),
            SlotSeries("grid", 0, 4, allowed_counts=(0, 4)),
        ),
    ),
    FormulationLayout.CYCLE: LayoutRule(
        layout=FormulationLayout.CYCLE,
        series=(SlotSeries("cycle", 3, 6),),
    ),
    FormulationLayout.THREE_SYSTEMS: LayoutRule(
        layout=FormulationLayout.THREE_SYSTEMS,
        series=(SlotSeries("system", 3, 3),),
    ),
}


def layout_slots(layout: FormulationLayout | str) -> list[str]:
    """
    Return the ordered vocabulary of legal slots for a layout.

    Examples:
        - layout_slots("three_systems") -> ["system-0", "system-1", "system-2"]
        - layout_slots("cycle") -> ["cycle-0", ..., "cycle-5"]
    """
    return LAYOUT_RULES[FormulationLayout(layout)].slots


def is_valid_slot(layout: FormulationLayout | str, slot: str) -> bool:
    return slot in layout_slots(layout)


def _series_members(slots: Sequence[str], prefix: str) -> list[int]:
    indices = []
    for slot in slots:
        match = _SERIES_SLOT.match(slot)
        if match and match.group("prefix") == prefix:
            indices.append(int(match.group("index")))
    return sorted(indices)


def validate_graph(
    layout: FormulationLayout | str,
    nodes: Sequence[FormulationNode],
    connections: Sequence[FormulationConnection],
) -> list[str]:
    """
    Check a diagram against its layout template.

    Checks:
    - Node ids are unique
    - Every slot is legal for the layout and used at most once
    - Required slots are present
    - Each slot series has an allowed, contiguous count (petal-0..petal-N)
    - Connection endpoints reference declared nodes and are not self-loops

    Returns:
        List of error messages (empty if the graph conforms)
    """
    rule = LAYOUT_RULES[FormulationLayout(layout)]
    errors: list[str] = []
    legal = set(rule.slots)

    id_counts = Counter(n.id for n in nodes)
    duplicates = sorted(nid for nid, count in id_counts.items() if count > 1)
    if duplicates:
        errors.append(f"duplicate node ids: {', '.join(duplicates)}")

    for node in nodes:
        if node.slot in legal:
            continue
        if rule.layout == FormulationLayout.THREE_SYSTEMS and node.slot == "centre":
            errors.append(
                f"node '{node.id}' uses slot 'centre', which three_systems does not permit"
            )
        else:
            errors.append(
                f"node '{node.id}' uses slot '{node.slot}', which is not valid for "
                f"layout '{rule.layout.value}' (allowed: {', '.join(rule.slots)})"
            )

    slot_counts = Counter(n.slot for n in nodes if n.slot in legal)
    for slot, count in slot_counts.items():
        if count > 1:
            errors.append(f"slot '{slot}' is used by {count} nodes")

    used = [n.slot for n in nodes if n.slot in legal]
    for slot in rule.fixed:
        if slot in rule.required and slot not in used:
            errors.append(f"layout '{rule.layout.value}' requires a node in slot '{slot}'")

    for series in rule.series:
        indices = sorted(set(_series_members(used, series.prefix)))
        count = len(indices)
        if series.allowed_counts is not None:
            if count not in series.allowed_counts:
                allowed = " or ".join(str(c) for c in series.allowed_counts)
                errors.append(
                    f"layout '{rule.layout.value}' needs {allowed} '{series.prefix}' nodes, "
                    f"found {count}"
                )
        elif not series.min_count <= count <= series.max_count:
            if series.min_count == series.max_count:
                expected = f"exactly {series.min_count}"
            else:
                expected = f"{series.min_count}-{series.max_count}"
            errors.append(
                f"layout '{rule.layout.value}' needs {expected} '{series.prefix}' nodes, "
                f"found {count}"
            )
        if indices and indices != list(range(count)):
            errors.append(
                f"'{series.prefix}' slots must be numbered contiguously from "
                f"{series.prefix}-0 (found {', '.join(f'{series.prefix}-{i}' for i in indices)})"
            )

    node_ids = set(id_counts)
    for conn in connections:
        for end in (conn.source, conn.target):
            if end not in node_ids:
                errors.append(f"connection {conn} references unknown node '{end}'")
        if conn.source == conn.target:
            errors.append(f"connection {conn} connects a node to itself")

    return errors


def default_connections(
    layout: FormulationLayout | str,
    nodes: Sequence[FormulationNode],
) -> list[FormulationConnection]:
    """
    Build the template edges for a layout from the nodes present.

    - cross_sectional: top -> middle row, middle row <-> each other, middle -> bottom
    - radial: every petal -> centre (dashed)
    - vertical_flow: step chain, last step -> top of grid, grid neighbours <->
    - cycle: clockwise ring, last -> first
    - three_systems: all three pairs <->

    Edges whose slots are not occupied are skipped.
    """
    layout = FormulationLayout(layout)
    by_slot = {n.slot: n.id for n in nodes}
    edges: list[FormulationConnection] = []

    def link(a: str, b: str, direction: ConnectionDirection = ConnectionDirection.ONE_WAY,
             style: ConnectionStyle = ConnectionStyle.ARROW) -> None:
        if a in by_slot and b in by_slot:
            edges.append(
                FormulationConnection(
                    source=by_slot[a], target=by_slot[b], style=style, direction=direction
                )
            )

    if layout == FormulationLayout.CROSS_SECTIONAL:
        middle = ("left", "centre", "right")
        for slot in middle:
            link("top", slot)
        link("left", "centre", ConnectionDirection.BOTH)
        link("left", "right", ConnectionDirection.BOTH)
        link("centre", "right", ConnectionDirection.BOTH)
        for slot in middle:
            link(slot, "bottom")

    elif layout == FormulationLayout.RADIAL:
        for i in _series_members(list(by_slot), "petal"):
            link(f"petal-{i}", "centre", style=ConnectionStyle.ARROW_DASHED)

    elif layout == FormulationLayout.VERTICAL_FLOW:
        steps = _series_members(list(by_slot), "step")
        for a, b in zip(steps, steps[1:]):
            link(f"step-{a}", f"step-{b}")
        if steps:
            last = f"step-{steps[-1]}"
            link(last, "grid-0")
            link(last, "grid-1")
        for a, b in (("grid-0", "grid-1"), ("grid-0", "grid-2"), ("grid-1", "grid-3"), ("grid-2", "grid-3")):
            link(a, b, ConnectionDirection.BOTH)

    elif layout == FormulationLayout.CYCLE:
        ring = _series_members(list(by_slot), "cycle")
        if len(ring) < 2:
            ring = []
        for i, current in enumerate(ring):
            link(f"cycle-{current}", f"cycle-{ring[(i + 1) % len(ring)]}")

    elif layout == FormulationLayout.THREE_SYSTEMS:
        link("system-0", "system-1", ConnectionDirection.BOTH)
        link("system-1", "system-2", ConnectionDirection.BOTH)
        link("system-2", "system-0", ConnectionDirection.BOTH)

    logger.debug("Built %d default connections for %s layout", len(edges), layout.value)
    return edges
