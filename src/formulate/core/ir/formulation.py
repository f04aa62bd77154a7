"""
Formulation (spatial diagram) types for worksheet IR.

A formulation field is a small node-and-connection graph that must follow one
of five fixed layout templates. Which slots each layout admits is defined in
``formulate.core.topology``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .fields import BaseField, SubField


class FormulationLayout(StrEnum):
    """The five fixed diagram topologies."""

    CROSS_SECTIONAL = "cross_sectional"  # five areas / hot cross bun
    RADIAL = "radial"  # vicious flower
    VERTICAL_FLOW = "vertical_flow"  # longitudinal, optional 2x2 grid
    CYCLE = "cycle"  # clockwise maintenance loop
    THREE_SYSTEMS = "three_systems"  # CFT triangle


class ConnectionStyle(StrEnum):
    ARROW = "arrow"
    ARROW_DASHED = "arrow_dashed"
    LINE = "line"
    LINE_DASHED = "line_dashed"
    INHIBITORY = "inhibitory"


class ConnectionDirection(StrEnum):
    ONE_WAY = "one_way"
    BOTH = "both"
    NONE = "none"


class FormulationNode(BaseModel):
    """A box in the diagram, placed in a layout slot and holding sub-fields."""

    id: str
    slot: str
    label: str = ""
    domain_colour: str | None = None
    description: str | None = None
    fields: list[SubField] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class FormulationConnection(BaseModel):
    """
    A directed edge between two nodes.

    The wire key is ``from``; it is exposed as ``source`` because ``from`` is
    a Python keyword.
    """

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    style: ConnectionStyle = ConnectionStyle.ARROW
    direction: ConnectionDirection = ConnectionDirection.ONE_WAY
    label: str | None = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def __str__(self) -> str:
        arrow = {"one_way": "->", "both": "<->", "none": "--"}[self.direction.value]
        return f"{self.source} {arrow} {self.target}"


class FormulationField(BaseField):
    type: Literal["formulation"] = "formulation"
    layout: FormulationLayout
    title: str | None = None
    nodes: list[FormulationNode] = Field(default_factory=list)
    connections: list[FormulationConnection] = Field(default_factory=list)

    def node(self, node_id: str) -> FormulationNode | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None
