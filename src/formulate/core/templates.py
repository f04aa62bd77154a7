"""
Formulation templates: starting points for common CBT models.

A template is a pre-populated node set for one layout. Template edges are the
layout's default connections plus an optional dashed "maintains" feedback
edge. Every template conforms to its layout (checked in the tests).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .ir import (
    ConnectionDirection,
    ConnectionStyle,
    FormulationConnection,
    FormulationField,
    FormulationLayout,
    FormulationNode,
    SubField,
)
from .topology import default_connections

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeSpec:
    """Compact node description: id, slot, label, colour, placeholder."""

    id: str
    slot: str
    label: str
    colour: str
    placeholder: str = ""

    def to_node(self) -> FormulationNode:
        return FormulationNode(
            id=self.id,
            slot=self.slot,
            label=self.label,
            domain_colour=self.colour,
            fields=[SubField(id="text", type="textarea", placeholder=self.placeholder or None)],
        )


@dataclass(frozen=True)
class FormulationTemplate:
    id: str
    name: str
    description: str
    source: str
    layout: FormulationLayout
    nodes: tuple[NodeSpec, ...]
    maintains: tuple[str, str] | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)

    def connections(self) -> list[FormulationConnection]:
        nodes = [n.to_node() for n in self.nodes]
        edges = default_connections(self.layout, nodes)
        if self.maintains is not None:
            source, target = self.maintains
            edges.append(
                FormulationConnection(
                    source=source,
                    target=target,
                    style=ConnectionStyle.ARROW_DASHED,
                    direction=ConnectionDirection.ONE_WAY,
                    label="maintains",
                )
            )
        return edges

    def build(self, field_id: str, label: str | None = None) -> FormulationField:
        """Instantiate the template as a formulation field."""
        return FormulationField(
            id=field_id,
            label=label or self.name,
            layout=self.layout,
            title=self.name,
            nodes=[n.to_node() for n in self.nodes],
            connections=self.connections(),
        )


_GREY = "#8b8e94"
_BLUE = "#5b7fb5"
_RED = "#c46b6b"
_GREEN = "#6b9e7e"
_PURPLE = "#8b7ab5"
_BROWN = "#a07850"


FORMULATION_TEMPLATES: tuple[FormulationTemplate, ...] = (
    FormulationTemplate(
        id="tpl-five-areas",
        name="Generic Five Areas",
        description="Standard CBT five areas model with bidirectional relationships",
        source="Generic CBT",
        layout=FormulationLayout.CROSS_SECTIONAL,
        tags=("CBT", "five areas", "generic"),
        nodes=(
            NodeSpec("trigger", "top", "Situation / Trigger", _GREY, "e.g. Noticed heart racing at desk"),
            NodeSpec("thoughts", "left", "Thoughts", _BLUE, 'e.g. "I\'m having a heart attack"'),
            NodeSpec("emotions", "centre", "Emotions", _RED, "e.g. Anxious, scared"),
            NodeSpec("physical", "right", "Physical Sensations", _GREEN, "e.g. Heart pounding, sweating"),
            NodeSpec("behaviour", "bottom", "Behaviour", _PURPLE, "e.g. Left the room"),
        ),
    ),
    FormulationTemplate(
        id="tpl-health-anxiety",
        name="Health Anxiety Maintenance",
        description="Salkovskis & Warwick health anxiety maintenance model",
        source="Salkovskis & Warwick",
        layout=FormulationLayout.CROSS_SECTIONAL,
        tags=("CBT", "health anxiety", "maintenance"),
        nodes=(
            NodeSpec("trigger", "top", "Trigger", _GREY),
            NodeSpec("interpretations", "left", "Misinterpretations", _BLUE),
            NodeSpec("anxiety", "centre", "Anxiety", _RED),
            NodeSpec("body", "right", "Body Scanning / Sensations", _GREEN),
            NodeSpec("safety", "bottom", "Safety Behaviours", _PURPLE),
        ),
        maintains=("safety", "trigger"),
    ),
    FormulationTemplate(
        id="tpl-vicious-flower",
        name="Vicious Flower",
        description="Core problem at the centre with maintaining factors as petals",
        source="Moorey (2010)",
        layout=FormulationLayout.RADIAL,
        tags=("CBT", "maintenance", "radial"),
        nodes=(
            NodeSpec("core", "centre", "Core Problem", _RED),
            NodeSpec("thoughts", "petal-0", "Thoughts", _BLUE),
            NodeSpec("behaviours", "petal-1", "Behaviours", _PURPLE),
            NodeSpec("safety", "petal-2", "Safety Behaviours", _GREY),
            NodeSpec("attention", "petal-3", "Attention", _GREEN),
        ),
    ),
    FormulationTemplate(
        id="tpl-gad-metacognitive",
        name="GAD Metacognitive Model",
        description="Wells (1995) metacognitive model of generalised anxiety",
        source="Wells (1995)",
        layout=FormulationLayout.VERTICAL_FLOW,
        tags=("CBT", "GAD", "metacognitive", "worry"),
        nodes=(
            NodeSpec("step-0", "step-0", "Trigger", _GREY),
            NodeSpec("step-1", "step-1", "Type 1 Worry", _BLUE),
            NodeSpec("step-2", "step-2", "Meta-Belief Activation", _BROWN),
            NodeSpec("step-3", "step-3", "Type 2 Worry (Meta-Worry)", _RED),
            NodeSpec("step-4", "step-4", "Behavioural Response", _PURPLE),
        ),
        maintains=("step-4", "step-1"),
    ),
    FormulationTemplate(
        id="tpl-longitudinal",
        name="Longitudinal Formulation",
        description="Early experiences through core beliefs to a five areas maintenance grid",
        source="Beck (1995)",
        layout=FormulationLayout.VERTICAL_FLOW,
        tags=("CBT", "longitudinal", "schema"),
        nodes=(
            NodeSpec("early", "step-0", "Early Experiences", _GREY),
            NodeSpec("beliefs", "step-1", "Core Beliefs", _BROWN),
            NodeSpec("assumptions", "step-2", "Rules / Assumptions", _BLUE),
            NodeSpec("incident", "step-3", "Critical Incident", _GREY),
            NodeSpec("thoughts", "grid-0", "Thoughts", _BLUE),
            NodeSpec("emotions", "grid-1", "Emotions", _RED),
            NodeSpec("physical", "grid-2", "Physical Sensations", _GREEN),
            NodeSpec("behaviour", "grid-3", "Behaviour", _PURPLE),
        ),
    ),
    FormulationTemplate(
        id="tpl-panic-cycle",
        name="Panic Maintenance Cycle",
        description="Clark (1986) catastrophic misinterpretation cycle",
        source="Clark (1986)",
        layout=FormulationLayout.CYCLE,
        tags=("CBT", "panic", "cycle", "maintenance"),
        nodes=(
            NodeSpec("cycle-0", "cycle-0", "Trigger", _GREY),
            NodeSpec("cycle-1", "cycle-1", "Catastrophic Misinterpretation", _BLUE),
            NodeSpec("cycle-2", "cycle-2", "Anxiety / Panic", _RED),
            NodeSpec("cycle-3", "cycle-3", "Safety Behaviour", _PURPLE),
        ),
    ),
    FormulationTemplate(
        id="tpl-cft-three-systems",
        name="CFT Three Systems",
        description="Gilbert's three emotion regulation systems",
        source="Gilbert (2009)",
        layout=FormulationLayout.THREE_SYSTEMS,
        tags=("CFT", "compassion", "emotion regulation"),
        nodes=(
            NodeSpec("system-0", "system-0", "Threat System", _RED),
            NodeSpec("system-1", "system-1", "Drive System", _BLUE),
            NodeSpec("system-2", "system-2", "Soothing System", _GREEN),
        ),
    ),
)


def list_templates(layout: FormulationLayout | str | None = None) -> list[FormulationTemplate]:
    """List templates, optionally filtered to one layout."""
    if layout is None:
        return list(FORMULATION_TEMPLATES)
    wanted = FormulationLayout(layout)
    return [t for t in FORMULATION_TEMPLATES if t.layout == wanted]


def get_template(template_id: str) -> FormulationTemplate:
    """
    Look up a template by id.

    Raises:
        KeyError: If no template has that id
    """
    for template in FORMULATION_TEMPLATES:
        if template.id == template_id:
            return template
    raise KeyError(f"Unknown formulation template: {template_id}")
