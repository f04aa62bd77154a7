"""
Resolved view: the read-only projection consumed by renderers and exporters.

A view bundles a snapshot of the values with the visibility map and the
computed results. Visibility is resolved first, then computed fields in the
cached dependency order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from formulate.core import ir
from formulate.core.config import DEFAULT_CONFIG, EngineConfig
from formulate.core.loader import CompiledWorksheet

from .computed_evaluator import (
    ComputedValue,
    evaluate_computed_field,
    format_computed,
    resolve_computed,
)
from .value_store import ValueStore
from .values import is_empty_value
from .visibility_evaluator import evaluate_rule, resolve_visibility

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedView:
    """
    Values, visibility and computed results for one value store.

    Attributes:
        compiled: The compiled worksheet the view was resolved against
        values: Snapshot of the input values
        visibility: Section and field id -> visible
        computed: Computed field id -> value (float, mapping or UNRESOLVED)
    """

    compiled: CompiledWorksheet
    values: dict[str, Any]
    visibility: dict[str, bool]
    computed: dict[str, ComputedValue] = field(default_factory=dict)

    def is_visible(self, node_id: str) -> bool:
        return self.visibility.get(node_id, True)

    def visible_fields(self, section_id: str) -> list[str]:
        section = self.compiled.sections.get(section_id)
        if section is None:
            return []
        return [f.id for f in section.fields if self.is_visible(f.id)]

    def rendered_sections(self) -> list[str]:
        """Sections that are visible and have at least one visible field."""
        return [
            s.id
            for s in self.compiled.schema.sections
            if self.is_visible(s.id) and self.visible_fields(s.id)
        ]

    def display(self, field_id: str, config: EngineConfig = DEFAULT_CONFIG) -> str | None:
        """Display string of a computed field, None for other ids."""
        fld = self.compiled.get_field(field_id)
        if not isinstance(fld, ir.ComputedField) or field_id not in self.computed:
            return None
        return format_computed(self.computed[field_id], fld.computation, config.unresolved_display)


def resolved_view(
    compiled: CompiledWorksheet,
    store: ValueStore,
    config: EngineConfig = DEFAULT_CONFIG,
) -> ResolvedView:
    """Resolve visibility, then every computed field."""
    visibility = resolve_visibility(compiled, store, config)
    computed = resolve_computed(compiled, store)
    return ResolvedView(
        compiled=compiled, values=store.to_dict(), visibility=visibility, computed=computed
    )


def refresh_view(
    view: ResolvedView,
    previous: ValueStore,
    current: ValueStore,
    config: EngineConfig = DEFAULT_CONFIG,
) -> ResolvedView:
    """
    Update a view after a mutation, re-evaluating only what can change.

    Args:
        view: View resolved against ``previous``
        previous: Store the view was built from
        current: Store after the mutation
        config: Engine configuration

    Returns:
        A new view equal to ``resolved_view(compiled, current, config)``
    """
    compiled = view.compiled
    changed = previous.diff(current)
    if not changed:
        return view

    affected = compiled.graph.dependents_of(changed)

    visibility = dict(view.visibility)
    for section in compiled.schema.sections:
        if section.id in affected:
            visibility[section.id] = evaluate_rule(compiled, current, section.show_when, config)
        section_visible = visibility[section.id]
        for fld in section.fields:
            if section.id in affected or fld.id in affected:
                own = evaluate_rule(compiled, current, fld.show_when, config)
                visibility[fld.id] = section_visible and own

    computed = dict(view.computed)
    for fld in compiled.computed_fields():
        if fld.id in affected:
            computed[fld.id] = evaluate_computed_field(compiled, current, fld.id)

    logger.debug("Refreshed view: %d changed, %d affected", len(changed), len(affected))
    return ResolvedView(
        compiled=compiled, values=current.to_dict(), visibility=visibility, computed=computed
    )


# =============================================================================
# Submission
# =============================================================================


@dataclass(frozen=True)
class SubmissionCheck:
    """
    Required-field check before a completion is submitted.

    Attributes:
        missing: Required fields without an answer that block submission
        hidden_skipped: Required, unanswered fields skipped because they are hidden
    """

    missing: list[str] = field(default_factory=list)
    hidden_skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing


def check_submission(
    compiled: CompiledWorksheet,
    store: ValueStore,
    config: EngineConfig = DEFAULT_CONFIG,
) -> SubmissionCheck:
    """
    List required fields that are still unanswered.

    Rows and entries whose cells are all blank do not count as answers.
    Hidden required fields block submission only when
    ``config.hidden_required_blocks_submit`` is set.
    """
    visibility = resolve_visibility(compiled, store, config)
    missing: list[str] = []
    hidden_skipped: list[str] = []

    for fld in compiled.input_fields():
        if not fld.required:
            continue
        if not is_empty_value(fld, store.peek(fld.id), blank_rows_are_empty=True):
            continue
        if not visibility.get(fld.id, True) and not config.hidden_required_blocks_submit:
            hidden_skipped.append(fld.id)
            continue
        missing.append(fld.id)

    if missing:
        logger.info("Submission blocked by %d unanswered required field(s)", len(missing))
    return SubmissionCheck(missing=missing, hidden_skipped=hidden_skipped)
