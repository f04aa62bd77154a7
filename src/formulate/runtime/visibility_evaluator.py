"""
Visibility evaluator for ``show_when`` rules.

Each rule reads one other field and is evaluated against the current store.
A rule that cannot be satisfied (non-numeric value for ``greater_than``,
missing target) evaluates to False and never raises. Hiding never changes
the store: a field that becomes visible again shows its retained value.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

from formulate.core import ir
from formulate.core.config import DEFAULT_CONFIG, EngineConfig
from formulate.core.loader import CompiledWorksheet

from .value_store import ValueStore
from .values import is_empty_value, to_number

logger = logging.getLogger(__name__)

Op = ir.VisibilityOperator


# =============================================================================
# Comparisons
# =============================================================================


def _iter_cells(value: Any) -> Iterator[Any]:
    """Leaf cells of a table, record or formulation value."""
    if isinstance(value, Mapping):
        for item in value.values():
            yield from _iter_cells(item)
    elif isinstance(value, list):
        for item in value:
            yield from _iter_cells(item)
    else:
        yield value


def _scalar_equals(actual: Any, expected: Any) -> bool:
    """
    Numeric comparison when both sides are numbers, otherwise case-sensitive
    string comparison.
    """
    if actual is None or expected is None:
        return actual is None and expected is None
    if isinstance(expected, bool):
        if isinstance(actual, str):
            return (actual.strip().lower() in ("true", "yes", "1")) == expected
        return bool(actual) == expected
    a_num, e_num = to_number(actual), to_number(expected)
    if a_num is not None and e_num is not None:
        return a_num == e_num
    return str(actual) == str(expected)


def _equals(fld: ir.BaseField, actual: Any, expected: Any) -> bool:
    if isinstance(fld, ir.ChecklistField):
        held = list(actual) if isinstance(actual, list) else []
        if isinstance(expected, list):
            return set(held) == set(expected)
        return held == [expected]
    if isinstance(fld, ir.TableField | ir.RecordField | ir.FormulationField):
        # Structured values never equal a scalar target
        return False
    return _scalar_equals(actual, expected)


def _contains(fld: ir.BaseField, actual: Any, expected: Any) -> bool:
    wanted = expected if isinstance(expected, list) else [expected]

    if isinstance(fld, ir.ChecklistField):
        held = actual if isinstance(actual, list) else []
        return all(item in held for item in wanted)

    if isinstance(fld, ir.TableField | ir.RecordField | ir.FormulationField):
        cells = list(_iter_cells(actual))
        return any(_scalar_equals(cell, item) for cell in cells for item in wanted)

    if actual is None:
        return False
    text = str(actual)
    return any(str(item) in text for item in wanted)


def _numeric(actual: Any, expected: Any) -> tuple[float, float] | None:
    a_num, e_num = to_number(actual), to_number(expected)
    if a_num is None or e_num is None:
        return None
    return a_num, e_num


def matches(
    fld: ir.BaseField,
    operator: ir.VisibilityOperator,
    actual: Any,
    expected: Any = None,
    blank_rows_are_empty: bool = False,
) -> bool:
    """
    Apply one operator to a field value.

    Args:
        fld: Definition of the field being read
        operator: Rule operator
        actual: Current value of the field
        expected: Rule target value
        blank_rows_are_empty: Treat tables/records with only blank rows as empty

    Returns:
        True if the predicate holds
    """
    if operator == Op.EMPTY:
        return is_empty_value(fld, actual, blank_rows_are_empty)
    if operator == Op.NOT_EMPTY:
        return not is_empty_value(fld, actual, blank_rows_are_empty)
    if operator == Op.EQUALS:
        return _equals(fld, actual, expected)
    if operator == Op.NOT_EQUALS:
        return not _equals(fld, actual, expected)
    if operator == Op.CONTAINS:
        return _contains(fld, actual, expected)

    pair = _numeric(actual, expected)
    if pair is None:
        return False
    a_num, e_num = pair
    if operator == Op.GREATER_THAN:
        return a_num > e_num
    if operator == Op.LESS_THAN:
        return a_num < e_num
    return False


def evaluate_rule(
    compiled: CompiledWorksheet,
    store: ValueStore,
    rule: ir.VisibilityRule | None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> bool:
    """Evaluate one ``show_when`` rule; no rule means visible."""
    if rule is None:
        return True
    target = compiled.get_field(rule.field)
    if target is None or isinstance(target, ir.ComputedField):
        return False
    return matches(
        target,
        rule.operator,
        store.peek(rule.field),
        rule.value,
        blank_rows_are_empty=config.blank_rows_are_empty,
    )


# =============================================================================
# Entry point
# =============================================================================


def resolve_visibility(
    compiled: CompiledWorksheet,
    store: ValueStore,
    config: EngineConfig = DEFAULT_CONFIG,
) -> dict[str, bool]:
    """
    Compute visibility for every section and field id.

    A field is visible when its section is visible and its own rule holds.
    Rules read stored values only, so a hidden source field still drives the
    fields that depend on it.
    """
    visibility: dict[str, bool] = {}
    for section in compiled.schema.sections:
        section_visible = evaluate_rule(compiled, store, section.show_when, config)
        visibility[section.id] = section_visible
        for fld in section.fields:
            visibility[fld.id] = section_visible and evaluate_rule(compiled, store, fld.show_when, config)

    hidden = sum(1 for v in visibility.values() if not v)
    logger.debug("Resolved visibility: %d of %d hidden", hidden, len(visibility))
    return visibility
