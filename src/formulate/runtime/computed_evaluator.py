"""
Computed field evaluator.

Computed fields are read-only values derived from other fields through a
fixed set of operations. Evaluation is pure, total and follows the cached
dependency order of the compiled worksheet. A value that cannot be computed
is ``UNRESOLVED``, never an exception, NaN or infinity.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Any

from formulate.core import ir
from formulate.core.config import UNRESOLVED_DISPLAY
from formulate.core.loader import CompiledWorksheet
from formulate.core.paths import PathKind, ResolvedPath

from .value_store import ValueStore
from .values import is_blank, to_number

logger = logging.getLogger(__name__)


class Unresolved(Enum):
    """Sentinel for a computed value that cannot be produced."""

    TOKEN = "unresolved"

    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False


UNRESOLVED = Unresolved.TOKEN

Scalar = float | Unresolved
ComputedValue = Scalar | dict[str, Scalar]


# =============================================================================
# Gathering cells
# =============================================================================


def _row_cells(store: ValueStore, path: ResolvedPath) -> list[Any]:
    """
    Raw cells a path reads, one per row or entry for multi-valued paths.

    Containers (bare table/record ids) yield one item per row/entry.
    """
    value = store.peek(path.field_id)

    if path.kind == PathKind.SCALAR:
        return [value]

    if path.kind == PathKind.FORMULATION_NODE:
        node_id, sub_id = path.key
        node = value.get(node_id, {}) if isinstance(value, Mapping) else {}
        return [node.get(sub_id)] if isinstance(node, Mapping) else [None]

    rows = value if isinstance(value, list) else []

    if path.kind in (PathKind.TABLE, PathKind.RECORD):
        return list(rows)

    if path.kind == PathKind.TABLE_COLUMN:
        (column_id,) = path.key
        return [row.get(column_id) if isinstance(row, Mapping) else None for row in rows]

    # RECORD_SUBFIELD
    group_id, sub_id = path.key
    cells = []
    for entry in rows:
        group = entry.get(group_id) if isinstance(entry, Mapping) else None
        cells.append(group.get(sub_id) if isinstance(group, Mapping) else None)
    return cells


def numeric_values(cells: list[Any]) -> list[float]:
    """Numeric cells only; blanks and non-numeric values are ignored."""
    values = []
    for cell in cells:
        number = to_number(cell)
        if number is not None:
            values.append(number)
    return values


def gather_values(store: ValueStore, path: ResolvedPath) -> list[float]:
    return numeric_values(_row_cells(store, path))


# =============================================================================
# Operations
# =============================================================================


def _mean(values: list[float]) -> Scalar:
    if not values:
        return UNRESOLVED
    return sum(values) / len(values)


def _count(path: ResolvedPath, cells: list[Any]) -> float:
    if path.kind.is_container or path.kind.is_multi_valued:
        return float(len(cells))
    return float(sum(1 for cell in cells if not is_blank(cell)))


def _unary(op: ir.ComputedOperation, path: ResolvedPath, cells: list[Any]) -> Scalar:
    if op == ir.ComputedOperation.COUNT:
        return _count(path, cells)

    values = numeric_values(cells)
    if not values:
        return UNRESOLVED

    if op == ir.ComputedOperation.SUM:
        return float(sum(values))
    elif op == ir.ComputedOperation.AVERAGE:
        return sum(values) / len(values)
    elif op == ir.ComputedOperation.MIN:
        return min(values)
    elif op == ir.ComputedOperation.MAX:
        return max(values)
    return UNRESOLVED


def _binary(op: ir.ComputedOperation, cells_a: list[Any], cells_b: list[Any]) -> Scalar:
    """
    Compare two sides. Each side is reduced to the mean of its numeric cells
    first, so multi-row paths compare column averages.
    """
    mean_a = _mean(numeric_values(cells_a))
    mean_b = _mean(numeric_values(cells_b))
    if mean_a is UNRESOLVED or mean_b is UNRESOLVED:
        return UNRESOLVED

    if op == ir.ComputedOperation.DIFFERENCE:
        return mean_b - mean_a  # type: ignore[operator]
    elif op == ir.ComputedOperation.PERCENTAGE_CHANGE:
        if mean_a == 0:
            return UNRESOLVED
        return (mean_b - mean_a) / mean_a * 100  # type: ignore[operator]
    return UNRESOLVED


def _apply(
    computation: ir.Computation,
    paths: Mapping[str, ResolvedPath],
    cells: Mapping[str, list[Any]],
) -> Scalar:
    op = computation.operation
    if op.is_binary:
        result = _binary(op, cells["field_a"], cells["field_b"])
    else:
        result = _unary(op, paths["field"], cells["field"])
    if result is not UNRESOLVED and not math.isfinite(result):  # type: ignore[arg-type]
        return UNRESOLVED
    return result


def _group_keys(cells: list[Any]) -> dict[str, list[int]]:
    """Row indices per distinct non-blank group value, in first-seen order."""
    groups: dict[str, list[int]] = {}
    for i, cell in enumerate(cells):
        if is_blank(cell):
            continue
        key = cell.strip() if isinstance(cell, str) else str(cell)
        groups.setdefault(key, []).append(i)
    return groups


# =============================================================================
# Entry points
# =============================================================================


def evaluate_computed_field(
    compiled: CompiledWorksheet,
    store: ValueStore,
    field_id: str,
) -> ComputedValue:
    """
    Evaluate one computed field.

    Returns:
        A float, ``UNRESOLVED``, or for ``group_by`` computations a mapping
        from each group value to its aggregate.
    """
    fld = compiled.get_field(field_id)
    if not isinstance(fld, ir.ComputedField):
        return UNRESOLVED

    computation = fld.computation
    paths = compiled.paths[field_id]
    cells = {attr: _row_cells(store, path) for attr, path in paths.items() if attr != "group_by"}

    if computation.group_by is None:
        return _apply(computation, paths, cells)

    grouping = _group_keys(_row_cells(store, paths["group_by"]))
    result: dict[str, Scalar] = {}
    for key, indices in grouping.items():
        subset = {
            attr: [row_cells[i] for i in indices if i < len(row_cells)]
            for attr, row_cells in cells.items()
        }
        result[key] = _apply(computation, paths, subset)
    return result


def resolve_computed(compiled: CompiledWorksheet, store: ValueStore) -> dict[str, ComputedValue]:
    """
    Evaluate every computed field, following the cached dependency order.

    Args:
        compiled: The compiled worksheet
        store: Current values

    Returns:
        Dict of computed values keyed by field id
    """
    result: dict[str, ComputedValue] = {}
    for fld in compiled.computed_fields():
        result[fld.id] = evaluate_computed_field(compiled, store, fld.id)
    logger.debug("Resolved %d computed field(s)", len(result))
    return result


# =============================================================================
# Display
# =============================================================================


def _round_half_up(value: float, places: int) -> str:
    exact = Decimal(repr(value))
    with localcontext() as ctx:
        # quantize needs every integer digit plus the kept places
        ctx.prec = max(ctx.prec, exact.adjusted() + places + 2)
        rounded = exact.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = abs(rounded)
    return str(rounded)


def _format_scalar(value: Scalar, computation: ir.Computation, unresolved_display: str) -> str:
    if value is UNRESOLVED:
        return unresolved_display
    number = float(value)  # type: ignore[arg-type]
    if not math.isfinite(number):
        return unresolved_display

    if computation.operation == ir.ComputedOperation.COUNT:
        return f"{int(number)} items"
    if computation.format == ir.ComputedFormat.INTEGER:
        return _round_half_up(number, 0)
    if computation.format == ir.ComputedFormat.PERCENTAGE_CHANGE:
        text = _round_half_up(number, 1)
        sign = "+" if number > 0 and not text.startswith("-") else ""
        return f"{sign}{text}%"
    return _round_half_up(number, 1)


def format_computed(
    value: ComputedValue,
    computation: ir.Computation,
    unresolved_display: str = UNRESOLVED_DISPLAY,
) -> str:
    """
    Render a computed value for display.

    Examples:
        - 15.0 with no format -> "15.0"
        - 3.0 for a count -> "3 items"
        - -17.5 with format percentage_change -> "-17.5%"
        - UNRESOLVED -> "—"
        - {"Mon": 2.0, "Tue": 4.0} -> "Mon: 2.0, Tue: 4.0"
    """
    if isinstance(value, dict):
        if not value:
            return unresolved_display
        return ", ".join(
            f"{key}: {_format_scalar(item, computation, unresolved_display)}" for key, item in value.items()
        )
    return _format_scalar(value, computation, unresolved_display)
