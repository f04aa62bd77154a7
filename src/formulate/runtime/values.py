"""
Per-field value rules: defaults, shape checks, numeric coercion, emptiness.

Every check returns a ``ValueProblem`` instead of raising; the value store
turns it into a failed ``UpdateResult`` and keeps the prior state.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any

from formulate.core import ir

_TIME = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ValueErrorCode(StrEnum):
    """Reason codes for a rejected value or structural edit."""

    UNKNOWN_FIELD = "unknown_field"
    READ_ONLY = "read_only"
    SHAPE_MISMATCH = "shape_mismatch"
    UNKNOWN_KEY = "unknown_key"
    UNKNOWN_OPTION = "unknown_option"
    INVALID_FORMAT = "invalid_format"
    OUT_OF_RANGE = "out_of_range"
    COUNT_OUT_OF_RANGE = "count_out_of_range"
    INDEX_OUT_OF_RANGE = "index_out_of_range"
    AT_MINIMUM = "at_minimum"
    AT_MAXIMUM = "at_maximum"


@dataclass(frozen=True)
class ValueProblem:
    code: ValueErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


def _problem(code: ValueErrorCode, message: str) -> ValueProblem:
    return ValueProblem(code, message)


# =============================================================================
# Numbers and emptiness
# =============================================================================


def to_number(value: Any) -> float | None:
    """
    Coerce a stored value to a float for aggregation or comparison.

    Booleans, blanks, non-numeric strings and non-finite numbers give None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def is_number(value: Any) -> bool:
    """True for int/float values that are not booleans."""
    return isinstance(value, int | float) and not isinstance(value, bool)


def is_blank(value: Any) -> bool:
    """None, whitespace-only strings, and empty lists or mappings are blank."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple | dict):
        return len(value) == 0
    return False


def _row_is_blank(row: Mapping[str, Any]) -> bool:
    """A row, entry or node is blank when every (nested) cell is blank."""
    for cell in row.values():
        if isinstance(cell, Mapping):
            if not _row_is_blank(cell):
                return False
        elif not is_blank(cell):
            return False
    return True


def is_empty_value(fld: ir.BaseField, value: Any, blank_rows_are_empty: bool = False) -> bool:
    """
    Emptiness as used by ``empty``/``not_empty`` rules and required checks.

    Tables, records and formulations are present while they hold rows,
    entries or nodes; with ``blank_rows_are_empty`` only non-blank ones count.
    """
    if isinstance(fld, ir.TableField | ir.RecordField):
        if not isinstance(value, list) or not value:
            return True
        if blank_rows_are_empty:
            return all(_row_is_blank(row) for row in value if isinstance(row, Mapping))
        return False
    if isinstance(fld, ir.FormulationField):
        if not isinstance(value, Mapping) or not value:
            return True
        if blank_rows_are_empty:
            return all(_row_is_blank(node) for node in value.values() if isinstance(node, Mapping))
        return False
    return is_blank(value)


# =============================================================================
# Defaults
# =============================================================================


def default_subvalue(sub: ir.SubField) -> Any:
    return [] if sub.type == "checklist" else ""


def blank_row(table: ir.TableField) -> dict[str, Any]:
    return {col.id: "" for col in table.columns}


def blank_entry(record: ir.RecordField) -> dict[str, dict[str, Any]]:
    return {
        group.id: {sub.id: default_subvalue(sub) for sub in group.fields}
        for group in record.groups
    }


def blank_formulation(formulation: ir.FormulationField) -> dict[str, dict[str, Any]]:
    return {
        node.id: {sub.id: default_subvalue(sub) for sub in node.fields}
        for node in formulation.nodes
    }


def default_value(fld: ir.BaseField) -> Any:
    """
    Initial value of a field in a fresh store.

    Computed fields have no slot and return None.
    """
    if isinstance(fld, ir.LikertField):
        return fld.min
    if isinstance(fld, ir.ChecklistField):
        return []
    if isinstance(fld, ir.TableField):
        return [blank_row(fld) for _ in range(max(fld.min_rows, 0))]
    if isinstance(fld, ir.RecordField):
        return [blank_entry(fld) for _ in range(max(fld.min_records, 0))]
    if isinstance(fld, ir.FormulationField):
        return blank_formulation(fld)
    if isinstance(fld, ir.ComputedField):
        return None
    return ""


# =============================================================================
# Shape checks
# =============================================================================


def _check_range(value: float, lo: float | None, hi: float | None, what: str) -> ValueProblem | None:
    if lo is not None and value < lo:
        return _problem(ValueErrorCode.OUT_OF_RANGE, f"{what} {value} is below minimum {lo}")
    if hi is not None and value > hi:
        return _problem(ValueErrorCode.OUT_OF_RANGE, f"{what} {value} is above maximum {hi}")
    return None


def _check_text(value: Any, what: str) -> ValueProblem | None:
    if not isinstance(value, str):
        return _problem(ValueErrorCode.SHAPE_MISMATCH, f"{what} expects a string, got {type(value).__name__}")
    return None


def _check_optional_number(
    value: Any, lo: float | None, hi: float | None, what: str
) -> ValueProblem | None:
    if value == "":
        return None
    if not is_number(value):
        return _problem(ValueErrorCode.SHAPE_MISMATCH, f"{what} expects a number, got {type(value).__name__}")
    if not math.isfinite(value):
        return _problem(ValueErrorCode.INVALID_FORMAT, f"{what} must be a finite number")
    return _check_range(value, lo, hi, what)


def _check_option(value: Any, options: list[ir.Option], what: str) -> ValueProblem | None:
    problem = _check_text(value, what)
    if problem or value == "":
        return problem
    if value not in {o.id for o in options}:
        return _problem(ValueErrorCode.UNKNOWN_OPTION, f"{what} has no option '{value}'")
    return None


def _check_options(value: Any, options: list[ir.Option], what: str) -> tuple[Any, ValueProblem | None]:
    if not isinstance(value, list | tuple) or not all(isinstance(v, str) for v in value):
        return None, _problem(ValueErrorCode.SHAPE_MISMATCH, f"{what} expects a list of option ids")
    known = {o.id for o in options}
    for item in value:
        if item not in known:
            return None, _problem(ValueErrorCode.UNKNOWN_OPTION, f"{what} has no option '{item}'")
    return list(dict.fromkeys(value)), None


def check_subvalue(sub: ir.SubField, value: Any, likert_max: float, what: str) -> tuple[Any, ValueProblem | None]:
    """Check one record or formulation sub-field value."""
    if sub.type in ("text", "textarea"):
        return value, _check_text(value, what)
    if sub.type == "number":
        return value, _check_optional_number(value, sub.min, sub.max, what)
    if sub.type == "likert":
        lo, hi = sub.likert_bounds(likert_max)
        return value, _check_optional_number(value, lo, hi, what)
    if sub.type == "select":
        return value, _check_option(value, sub.options, what)
    return _check_options(value, sub.options, what)


def _check_count(count: int, lo: int, hi: int, what: str) -> ValueProblem | None:
    if not lo <= count <= hi:
        return _problem(
            ValueErrorCode.COUNT_OUT_OF_RANGE, f"{what} needs between {lo} and {hi} items, got {count}"
        )
    return None


def check_row(table: ir.TableField, row: Any, what: str) -> tuple[Any, ValueProblem | None]:
    if not isinstance(row, Mapping):
        return None, _problem(ValueErrorCode.SHAPE_MISMATCH, f"{what} must be an object")
    normalized = blank_row(table)
    for key, cell in row.items():
        column = table.column(key)
        if column is None:
            return None, _problem(ValueErrorCode.UNKNOWN_KEY, f"{what} has no column '{key}'")
        cell_what = f"{what}.{key}"
        if column.type == "number":
            problem = _check_optional_number(cell, column.min, column.max, cell_what)
        else:
            problem = _check_text(cell, cell_what)
        if problem:
            return None, problem
        normalized[key] = cell
    return normalized, None


def check_entry(record: ir.RecordField, entry: Any, what: str) -> tuple[Any, ValueProblem | None]:
    if not isinstance(entry, Mapping):
        return None, _problem(ValueErrorCode.SHAPE_MISMATCH, f"{what} must be an object")
    normalized = blank_entry(record)
    for group_id, group_value in entry.items():
        group = record.group(group_id)
        if group is None:
            return None, _problem(ValueErrorCode.UNKNOWN_KEY, f"{what} has no group '{group_id}'")
        if not isinstance(group_value, Mapping):
            return None, _problem(ValueErrorCode.SHAPE_MISMATCH, f"{what}.{group_id} must be an object")
        for sub_id, sub_value in group_value.items():
            sub = group.subfield(sub_id)
            if sub is None:
                return None, _problem(
                    ValueErrorCode.UNKNOWN_KEY, f"{what}.{group_id} has no sub-field '{sub_id}'"
                )
            checked, problem = check_subvalue(sub, sub_value, ir.RECORD_LIKERT_MAX, f"{what}.{group_id}.{sub_id}")
            if problem:
                return None, problem
            normalized[group_id][sub_id] = checked
    return normalized, None


def check_node(
    formulation: ir.FormulationField, node_id: str, node_value: Any, what: str
) -> tuple[Any, ValueProblem | None]:
    node = formulation.node(node_id)
    if node is None:
        return None, _problem(ValueErrorCode.UNKNOWN_KEY, f"{what} has no node '{node_id}'")
    if not isinstance(node_value, Mapping):
        return None, _problem(ValueErrorCode.SHAPE_MISMATCH, f"{what}.{node_id} must be an object")
    normalized = {sub.id: default_subvalue(sub) for sub in node.fields}
    subs = {sub.id: sub for sub in node.fields}
    for sub_id, sub_value in node_value.items():
        sub = subs.get(sub_id)
        if sub is None:
            return None, _problem(ValueErrorCode.UNKNOWN_KEY, f"{what}.{node_id} has no sub-field '{sub_id}'")
        checked, problem = check_subvalue(sub, sub_value, ir.NODE_LIKERT_MAX, f"{what}.{node_id}.{sub_id}")
        if problem:
            return None, problem
        normalized[sub_id] = checked
    return normalized, None


def check_value(fld: ir.BaseField, value: Any) -> tuple[Any, ValueProblem | None]:
    """
    Check a whole-field value against its field definition.

    Returns:
        Tuple of (normalized value, problem). The normalized value is a fresh
        copy with missing columns, sub-fields and nodes filled with blanks.
    """
    what = fld.id

    if isinstance(fld, ir.ComputedField):
        return None, _problem(ValueErrorCode.READ_ONLY, f"computed field '{fld.id}' cannot be set")

    if isinstance(fld, ir.TextField | ir.TextareaField):
        return value, _check_text(value, what)

    if isinstance(fld, ir.DateField):
        problem = _check_text(value, what)
        if problem or value == "":
            return value, problem
        if not _DATE.match(value):
            return None, _problem(ValueErrorCode.INVALID_FORMAT, f"{what} expects YYYY-MM-DD, got '{value}'")
        try:
            date.fromisoformat(value)
        except ValueError:
            return None, _problem(ValueErrorCode.INVALID_FORMAT, f"{what} is not a real date: '{value}'")
        return value, None

    if isinstance(fld, ir.TimeField):
        problem = _check_text(value, what)
        if problem or value == "":
            return value, problem
        if not _TIME.match(value):
            return None, _problem(ValueErrorCode.INVALID_FORMAT, f"{what} expects HH:MM, got '{value}'")
        return value, None

    if isinstance(fld, ir.NumberField):
        return value, _check_optional_number(value, fld.min, fld.max, what)

    if isinstance(fld, ir.LikertField):
        if not is_number(value):
            return None, _problem(ValueErrorCode.SHAPE_MISMATCH, f"{what} expects a number on the scale")
        if not math.isfinite(value):
            return None, _problem(ValueErrorCode.INVALID_FORMAT, f"{what} must be a finite number")
        return value, _check_range(value, fld.min, fld.max, what)

    if isinstance(fld, ir.SelectField):
        return value, _check_option(value, fld.options, what)

    if isinstance(fld, ir.ChecklistField):
        return _check_options(value, fld.options, what)

    if isinstance(fld, ir.TableField):
        if not isinstance(value, list):
            return None, _problem(ValueErrorCode.SHAPE_MISMATCH, f"{what} expects a list of rows")
        problem = _check_count(len(value), fld.min_rows, fld.max_rows, what)
        if problem:
            return None, problem
        rows = []
        for i, row in enumerate(value):
            checked, problem = check_row(fld, row, f"{what}[{i}]")
            if problem:
                return None, problem
            rows.append(checked)
        return rows, None

    if isinstance(fld, ir.RecordField):
        if not isinstance(value, list):
            return None, _problem(ValueErrorCode.SHAPE_MISMATCH, f"{what} expects a list of entries")
        problem = _check_count(len(value), fld.min_records, fld.max_records, what)
        if problem:
            return None, problem
        entries = []
        for i, entry in enumerate(value):
            checked, problem = check_entry(fld, entry, f"{what}[{i}]")
            if problem:
                return None, problem
            entries.append(checked)
        return entries, None

    if isinstance(fld, ir.FormulationField):
        if not isinstance(value, Mapping):
            return None, _problem(ValueErrorCode.SHAPE_MISMATCH, f"{what} expects a mapping of node values")
        nodes = blank_formulation(fld)
        for node_id, node_value in value.items():
            checked, problem = check_node(fld, node_id, node_value, what)
            if problem:
                return None, problem
            nodes[node_id] = checked
        return nodes, None

    return copy.deepcopy(value), None
