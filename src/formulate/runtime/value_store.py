"""
Immutable value store for one worksheet completion.

Every mutation is a pure function that returns an ``UpdateResult`` holding
either a new store or a reason code together with the untouched prior store.
Callers never receive references to internal values; ``get`` and
``to_dict`` return copies.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from formulate.core import ir
from formulate.core.loader import CompiledWorksheet

from .values import (
    ValueErrorCode,
    ValueProblem,
    blank_entry,
    blank_row,
    check_node,
    check_row,
    check_subvalue,
    check_value,
    default_value,
)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=ir.BaseField)


@dataclass(frozen=True)
class UpdateResult:
    """Result of a store mutation."""

    store: ValueStore
    error: ValueErrorCode | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, store: ValueStore) -> UpdateResult:
        """Create a successful result carrying the new store."""
        return cls(store=store)

    @classmethod
    def failure(cls, store: ValueStore, problem: ValueProblem) -> UpdateResult:
        """Create a failed result carrying the unchanged store."""
        return cls(store=store, error=problem.code, message=problem.message)


class ValueStore:
    """
    Mapping from input field id to its current value.

    Computed fields have no slot. Instances are never mutated after
    construction; use ``init_store`` or ``ValueStore.from_dict`` to create one.
    """

    __slots__ = ("_compiled", "_values")

    def __init__(self, compiled: CompiledWorksheet, values: dict[str, Any]):
        self._compiled = compiled
        self._values = values

    def __repr__(self) -> str:
        return f"ValueStore(v{self._compiled.version}, {len(self._values)} fields)"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValueStore):
            return NotImplemented
        return self._compiled is other._compiled and self._values == other._values

    __hash__ = None  # type: ignore[assignment]

    @property
    def compiled(self) -> CompiledWorksheet:
        return self._compiled

    @property
    def schema_version(self) -> int:
        return self._compiled.version

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._values

    def field_ids(self) -> list[str]:
        return list(self._values)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, field_id: str, default: Any = None) -> Any:
        """Return a copy of a field's value (``default`` for unknown or computed ids)."""
        if field_id not in self._values:
            return default
        return copy.deepcopy(self._values[field_id])

    def peek(self, field_id: str) -> Any:
        """Read without copying. Evaluators only; the result must not be mutated."""
        return self._values.get(field_id)

    def to_dict(self) -> dict[str, Any]:
        """Serialize every input value (computed fields are never stored)."""
        return copy.deepcopy(self._values)

    def diff(self, other: ValueStore) -> set[str]:
        """Ids whose values differ between two stores of the same schema."""
        ids = set(self._values) | set(other._values)
        return {fid for fid in ids if self._values.get(fid) != other._values.get(fid)}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _with(self, field_id: str, value: Any) -> ValueStore:
        values = dict(self._values)
        values[field_id] = value
        return ValueStore(self._compiled, values)

    def _fail(self, code: ValueErrorCode, message: str) -> UpdateResult:
        logger.debug("Rejected update: %s: %s", code.value, message)
        return UpdateResult.failure(self, ValueProblem(code, message))

    def _lookup(self, field_id: str, expected: type[F]) -> F | ValueProblem:
        fld = self._compiled.get_field(field_id)
        if fld is None:
            return ValueProblem(ValueErrorCode.UNKNOWN_FIELD, f"no field '{field_id}'")
        if isinstance(fld, ir.ComputedField):
            return ValueProblem(ValueErrorCode.READ_ONLY, f"computed field '{field_id}' cannot be set")
        if not isinstance(fld, expected):
            return ValueProblem(
                ValueErrorCode.SHAPE_MISMATCH,
                f"field '{field_id}' is a {fld.kind.value} field",
            )
        return fld

    @staticmethod
    def _check_index(items: list[Any], index: int, what: str) -> ValueProblem | None:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(items):
            return ValueProblem(
                ValueErrorCode.INDEX_OUT_OF_RANGE,
                f"{what} index {index} is out of range (0-{len(items) - 1})",
            )
        return None

    # -------------------------------------------------------------------------
    # Whole-field writes
    # -------------------------------------------------------------------------

    def set(self, field_id: str, value: Any) -> UpdateResult:
        """Replace a field's value after checking it against the field definition."""
        fld = self._lookup(field_id, ir.BaseField)
        if isinstance(fld, ValueProblem):
            return self._fail(fld.code, fld.message)
        normalized, problem = check_value(fld, value)
        if problem:
            return self._fail(problem.code, problem.message)
        return UpdateResult.success(self._with(field_id, normalized))

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def add_row(self, table_id: str) -> UpdateResult:
        """Append a blank row; refused at ``max_rows``."""
        table = self._lookup(table_id, ir.TableField)
        if isinstance(table, ValueProblem):
            return self._fail(table.code, table.message)
        rows = self._values[table_id]
        if len(rows) >= table.max_rows:
            return self._fail(ValueErrorCode.AT_MAXIMUM, f"'{table_id}' already has {table.max_rows} rows")
        return UpdateResult.success(self._with(table_id, copy.deepcopy(rows) + [blank_row(table)]))

    def remove_row(self, table_id: str, index: int) -> UpdateResult:
        """Remove a row; refused at ``min_rows``."""
        table = self._lookup(table_id, ir.TableField)
        if isinstance(table, ValueProblem):
            return self._fail(table.code, table.message)
        rows = copy.deepcopy(self._values[table_id])
        problem = self._check_index(rows, index, table_id)
        if problem:
            return self._fail(problem.code, problem.message)
        if len(rows) <= table.min_rows:
            return self._fail(ValueErrorCode.AT_MINIMUM, f"'{table_id}' needs at least {table.min_rows} rows")
        del rows[index]
        return UpdateResult.success(self._with(table_id, rows))

    def set_cell(self, table_id: str, index: int, column_id: str, value: Any) -> UpdateResult:
        """Set one cell of one row."""
        table = self._lookup(table_id, ir.TableField)
        if isinstance(table, ValueProblem):
            return self._fail(table.code, table.message)
        rows = copy.deepcopy(self._values[table_id])
        problem = self._check_index(rows, index, table_id)
        if problem:
            return self._fail(problem.code, problem.message)
        updated = dict(rows[index])
        updated[column_id] = value
        checked, problem = check_row(table, updated, f"{table_id}[{index}]")
        if problem:
            return self._fail(problem.code, problem.message)
        rows[index] = checked
        return UpdateResult.success(self._with(table_id, rows))

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def add_entry(self, record_id: str) -> UpdateResult:
        """Append a blank entry; refused at ``max_records``."""
        record = self._lookup(record_id, ir.RecordField)
        if isinstance(record, ValueProblem):
            return self._fail(record.code, record.message)
        entries = self._values[record_id]
        if len(entries) >= record.max_records:
            return self._fail(
                ValueErrorCode.AT_MAXIMUM, f"'{record_id}' already has {record.max_records} entries"
            )
        return UpdateResult.success(self._with(record_id, copy.deepcopy(entries) + [blank_entry(record)]))

    def remove_entry(self, record_id: str, index: int) -> UpdateResult:
        """Remove an entry; refused at ``min_records``."""
        record = self._lookup(record_id, ir.RecordField)
        if isinstance(record, ValueProblem):
            return self._fail(record.code, record.message)
        entries = copy.deepcopy(self._values[record_id])
        problem = self._check_index(entries, index, record_id)
        if problem:
            return self._fail(problem.code, problem.message)
        if len(entries) <= record.min_records:
            return self._fail(
                ValueErrorCode.AT_MINIMUM, f"'{record_id}' needs at least {record.min_records} entries"
            )
        del entries[index]
        return UpdateResult.success(self._with(record_id, entries))

    def set_subfield(
        self, record_id: str, index: int, group_id: str, subfield_id: str, value: Any
    ) -> UpdateResult:
        """Set one sub-field of one record entry."""
        record = self._lookup(record_id, ir.RecordField)
        if isinstance(record, ValueProblem):
            return self._fail(record.code, record.message)
        entries = copy.deepcopy(self._values[record_id])
        problem = self._check_index(entries, index, record_id)
        if problem:
            return self._fail(problem.code, problem.message)
        group = record.group(group_id)
        if group is None:
            return self._fail(ValueErrorCode.UNKNOWN_KEY, f"'{record_id}' has no group '{group_id}'")
        sub = group.subfield(subfield_id)
        if sub is None:
            return self._fail(
                ValueErrorCode.UNKNOWN_KEY, f"group '{group_id}' has no sub-field '{subfield_id}'"
            )
        checked, problem = check_subvalue(
            sub, value, ir.RECORD_LIKERT_MAX, f"{record_id}[{index}].{group_id}.{subfield_id}"
        )
        if problem:
            return self._fail(problem.code, problem.message)
        entries[index].setdefault(group_id, {})[subfield_id] = checked
        return UpdateResult.success(self._with(record_id, entries))

    # -------------------------------------------------------------------------
    # Formulations
    # -------------------------------------------------------------------------

    def set_node_value(
        self, formulation_id: str, node_id: str, subfield_id: str, value: Any
    ) -> UpdateResult:
        """Set one sub-field of one formulation node."""
        formulation = self._lookup(formulation_id, ir.FormulationField)
        if isinstance(formulation, ValueProblem):
            return self._fail(formulation.code, formulation.message)
        nodes = copy.deepcopy(self._values[formulation_id])
        node_value = dict(nodes.get(node_id, {}))
        node_value[subfield_id] = value
        checked, problem = check_node(formulation, node_id, node_value, formulation_id)
        if problem:
            return self._fail(problem.code, problem.message)
        nodes[node_id] = checked
        return UpdateResult.success(self._with(formulation_id, nodes))

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(
        cls, compiled: CompiledWorksheet, data: Mapping[str, Any]
    ) -> tuple[ValueStore, dict[str, ValueProblem]]:
        """
        Rebuild a store from serialized values.

        Legacy wire shapes are normalized first: a record stored as
        ``{"records": [...]}`` and a formulation stored as ``{"nodes": {...}}``.
        Rejected values keep their defaults and are reported by field id.

        Returns:
            Tuple of (store, rejected values by field id)
        """
        store = init_store(compiled)
        problems: dict[str, ValueProblem] = {}
        for field_id, raw in data.items():
            fld = compiled.get_field(field_id)
            if fld is None:
                problems[field_id] = ValueProblem(ValueErrorCode.UNKNOWN_FIELD, f"no field '{field_id}'")
                continue
            if isinstance(fld, ir.ComputedField):
                # Exported responses may carry rendered computed values
                continue
            result = store.set(field_id, normalize_legacy(fld, raw))
            if result.ok:
                store = result.store
            else:
                problems[field_id] = ValueProblem(result.error, result.message)  # type: ignore[arg-type]
        if problems:
            logger.warning("Rejected %d value(s) while loading store: %s", len(problems), sorted(problems))
        return store, problems


def normalize_legacy(fld: ir.BaseField, value: Any) -> Any:
    """Unwrap the older ``{"records": [...]}`` / ``{"nodes": {...}}`` shapes."""
    if isinstance(fld, ir.RecordField) and isinstance(value, Mapping) and "records" in value:
        return value["records"]
    if isinstance(fld, ir.FormulationField) and isinstance(value, Mapping):
        nodes = value.get("nodes")
        if isinstance(nodes, Mapping) and set(value) <= {"nodes", "layout", "connections"}:
            return nodes
    return value


def init_store(compiled: CompiledWorksheet, initial: Mapping[str, Any] | None = None) -> ValueStore:
    """
    Create a store with a default value for every input field.

    Args:
        compiled: The compiled worksheet
        initial: Optional values to apply over the defaults; rejected values
            are logged and left at their defaults (use ``ValueStore.from_dict``
            to inspect them)
    """
    values = {fld.id: default_value(fld) for fld in compiled.input_fields()}
    store = ValueStore(compiled, values)
    if initial:
        store, _problems = ValueStore.from_dict(compiled, initial)
    return store
