"""
Structural resolution of computed-field path references.

A path is resolved against the schema, never against values: the result
says which field, column, group/sub-field or node a path reads, so that the
evaluator can gather cells without re-parsing strings.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from . import ir


class PathKind(StrEnum):
    """What a resolved path points at."""

    SCALAR = "scalar"  # top-level number / likert
    TABLE = "table"  # bare table id (count only)
    TABLE_COLUMN = "table_column"
    RECORD = "record"  # bare record id (count only)
    RECORD_SUBFIELD = "record_subfield"
    FORMULATION_NODE = "formulation_node"

    @property
    def is_container(self) -> bool:
        """Bare collection reference, only meaningful for ``count``."""
        return self in (PathKind.TABLE, PathKind.RECORD)

    @property
    def is_multi_valued(self) -> bool:
        return self in (PathKind.TABLE_COLUMN, PathKind.RECORD_SUBFIELD)


class PathError(ValueError):
    """Raised when a path cannot be resolved against the schema."""

    pass


@dataclass(frozen=True)
class ResolvedPath:
    """A path reference bound to the schema element it reads."""

    ref: ir.PathReference
    kind: PathKind
    numeric: bool

    @property
    def field_id(self) -> str:
        return self.ref.field_id

    @property
    def key(self) -> tuple[str, ...]:
        """Lookup key inside a row / entry / node map."""
        return self.ref.parts

    def __str__(self) -> str:
        return str(self.ref)


def _subfield_is_numeric(sub: ir.SubField) -> bool:
    return sub.type in ("number", "likert")


def resolve_path(
    fields: Mapping[str, ir.BaseField],
    raw: str | ir.PathReference,
) -> ResolvedPath:
    """
    Resolve a path reference against the schema's field index.

    Raises:
        PathError: If the path is unparseable or does not lead to an
            aggregatable value.
    """
    try:
        ref = raw if isinstance(raw, ir.PathReference) else ir.PathReference.parse(raw)
    except ValueError as e:
        raise PathError(str(e)) from e

    target = fields.get(ref.field_id)
    if target is None:
        raise PathError(f"path '{ref}' references unknown field '{ref.field_id}'")
    if isinstance(target, ir.ComputedField):
        raise PathError(f"path '{ref}' references computed field '{ref.field_id}'")

    parts = ref.parts

    if isinstance(target, ir.NumberField | ir.LikertField):
        if parts:
            raise PathError(f"path '{ref}': '{ref.field_id}' has no sub-values")
        return ResolvedPath(ref, PathKind.SCALAR, numeric=True)

    if isinstance(target, ir.TableField):
        if not parts:
            return ResolvedPath(ref, PathKind.TABLE, numeric=False)
        if len(parts) != 1:
            raise PathError(f"path '{ref}': table paths have the form table.column")
        column = target.column(parts[0])
        if column is None:
            raise PathError(f"path '{ref}': table '{ref.field_id}' has no column '{parts[0]}'")
        return ResolvedPath(ref, PathKind.TABLE_COLUMN, numeric=column.type == "number")

    if isinstance(target, ir.RecordField):
        if not parts:
            return ResolvedPath(ref, PathKind.RECORD, numeric=False)
        if len(parts) != 2:
            raise PathError(f"path '{ref}': record paths have the form record.group.subfield")
        group = target.group(parts[0])
        if group is None:
            raise PathError(f"path '{ref}': record '{ref.field_id}' has no group '{parts[0]}'")
        sub = group.subfield(parts[1])
        if sub is None:
            raise PathError(f"path '{ref}': group '{parts[0]}' has no sub-field '{parts[1]}'")
        return ResolvedPath(ref, PathKind.RECORD_SUBFIELD, numeric=_subfield_is_numeric(sub))

    if isinstance(target, ir.FormulationField):
        if len(parts) != 2:
            raise PathError(f"path '{ref}': formulation paths have the form formulation.node.subfield")
        node = target.node(parts[0])
        if node is None:
            raise PathError(f"path '{ref}': formulation '{ref.field_id}' has no node '{parts[0]}'")
        sub = next((s for s in node.fields if s.id == parts[1]), None)
        if sub is None:
            raise PathError(f"path '{ref}': node '{parts[0]}' has no sub-field '{parts[1]}'")
        return ResolvedPath(ref, PathKind.FORMULATION_NODE, numeric=_subfield_is_numeric(sub))

    raise PathError(f"path '{ref}': {target.kind.value} field '{ref.field_id}' cannot be aggregated")
