"""
Semantic validation for worksheet schemas.

Every check collects issues instead of raising, so that a builder can
highlight every problem in one pass. Issues are attributed to the nearest
field id (or section id, or ``None`` for schema-level problems).
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from . import ir
from .dependencies import build_dependency_graph, detect_cycles
from .paths import PathError, PathKind, resolve_path
from .topology import validate_graph

logger = logging.getLogger(__name__)


# =============================================================================
# Results
# =============================================================================


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    """A single problem found in a schema."""

    field_id: str | None
    reason: str
    severity: Severity = Severity.ERROR

    def __str__(self) -> str:
        if self.field_id:
            return f"[{self.field_id}] {self.reason}"
        return self.reason


@dataclass
class ValidationResult:
    """All issues found for one schema."""

    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def by_field(self) -> dict[str | None, list[ValidationIssue]]:
        grouped: dict[str | None, list[ValidationIssue]] = {}
        for issue in self.issues:
            grouped.setdefault(issue.field_id, []).append(issue)
        return grouped


def _error(field_id: str | None, reason: str) -> ValidationIssue:
    return ValidationIssue(field_id, reason, Severity.ERROR)


def _warning(field_id: str | None, reason: str) -> ValidationIssue:
    return ValidationIssue(field_id, reason, Severity.WARNING)


def _duplicates(ids: list[str]) -> list[str]:
    return sorted(i for i, count in Counter(ids).items() if count > 1)


# =============================================================================
# Schema header and identifiers
# =============================================================================


def validate_schema_header(schema: ir.WorksheetSchema) -> list[ValidationIssue]:
    """
    Validate top-level schema attributes.

    Checks:
    - version is a positive integer
    - at least one section
    - repeatable schemas declare max_entries >= 1
    """
    issues: list[ValidationIssue] = []

    if schema.version < 1:
        issues.append(_error(None, f"version must be >= 1 (got {schema.version})"))

    if not schema.sections:
        issues.append(_error(None, "schema must have at least one section"))

    if schema.repeatable:
        if schema.max_entries is None or schema.max_entries < 1:
            issues.append(_error(None, "repeatable schema requires max_entries >= 1"))
    elif schema.max_entries is not None:
        issues.append(_warning(None, "max_entries is ignored because the schema is not repeatable"))

    return issues


def validate_identifiers(schema: ir.WorksheetSchema) -> list[ValidationIssue]:
    """
    Validate id uniqueness.

    Field ids are unique across the whole schema, and share one namespace
    with section ids because the visibility map is keyed by both.
    """
    issues: list[ValidationIssue] = []

    for section in schema.sections:
        if not section.id.strip():
            issues.append(_error(None, "every section must have a non-empty id"))

    ids = [s.id for s in schema.sections] + [f.id for _, f in schema.iter_fields()]
    for dup in _duplicates(ids):
        issues.append(_error(dup, f"id '{dup}' is used more than once in the schema"))

    for section, fld in schema.iter_fields():
        if not fld.id.strip():
            issues.append(_error(section.id, "every field must have a non-empty id"))

    return issues


# =============================================================================
# Field variants
# =============================================================================


def _validate_options(fld_id: str, options: list[ir.Option], owner: str = "field") -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if not options:
        issues.append(_error(fld_id, f"{owner} must declare at least one option"))
    for dup in _duplicates([o.id for o in options]):
        issues.append(_error(fld_id, f"{owner} has duplicate option id '{dup}'"))
    return issues


def _validate_scale(
    fld_id: str,
    lo: float,
    hi: float,
    anchors: Mapping[str, str],
    owner: str,
) -> list[ValidationIssue]:
    """Likert-style scale: min < max and anchors within range."""
    issues: list[ValidationIssue] = []
    if lo >= hi:
        issues.append(_error(fld_id, f"{owner} needs min < max (got min={lo}, max={hi})"))
        return issues
    for key in anchors:
        try:
            point = float(key)
        except ValueError:
            issues.append(_error(fld_id, f"{owner} anchor '{key}' is not a number"))
            continue
        if not lo <= point <= hi:
            issues.append(_error(fld_id, f"{owner} anchor '{key}' is outside [{lo}, {hi}]"))
    return issues


def _validate_bounds(fld_id: str, lo: int, hi: int, noun: str) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if lo < 0:
        issues.append(_error(fld_id, f"min_{noun} must be >= 0 (got {lo})"))
    if hi < 1:
        issues.append(_error(fld_id, f"max_{noun} must be >= 1 (got {hi})"))
    if hi < lo:
        issues.append(_error(fld_id, f"max_{noun} ({hi}) is less than min_{noun} ({lo})"))
    return issues


def _validate_subfields(
    fld_id: str, subfields: list[ir.SubField], owner: str, likert_max: float
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for dup in _duplicates([s.id for s in subfields]):
        issues.append(_error(fld_id, f"{owner} has duplicate sub-field id '{dup}'"))
    for sub in subfields:
        name = f"{owner} sub-field '{sub.id}'"
        if sub.type == "likert":
            lo, hi = sub.likert_bounds(likert_max)
            issues.extend(_validate_scale(fld_id, lo, hi, sub.anchors, name))
        elif sub.type in ("select", "checklist"):
            issues.extend(_validate_options(fld_id, sub.options, name))
        elif sub.type == "number" and sub.min is not None and sub.max is not None and sub.min > sub.max:
            issues.append(_error(fld_id, f"{name} has min greater than max"))
    return issues


def validate_fields(schema: ir.WorksheetSchema) -> list[ValidationIssue]:
    """
    Validate per-variant attributes of every field.

    Checks:
    - Labels are non-empty
    - select/checklist options exist and are unique
    - number min <= max, likert min < max with anchors in range
    - table columns exist, are unique, row bounds are sane, group_by exists
    - record groups exist, group and sub-field ids are unique, bounds are sane
    """
    issues: list[ValidationIssue] = []

    for _section, fld in schema.iter_fields():
        if not fld.label.strip():
            issues.append(_error(fld.id, "field must have a label"))

        if isinstance(fld, ir.NumberField):
            if fld.min is not None and fld.max is not None and fld.min > fld.max:
                issues.append(_error(fld.id, f"number min ({fld.min}) is greater than max ({fld.max})"))

        elif isinstance(fld, ir.LikertField):
            issues.extend(_validate_scale(fld.id, fld.min, fld.max, fld.anchors, "likert"))
            if fld.step <= 0:
                issues.append(_error(fld.id, "likert step must be positive"))

        elif isinstance(fld, ir.SelectField | ir.ChecklistField):
            issues.extend(_validate_options(fld.id, fld.options))

        elif isinstance(fld, ir.TableField):
            if not fld.columns:
                issues.append(_error(fld.id, "table must declare at least one column"))
            for dup in _duplicates([c.id for c in fld.columns]):
                issues.append(_error(fld.id, f"table has duplicate column id '{dup}'"))
            issues.extend(_validate_bounds(fld.id, fld.min_rows, fld.max_rows, "rows"))
            if fld.group_by is not None and fld.column(fld.group_by) is None:
                issues.append(_error(fld.id, f"group_by column '{fld.group_by}' does not exist"))

        elif isinstance(fld, ir.RecordField):
            if not fld.groups:
                issues.append(_error(fld.id, "record must declare at least one group"))
            for dup in _duplicates([g.id for g in fld.groups]):
                issues.append(_error(fld.id, f"record has duplicate group id '{dup}'"))
            for group in fld.groups:
                if not group.fields:
                    issues.append(_error(fld.id, f"record group '{group.id}' has no sub-fields"))
                issues.extend(
                    _validate_subfields(fld.id, group.fields, f"group '{group.id}'", ir.RECORD_LIKERT_MAX)
                )
            issues.extend(_validate_bounds(fld.id, fld.min_records, fld.max_records, "records"))

    kinds = Counter(fld.kind for _, fld in schema.iter_fields())
    for kind in (ir.FieldKind.FORMULATION, ir.FieldKind.RECORD):
        if kinds[kind] > 1:
            issues.append(
                _warning(None, f"worksheet has {kinds[kind]} {kind.value} fields; one is recommended")
            )

    return issues


def validate_formulations(schema: ir.WorksheetSchema) -> list[ValidationIssue]:
    """Validate every formulation against its layout template."""
    issues: list[ValidationIssue] = []
    for _section, fld in schema.iter_fields():
        if not isinstance(fld, ir.FormulationField):
            continue
        for message in validate_graph(fld.layout, fld.nodes, fld.connections):
            issues.append(_error(fld.id, message))
        for node in fld.nodes:
            issues.extend(
                _validate_subfields(fld.id, node.fields, f"node '{node.id}'", ir.NODE_LIKERT_MAX)
            )
    return issues


# =============================================================================
# Computed fields and visibility rules
# =============================================================================


def validate_computed_fields(schema: ir.WorksheetSchema) -> list[ValidationIssue]:
    """
    Validate computed-field operations and path references.

    Checks:
    - sum/average/count/min/max use ``field``; difference and
      percentage_change use ``field_a`` and ``field_b``
    - every path parses and resolves structurally (never to a computed field)
    - only ``count`` may reference a bare table/record
    - ``group_by`` lives in the same table/record as the aggregated paths
    """
    issues: list[ValidationIssue] = []
    index = {f.id: f for _, f in schema.iter_fields()}

    for _section, fld in schema.iter_fields():
        if not isinstance(fld, ir.ComputedField):
            continue
        comp = fld.computation
        op = comp.operation

        if fld.required:
            issues.append(_warning(fld.id, "computed fields are never answered; 'required' has no effect"))

        if op.is_binary:
            if comp.field_a is None or comp.field_b is None:
                issues.append(_error(fld.id, f"{op.value} requires both field_a and field_b"))
            if comp.field is not None:
                issues.append(_warning(fld.id, f"{op.value} ignores 'field'; use field_a and field_b"))
            sources = [("field_a", comp.field_a), ("field_b", comp.field_b)]
        else:
            if comp.field is None:
                issues.append(_error(fld.id, f"{op.value} requires 'field'"))
            sources = [("field", comp.field)]

        roots: set[str] = set()
        for attr, raw in sources:
            if raw is None:
                continue
            try:
                resolved = resolve_path(index, raw)
            except PathError as e:
                issues.append(_error(fld.id, f"{attr}: {e}"))
                continue
            roots.add(resolved.field_id)
            if resolved.kind.is_container and op != ir.ComputedOperation.COUNT:
                issues.append(
                    _error(fld.id, f"{attr}: {op.value} needs a column or sub-field, not the whole "
                                   f"{resolved.kind.value} '{resolved.field_id}'")
                )
            elif op != ir.ComputedOperation.COUNT and not resolved.numeric:
                issues.append(_warning(fld.id, f"{attr}: '{raw}' is not a numeric column; "
                                               "non-numeric cells will be ignored"))

        if comp.group_by is not None:
            try:
                grouping = resolve_path(index, comp.group_by)
            except PathError as e:
                issues.append(_error(fld.id, f"group_by: {e}"))
            else:
                if not grouping.kind.is_multi_valued:
                    issues.append(_error(fld.id, "group_by must reference a table column or record sub-field"))
                elif roots and roots != {grouping.field_id}:
                    issues.append(
                        _error(fld.id, f"group_by '{comp.group_by}' must be in the same field as "
                                       f"the aggregated path(s)")
                    )

    return issues


def _is_numeric_target(value: Any) -> bool:
    if isinstance(value, bool) or isinstance(value, list):
        return False
    if isinstance(value, int | float):
        return True
    try:
        float(value)
    except (TypeError, ValueError):
        return False
    return True


def _rule_issues(owner_id: str, rule: ir.VisibilityRule, index: Mapping[str, ir.BaseField]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    target = index.get(rule.field)
    if target is None:
        issues.append(_error(owner_id, f"show_when references unknown field '{rule.field}'"))
    elif isinstance(target, ir.ComputedField):
        issues.append(_error(owner_id, f"show_when cannot read computed field '{rule.field}'"))

    if rule.operator.needs_value and rule.value is None:
        issues.append(_error(owner_id, f"show_when operator '{rule.operator.value}' requires a value"))
    if rule.operator.is_numeric and rule.value is not None and not _is_numeric_target(rule.value):
        issues.append(
            _error(owner_id, f"show_when operator '{rule.operator.value}' requires a numeric value")
        )
    return issues


def validate_visibility_rules(schema: ir.WorksheetSchema) -> list[ValidationIssue]:
    """Validate every ``show_when`` rule on sections and fields."""
    issues: list[ValidationIssue] = []
    index = {f.id: f for _, f in schema.iter_fields()}
    for section in schema.sections:
        if section.show_when is not None:
            issues.extend(_rule_issues(section.id, section.show_when, index))
        for fld in section.fields:
            if fld.show_when is not None:
                issues.extend(_rule_issues(fld.id, fld.show_when, index))
    return issues


def validate_dependencies(schema: ir.WorksheetSchema) -> list[ValidationIssue]:
    """Report every cycle in the read graph; evaluation assumes a DAG."""
    issues: list[ValidationIssue] = []
    graph = build_dependency_graph(schema)
    for cycle in detect_cycles(graph):
        issues.append(_error(cycle[0], f"circular reference detected: {' -> '.join(cycle)}"))
    return issues


# =============================================================================
# Entry point
# =============================================================================


def validate_schema(schema: ir.WorksheetSchema) -> ValidationResult:
    """Run every check against an already-parsed schema."""
    result = ValidationResult()
    for check in (
        validate_schema_header,
        validate_identifiers,
        validate_fields,
        validate_formulations,
        validate_computed_fields,
        validate_visibility_rules,
        validate_dependencies,
    ):
        result.issues.extend(check(schema))
    logger.debug(
        "Validated schema v%s: %d error(s), %d warning(s)",
        schema.version,
        len(result.errors),
        len(result.warnings),
    )
    return result


def validate(schema: ir.WorksheetSchema | Mapping[str, Any]) -> ValidationResult:
    """
    Validate a schema model or a raw schema document.

    Raw documents are parsed first; parse failures (unknown field type,
    unknown operation, wrong shapes) are returned as issues together with
    nothing else, since later checks need a typed model.
    """
    if isinstance(schema, ir.WorksheetSchema):
        return validate_schema(schema)

    from .loader import parse_schema

    parsed, parse_issues = parse_schema(schema)
    if parsed is None:
        return ValidationResult(issues=parse_issues)
    return validate_schema(parsed)
