"""
Schema loading and compilation.

A raw schema document (parsed JSON) goes through three stages:

1. ``parse_schema``: pydantic parse into ``ir.WorksheetSchema``; closed
   vocabularies (field type, operation, layout, operator) are enforced here.
2. ``validate_schema``: semantic checks (ids, topology, paths, cycles).
3. ``compile_schema``: binds every computed path to the schema element it
   reads and caches the dependency order.

The resulting ``CompiledWorksheet`` is frozen and can be shared by every
value store, diary entry and consumer of the same schema version.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from . import ir
from .dependencies import DependencyGraph, build_dependency_graph, topological_order
from .errors import SchemaLoadError, SchemaValidationError
from .paths import ResolvedPath, resolve_path
from .validator import Severity, ValidationIssue, validate_schema

logger = logging.getLogger(__name__)


# =============================================================================
# Parsing
# =============================================================================


def _nearest_field_id(document: Any, loc: tuple[Any, ...]) -> str | None:
    """
    Walk a pydantic error location through the raw document and return the
    id of the innermost enclosing field (or section).

    Discriminator tags that pydantic inserts into ``loc`` (e.g. ``"table"``)
    are not keys of the document and are skipped.
    """
    node = document
    trail: list[Any] = []
    found: str | None = None
    for part in loc:
        if isinstance(node, Mapping) and isinstance(part, str) and part in node:
            node = node[part]
        elif isinstance(node, list) and isinstance(part, int) and 0 <= part < len(node):
            node = node[part]
        else:
            continue
        trail.append(part)
        # sections[i] is a section, sections[i].fields[j] is a field
        if trail[0] == "sections" and len(trail) in (2, 4) and isinstance(node, Mapping):
            node_id = node.get("id")
            if isinstance(node_id, str) and node_id:
                found = node_id
    return found


def _format_loc(loc: tuple[Any, ...]) -> str:
    out = ""
    for part in loc:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out


def parse_schema(document: Any) -> tuple[ir.WorksheetSchema | None, list[ValidationIssue]]:
    """
    Parse a raw schema document into the typed model.

    Args:
        document: Parsed JSON (a mapping)

    Returns:
        Tuple of (schema or None, parse issues). The schema is None exactly
        when there are issues.
    """
    if not isinstance(document, Mapping):
        issue = ValidationIssue(None, f"schema must be a JSON object, got {type(document).__name__}")
        return None, [issue]

    try:
        schema = ir.WorksheetSchema.model_validate(document)
    except ValidationError as e:
        issues = []
        for err in e.errors():
            loc = tuple(err.get("loc", ()))
            where = _format_loc(loc)
            reason = f"{where}: {err['msg']}" if where else err["msg"]
            issues.append(ValidationIssue(_nearest_field_id(document, loc), reason, Severity.ERROR))
        logger.debug("Schema parse failed with %d error(s)", len(issues))
        return None, issues

    return schema, []


def read_schema_document(path: Path | str) -> dict[str, Any]:
    """
    Read a schema document from a JSON file.

    Raises:
        SchemaLoadError: If the file is missing, not JSON, or not an object
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SchemaLoadError(f"Cannot read schema file {path}: {e}") from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise SchemaLoadError(f"Invalid JSON in {path}: line {e.lineno}: {e.msg}") from e

    if not isinstance(data, dict):
        raise SchemaLoadError(f"Schema file {path} must contain a JSON object")
    return data


# =============================================================================
# Compilation
# =============================================================================


@dataclass(frozen=True)
class CompiledWorksheet:
    """
    A validated schema bundled with everything evaluation needs.

    Attributes:
        schema: The typed schema
        fields: field id -> field
        sections: section id -> section
        section_of: field id -> id of the enclosing section
        paths: computed field id -> attribute name -> resolved path
        graph: Reference graph
        order: Evaluation order (dependencies first)
        warnings: Non-fatal validation issues
    """

    schema: ir.WorksheetSchema
    fields: dict[str, ir.WorksheetField]
    sections: dict[str, ir.Section]
    section_of: dict[str, str]
    paths: dict[str, dict[str, ResolvedPath]]
    graph: DependencyGraph
    order: tuple[str, ...]
    warnings: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @property
    def version(self) -> int:
        return self.schema.version

    @property
    def repeatable(self) -> bool:
        return self.schema.repeatable

    def get_field(self, field_id: str) -> ir.WorksheetField | None:
        return self.fields.get(field_id)

    def computed_fields(self) -> list[ir.ComputedField]:
        """Computed fields in evaluation order."""
        return [
            self.fields[node]
            for node in self.order
            if isinstance(self.fields.get(node), ir.ComputedField)
        ]

    def input_fields(self) -> list[ir.WorksheetField]:
        """Fields that hold a value in the store, in declaration order."""
        return [f for f in self.fields.values() if not isinstance(f, ir.ComputedField)]


def compile_schema(source: ir.WorksheetSchema | Mapping[str, Any]) -> CompiledWorksheet:
    """
    Parse, validate and compile a schema.

    Args:
        source: A raw schema document or an already-parsed schema

    Returns:
        CompiledWorksheet ready for ``init_store`` and evaluation

    Raises:
        SchemaValidationError: If parsing or validation finds any error
    """
    if isinstance(source, ir.WorksheetSchema):
        schema = source
    else:
        parsed, parse_issues = parse_schema(source)
        if parsed is None:
            raise SchemaValidationError(parse_issues)
        schema = parsed

    result = validate_schema(schema)
    if not result.is_valid:
        raise SchemaValidationError(result.errors)
    for warning in result.warnings:
        logger.warning("Schema warning: %s", warning)

    fields: dict[str, ir.WorksheetField] = {}
    section_of: dict[str, str] = {}
    for section, fld in schema.iter_fields():
        fields[fld.id] = fld
        section_of[fld.id] = section.id
    sections = {s.id: s for s in schema.sections}

    paths: dict[str, dict[str, ResolvedPath]] = {}
    for fld in fields.values():
        if isinstance(fld, ir.ComputedField):
            paths[fld.id] = {
                attr: resolve_path(fields, raw) for attr, raw in fld.computation.raw_paths
            }

    graph = build_dependency_graph(schema)
    order = tuple(topological_order(graph))

    logger.info(
        "Compiled worksheet v%d: %d section(s), %d field(s), %d computed",
        schema.version,
        len(sections),
        len(fields),
        len(paths),
    )
    return CompiledWorksheet(
        schema=schema,
        fields=fields,
        sections=sections,
        section_of=section_of,
        paths=paths,
        graph=graph,
        order=order,
        warnings=tuple(result.warnings),
    )


def load_schema_file(path: Path | str) -> CompiledWorksheet:
    """
    Read and compile a schema file.

    Raises:
        SchemaLoadError: If the file cannot be read
        SchemaValidationError: If the schema is invalid
    """
    return compile_schema(read_schema_document(path))
