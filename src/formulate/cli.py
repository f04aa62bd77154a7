"""
Formulate CLI.

Developer tooling around the engine:

- validate: check a schema file and list every issue
- resolve: evaluate a schema against a values file
- slots: show the slot vocabulary of a formulation layout
- templates: list the formulation templates
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from formulate import __version__
from formulate.core.config import load_config
from formulate.core.errors import FormulateError, SchemaValidationError
from formulate.core.ir import ComputedField, FormulationLayout
from formulate.core.loader import compile_schema, read_schema_document
from formulate.core.templates import list_templates
from formulate.core.topology import LAYOUT_RULES
from formulate.core.validator import ValidationIssue, validate
from formulate.runtime.computed_evaluator import UNRESOLVED, ComputedValue
from formulate.runtime.diary import DiaryEnvelope, is_multi_entry_response
from formulate.runtime.resolved_view import ResolvedView, check_submission, resolved_view
from formulate.runtime.value_store import ValueStore, init_store

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    help="Formulate – worksheet schema engine",
    no_args_is_help=True,
    add_completion=False,
)


def setup_logging(*, verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    handler = RichHandler(console=Console(stderr=True), show_time=False, show_path=False)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"formulate {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    setup_logging(verbose=verbose)


# =============================================================================
# validate
# =============================================================================


def _print_human_diagnostics(errors: list[ValidationIssue], warnings: list[ValidationIssue]) -> None:
    """Print diagnostics in human-readable format."""
    if errors:
        typer.echo("Validation failed:\n", err=True)
        for issue in errors:
            typer.echo(f"ERROR: {issue}", err=True)

    if warnings:
        typer.echo("Validation warnings:\n")
        for issue in warnings:
            typer.echo(f"WARNING: {issue}")

    if not errors and not warnings:
        typer.echo("OK: schema is valid.")


@app.command(name="validate")
def validate_command(
    schema: Path = typer.Argument(..., help="Path to a worksheet schema (JSON)"),
    format: str = typer.Option("human", "--format", "-f", help="Output format: 'human' or 'json'"),
) -> None:
    """
    Validate a worksheet schema and report every issue.
    """
    try:
        document = read_schema_document(schema)
    except FormulateError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    result = validate(document)

    if format == "json":
        payload = [
            {"field_id": i.field_id, "reason": i.reason, "severity": i.severity.value}
            for i in result.issues
        ]
        typer.echo(json.dumps({"valid": result.is_valid, "issues": payload}, indent=2))
    else:
        _print_human_diagnostics(result.errors, result.warnings)

    if not result.is_valid:
        raise typer.Exit(code=1)


# =============================================================================
# resolve
# =============================================================================


def _jsonable(value: ComputedValue) -> Any:
    if value is UNRESOLVED:
        return None
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def _view_table(view: ResolvedView, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Section", style="dim")
    table.add_column("Field")
    table.add_column("Type")
    table.add_column("Visible")
    table.add_column("Value")

    for section in view.compiled.schema.sections:
        for fld in section.fields:
            if isinstance(fld, ComputedField):
                shown = view.display(fld.id) or ""
            else:
                shown = json.dumps(view.values.get(fld.id), ensure_ascii=False)
                if len(shown) > 60:
                    shown = shown[:57] + "..."
            table.add_row(
                section.id,
                fld.id,
                fld.kind.value,
                "[green]yes[/green]" if view.is_visible(fld.id) else "[red]no[/red]",
                shown,
            )
    return table


@app.command(name="resolve")
def resolve_command(
    schema: Path = typer.Argument(..., help="Path to a worksheet schema (JSON)"),
    values: Path | None = typer.Option(None, "--values", help="Response data (JSON)"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to formulate.toml"),
    as_json: bool = typer.Option(False, "--json", help="Print the resolved view as JSON"),
) -> None:
    """
    Evaluate visibility and computed fields for a schema and its values.
    """
    try:
        config = load_config(config_path)
        compiled = compile_schema(read_schema_document(schema))
        data: dict[str, Any] = {}
        if values is not None:
            data = json.loads(values.read_text(encoding="utf-8"))
    except SchemaValidationError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    except (FormulateError, OSError, json.JSONDecodeError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    stores: list[ValueStore] = []
    if compiled.repeatable and (is_multi_entry_response(data) or not data):
        envelope, problems = DiaryEnvelope.from_response_data(compiled, data or {"_entries": [{}]})
        stores = envelope.stores()
        rejected = {f"entry {i}: {fid}": p for i, entry in problems.items() for fid, p in entry.items()}
    else:
        if data:
            store, entry_problems = ValueStore.from_dict(compiled, data)
        else:
            store, entry_problems = init_store(compiled), {}
        stores = [store]
        rejected = dict(entry_problems)

    for where, problem in rejected.items():
        typer.echo(f"WARNING: {where}: {problem}", err=True)

    views = [resolved_view(compiled, store, config) for store in stores]

    if as_json:
        payload = [
            {
                "visibility": view.visibility,
                "computed": {k: _jsonable(v) for k, v in view.computed.items()},
                "rendered_sections": view.rendered_sections(),
                "missing_required": check_submission(compiled, store, config).missing,
            }
            for view, store in zip(views, stores)
        ]
        typer.echo(json.dumps(payload if compiled.repeatable else payload[0], indent=2))
        return

    for i, (view, store) in enumerate(zip(views, stores)):
        title = f"Entry {i + 1}" if compiled.repeatable else (compiled.schema.title or str(schema))
        console.print(_view_table(view, title))
        submission = check_submission(compiled, store, config)
        if submission.missing:
            console.print(f"[yellow]Unanswered required fields:[/yellow] {', '.join(submission.missing)}")


# =============================================================================
# slots / templates
# =============================================================================


@app.command(name="slots")
def slots_command(
    layout: str = typer.Argument(..., help="Formulation layout"),
) -> None:
    """
    Show the slot vocabulary and cardinality rules of a formulation layout.
    """
    try:
        rule = LAYOUT_RULES[FormulationLayout(layout)]
    except ValueError:
        allowed = ", ".join(lay.value for lay in FormulationLayout)
        typer.echo(f"Unknown layout '{layout}'. Choose one of: {allowed}", err=True)
        raise typer.Exit(code=1)

    table = Table(title=f"{rule.layout.value} slots")
    table.add_column("Slot")
    table.add_column("Rule")
    for slot in rule.fixed:
        table.add_row(slot, "required" if slot in rule.required else "optional")
    for series in rule.series:
        if series.allowed_counts is not None:
            counts = " or ".join(str(c) for c in series.allowed_counts)
        elif series.min_count == series.max_count:
            counts = f"exactly {series.min_count}"
        else:
            counts = f"{series.min_count}-{series.max_count}"
        span = f"{series.prefix}-0 .. {series.prefix}-{series.max_count - 1}"
        table.add_row(span, f"{counts}, contiguous")
    console.print(table)


@app.command(name="templates")
def templates_command(
    layout: str | None = typer.Option(None, "--layout", "-l", help="Only templates for this layout"),
) -> None:
    """
    List the built-in formulation templates.
    """
    try:
        templates = list_templates(layout)
    except ValueError:
        typer.echo(f"Unknown layout '{layout}'", err=True)
        raise typer.Exit(code=1)

    table = Table(title="Formulation templates")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Layout")
    table.add_column("Source")
    for template in templates:
        table.add_row(template.id, template.name, template.layout.value, template.source)
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
