"""Tests for the formulate CLI."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from formulate.cli import app

runner = CliRunner()


@pytest.fixture
def write_json(tmp_path: Path):
    def _write(name: str, data: Any) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


class TestValidateCommand:
    """Tests for `formulate validate`."""

    def test_valid_schema(self, write_json, activity_doc: dict[str, Any]) -> None:
        result = runner.invoke(app, ["validate", str(write_json("a.json", activity_doc))])
        assert result.exit_code == 0
        assert "OK" in result.output

    def test_invalid_schema(self, write_json) -> None:
        doc = {"version": 1, "sections": [{"id": "main", "fields": [{"id": "a", "type": "text"}]}]}
        result = runner.invoke(app, ["validate", str(write_json("bad.json", doc))])
        assert result.exit_code == 1
        assert "[a] field must have a label" in result.output

    def test_json_format(self, write_json, activity_doc: dict[str, Any]) -> None:
        result = runner.invoke(app, ["validate", str(write_json("a.json", activity_doc)), "--format", "json"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload == {"valid": True, "issues": []}

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.json")])
        assert result.exit_code == 1
        assert "Cannot read schema file" in result.output


class TestResolveCommand:
    """Tests for `formulate resolve`."""

    def test_resolve_json(self, write_json, activity_doc: dict[str, Any]) -> None:
        schema = write_json("a.json", activity_doc)
        values = write_json("v.json", {"activity-table": [{"mood": 10}, {"mood": ""}, {"mood": 20}]})
        result = runner.invoke(app, ["resolve", str(schema), "--values", str(values), "--json"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["computed"]["mood-total"] == 30
        assert payload["computed"]["mood-by-day"] == {}
        assert payload["rendered_sections"] == ["activities"]

    def test_resolve_unresolved_as_null(self, write_json, belief_doc: dict[str, Any]) -> None:
        result = runner.invoke(app, ["resolve", str(write_json("b.json", belief_doc)), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["computed"]["belief-shift"] is None

    def test_resolve_diary(self, write_json, diary_doc: dict[str, Any]) -> None:
        schema = write_json("d.json", diary_doc)
        values = write_json("v.json", {"_entries": [{"mood": 2}, {"mood": 8}]})
        result = runner.invoke(app, ["resolve", str(schema), "--values", str(values), "--json"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert len(payload) == 2

    def test_resolve_hidden_required(self, write_json, visibility_doc: dict[str, Any], tmp_path: Path) -> None:
        schema = write_json("v.json", visibility_doc)
        config = tmp_path / "formulate.toml"
        config.write_text("[engine]\nhidden_required_blocks_submit = true\n", encoding="utf-8")
        result = runner.invoke(app, ["resolve", str(schema), "--config", str(config), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["missing_required"] == ["panic-description"]

    def test_resolve_invalid_schema(self, write_json) -> None:
        doc = {"version": 1, "sections": []}
        result = runner.invoke(app, ["resolve", str(write_json("x.json", doc))])
        assert result.exit_code == 1
        assert "Schema has 1 error(s)" in result.output

    def test_resolve_table_output(self, write_json, visibility_doc: dict[str, Any]) -> None:
        result = runner.invoke(app, ["resolve", str(write_json("v.json", visibility_doc))])
        assert result.exit_code == 0


class TestLayoutCommands:
    """Tests for `formulate slots` and `formulate templates`."""

    def test_slots(self) -> None:
        result = runner.invoke(app, ["slots", "radial"])
        assert result.exit_code == 0
        assert "centre" in result.output

    def test_unknown_layout(self) -> None:
        result = runner.invoke(app, ["slots", "spiral"])
        assert result.exit_code == 1
        assert "Unknown layout 'spiral'" in result.output

    def test_templates(self) -> None:
        result = runner.invoke(app, ["templates", "--layout", "three_systems"])
        assert result.exit_code == 0

    def test_templates_unknown_layout(self) -> None:
        result = runner.invoke(app, ["templates", "--layout", "spiral"])
        assert result.exit_code == 1

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("formulate ")
