"""Shared pytest fixtures for worksheet engine tests."""

from __future__ import annotations

from typing import Any

import pytest

from formulate.core.loader import CompiledWorksheet, compile_schema


def section(section_id: str, *fields: dict[str, Any], **extra: Any) -> dict[str, Any]:
    """Build a raw section document."""
    return {"id": section_id, "title": section_id.replace("-", " ").title(), "fields": list(fields), **extra}


def worksheet(*sections: dict[str, Any], **extra: Any) -> dict[str, Any]:
    """Build a raw schema document."""
    return {"version": 1, "title": "Test worksheet", "sections": list(sections), **extra}


# =============================================================================
# Raw documents
# =============================================================================


@pytest.fixture
def activity_doc() -> dict[str, Any]:
    """Activity diary table with sum/average/count over a mood column."""
    return worksheet(
        section(
            "activities",
            {
                "id": "activity-table",
                "type": "table",
                "label": "Activities",
                "columns": [
                    {"id": "day", "header": "Day", "type": "text"},
                    {"id": "activity", "header": "Activity", "type": "text"},
                    {"id": "mood", "header": "Mood", "type": "number", "min": 0, "max": 100},
                ],
                "min_rows": 1,
                "max_rows": 5,
            },
            {
                "id": "mood-total",
                "type": "computed",
                "label": "Total mood",
                "computation": {"operation": "sum", "field": "activity-table.mood"},
            },
            {
                "id": "mood-average",
                "type": "computed",
                "label": "Average mood",
                "computation": {"operation": "average", "field": "activity-table.mood"},
            },
            {
                "id": "mood-count",
                "type": "computed",
                "label": "Rows",
                "computation": {"operation": "count", "field": "activity-table.mood"},
            },
            {
                "id": "activity-count",
                "type": "computed",
                "label": "Activities logged",
                "computation": {"operation": "count", "field": "activity-table"},
            },
            {
                "id": "mood-by-day",
                "type": "computed",
                "label": "Mood per day",
                "computation": {
                    "operation": "sum",
                    "field": "activity-table.mood",
                    "group_by": "activity-table.day",
                },
            },
        )
    )


@pytest.fixture
def belief_doc() -> dict[str, Any]:
    """Before/after belief ratings compared with difference and percentage_change."""
    return worksheet(
        section(
            "beliefs",
            {
                "id": "record-table",
                "type": "table",
                "label": "Beliefs",
                "columns": [
                    {"id": "belief", "header": "Belief", "type": "text"},
                    {"id": "belief_before", "header": "Before", "type": "number", "min": 0, "max": 100},
                    {"id": "belief_after", "header": "After", "type": "number", "min": 0, "max": 100},
                ],
                "min_rows": 1,
                "max_rows": 10,
            },
            {
                "id": "belief-shift",
                "type": "computed",
                "label": "Belief shift",
                "computation": {
                    "operation": "difference",
                    "field_a": "record-table.belief_before",
                    "field_b": "record-table.belief_after",
                },
            },
            {
                "id": "belief-change",
                "type": "computed",
                "label": "Belief change",
                "computation": {
                    "operation": "percentage_change",
                    "field_a": "record-table.belief_before",
                    "field_b": "record-table.belief_after",
                    "format": "percentage_change",
                },
            },
        )
    )


@pytest.fixture
def thought_record_doc() -> dict[str, Any]:
    """Paginated thought record with likert ratings inside groups."""
    return worksheet(
        section(
            "record",
            {
                "id": "thought-record",
                "type": "record",
                "label": "Thought record",
                "min_records": 1,
                "max_records": 3,
                "groups": [
                    {
                        "id": "situation",
                        "header": "Situation",
                        "fields": [{"id": "text", "type": "textarea", "label": "What happened?"}],
                    },
                    {
                        "id": "emotion",
                        "header": "Emotion",
                        "fields": [
                            {"id": "name", "type": "text", "label": "Emotion"},
                            {"id": "intensity", "type": "likert", "label": "Intensity"},
                        ],
                    },
                    {
                        "id": "distortions",
                        "header": "Thinking traps",
                        "fields": [
                            {
                                "id": "traps",
                                "type": "checklist",
                                "label": "Traps",
                                "options": [
                                    {"id": "catastrophising", "label": "Catastrophising"},
                                    {"id": "mind-reading", "label": "Mind reading"},
                                ],
                            }
                        ],
                    },
                ],
            },
            {
                "id": "average-intensity",
                "type": "computed",
                "label": "Average intensity",
                "computation": {"operation": "average", "field": "thought-record.emotion.intensity"},
            },
            {
                "id": "entry-count",
                "type": "computed",
                "label": "Entries",
                "computation": {"operation": "count", "field": "thought-record"},
            },
        )
    )


@pytest.fixture
def visibility_doc() -> dict[str, Any]:
    """Panic follow-up section and a high-distress coping field."""
    return worksheet(
        section(
            "screening",
            {
                "id": "had-panic",
                "type": "select",
                "label": "Did you have a panic attack?",
                "options": [{"id": "yes", "label": "Yes"}, {"id": "no", "label": "No"}],
            },
            {"id": "distress", "type": "likert", "label": "Distress", "min": 0, "max": 10},
            {
                "id": "coping",
                "type": "textarea",
                "label": "What helped you cope?",
                "show_when": {"field": "distress", "operator": "greater_than", "value": 7},
            },
        ),
        section(
            "panic-details",
            {"id": "panic-description", "type": "textarea", "label": "Describe the attack", "required": True},
            {"id": "panic-duration", "type": "number", "label": "Minutes", "min": 0},
            show_when={"field": "had-panic", "operator": "equals", "value": "yes"},
        ),
    )


@pytest.fixture
def diary_doc() -> dict[str, Any]:
    """Repeatable daily mood diary, seven entries at most."""
    return worksheet(
        section(
            "today",
            {"id": "date", "type": "date", "label": "Date"},
            {"id": "mood", "type": "likert", "label": "Mood", "min": 0, "max": 10},
            {"id": "notes", "type": "textarea", "label": "Notes"},
        ),
        repeatable=True,
        max_entries=7,
    )


@pytest.fixture
def five_areas_doc() -> dict[str, Any]:
    """Cross-sectional formulation with one textarea per node."""
    slots = [
        ("trigger", "top"),
        ("thoughts", "left"),
        ("emotions", "centre"),
        ("physical", "right"),
        ("behaviour", "bottom"),
    ]
    return worksheet(
        section(
            "formulation",
            {
                "id": "five-areas",
                "type": "formulation",
                "label": "Five areas",
                "layout": "cross_sectional",
                "nodes": [
                    {
                        "id": node_id,
                        "slot": slot,
                        "label": node_id.title(),
                        "fields": [
                            {"id": "text", "type": "textarea"},
                            {"id": "rating", "type": "likert"},
                        ],
                    }
                    for node_id, slot in slots
                ],
                "connections": [
                    {"from": "trigger", "to": "thoughts"},
                    {"from": "thoughts", "to": "emotions", "direction": "both"},
                ],
            },
        )
    )


# =============================================================================
# Compiled worksheets
# =============================================================================


@pytest.fixture
def activity_ws(activity_doc: dict[str, Any]) -> CompiledWorksheet:
    return compile_schema(activity_doc)


@pytest.fixture
def belief_ws(belief_doc: dict[str, Any]) -> CompiledWorksheet:
    return compile_schema(belief_doc)


@pytest.fixture
def thought_record_ws(thought_record_doc: dict[str, Any]) -> CompiledWorksheet:
    return compile_schema(thought_record_doc)


@pytest.fixture
def visibility_ws(visibility_doc: dict[str, Any]) -> CompiledWorksheet:
    return compile_schema(visibility_doc)


@pytest.fixture
def diary_ws(diary_doc: dict[str, Any]) -> CompiledWorksheet:
    return compile_schema(diary_doc)


@pytest.fixture
def five_areas_ws(five_areas_doc: dict[str, Any]) -> CompiledWorksheet:
    return compile_schema(five_areas_doc)
