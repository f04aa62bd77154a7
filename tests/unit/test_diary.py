"""Tests for multi-entry diary envelopes."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from formulate.core.errors import DiaryNotSupportedError
from formulate.core.loader import CompiledWorksheet
from formulate.runtime.diary import (
    ENTRIES_KEY,
    RECORDED_AT_KEY,
    DiaryEnvelope,
    is_multi_entry_response,
)
from formulate.runtime.value_store import init_store
from formulate.runtime.values import ValueErrorCode


def full_diary(compiled: CompiledWorksheet) -> DiaryEnvelope:
    envelope = DiaryEnvelope.create(compiled)
    for _ in range(6):
        envelope = envelope.add_entry().envelope
    for i in range(7):
        store = envelope.entries[i].store.set("mood", i).store
        envelope = envelope.replace_entry(i, store).envelope
    return envelope


class TestCreate:
    """Tests for creating envelopes."""

    def test_seeded(self, diary_ws: CompiledWorksheet) -> None:
        envelope = DiaryEnvelope.create(diary_ws)
        assert len(envelope) == 1
        assert envelope.max_entries == 7
        assert envelope.stores()[0] == init_store(diary_ws)

    def test_empty(self, diary_ws: CompiledWorksheet) -> None:
        assert len(DiaryEnvelope.create(diary_ws, seed=False)) == 0

    def test_non_repeatable_rejected(self, activity_ws: CompiledWorksheet) -> None:
        with pytest.raises(DiaryNotSupportedError):
            DiaryEnvelope.create(activity_ws)


class TestEntries:
    """Tests for adding, removing and replacing entries."""

    def test_eighth_entry_refused(self, diary_ws: CompiledWorksheet) -> None:
        envelope = full_diary(diary_ws)
        assert len(envelope) == 7
        result = envelope.add_entry()
        assert result.error == ValueErrorCode.AT_MAXIMUM
        assert result.envelope is envelope
        assert [s.get("mood") for s in result.envelope.stores()] == list(range(7))

    def test_entries_are_independent(self, diary_ws: CompiledWorksheet) -> None:
        envelope = DiaryEnvelope.create(diary_ws).add_entry().envelope
        store = envelope.entries[1].store.set("notes", "Long walk").store
        envelope = envelope.replace_entry(1, store).envelope
        assert envelope.stores()[0].get("notes") == ""
        assert envelope.stores()[1].get("notes") == "Long walk"

    def test_remove_entry(self, diary_ws: CompiledWorksheet) -> None:
        envelope = full_diary(diary_ws)
        result = envelope.remove_entry(3)
        assert result.ok
        assert [s.get("mood") for s in result.envelope.stores()] == [0, 1, 2, 4, 5, 6]
        assert len(envelope) == 7

    def test_bad_index(self, diary_ws: CompiledWorksheet) -> None:
        envelope = DiaryEnvelope.create(diary_ws)
        assert envelope.remove_entry(2).error == ValueErrorCode.INDEX_OUT_OF_RANGE
        assert envelope.replace_entry(-1, init_store(diary_ws)).error == ValueErrorCode.INDEX_OUT_OF_RANGE

    def test_foreign_store_rejected(self, diary_ws: CompiledWorksheet, activity_ws: CompiledWorksheet) -> None:
        envelope = DiaryEnvelope.create(diary_ws)
        result = envelope.replace_entry(0, init_store(activity_ws))
        assert result.error == ValueErrorCode.SHAPE_MISMATCH

    def test_resolve_each_entry(self, diary_ws: CompiledWorksheet) -> None:
        views = full_diary(diary_ws).resolve()
        assert len(views) == 7
        assert views[2].values["mood"] == 2


class TestWireFormat:
    """Tests for the ``_entries`` response shape."""

    def test_round_trip(self, diary_ws: CompiledWorksheet) -> None:
        stamp = datetime(2026, 10, 17, 8, 30, tzinfo=timezone.utc)
        envelope = DiaryEnvelope.create(diary_ws, recorded_at=stamp)
        envelope = envelope.add_entry().envelope
        store = envelope.entries[0].store.set("notes", "Slept badly").store
        envelope = envelope.replace_entry(0, store).envelope

        data = envelope.to_response_data()
        assert is_multi_entry_response(data)
        assert data[ENTRIES_KEY][0][RECORDED_AT_KEY] == "2026-10-17T08:30:00+00:00"
        assert RECORDED_AT_KEY not in data[ENTRIES_KEY][1]

        rebuilt, problems = DiaryEnvelope.from_response_data(diary_ws, data)
        assert problems == {}
        assert rebuilt.stores() == envelope.stores()
        assert rebuilt.entries[0].recorded_at == stamp
        assert rebuilt.entries[1].recorded_at is None

    def test_flat_response_wrapped(self, diary_ws: CompiledWorksheet) -> None:
        envelope, problems = DiaryEnvelope.from_response_data(diary_ws, {"mood": 4, "notes": "ok"})
        assert problems == {}
        assert len(envelope) == 1
        assert envelope.stores()[0].get("mood") == 4

    def test_extra_entries_dropped(self, diary_ws: CompiledWorksheet) -> None:
        data = {ENTRIES_KEY: [{"mood": i} for i in range(9)]}
        envelope, _ = DiaryEnvelope.from_response_data(diary_ws, data)
        assert len(envelope) == 7

    def test_problems_by_entry(self, diary_ws: CompiledWorksheet) -> None:
        data = {ENTRIES_KEY: [{"mood": 3}, {"mood": 42}, "junk", {"_recorded_at": "yesterday"}]}
        envelope, problems = DiaryEnvelope.from_response_data(diary_ws, data)
        assert set(problems) == {1, 2}
        assert problems[1]["mood"].code == ValueErrorCode.OUT_OF_RANGE
        assert problems[2][ENTRIES_KEY].code == ValueErrorCode.SHAPE_MISMATCH
        assert len(envelope) == 4
        assert envelope.entries[3].recorded_at is None

    def test_zulu_timestamp(self, diary_ws: CompiledWorksheet) -> None:
        data = {ENTRIES_KEY: [{"_recorded_at": "2026-10-17T08:30:00Z"}]}
        envelope, _ = DiaryEnvelope.from_response_data(diary_ws, data)
        assert envelope.entries[0].recorded_at == datetime(2026, 10, 17, 8, 30, tzinfo=timezone.utc)

    def test_detects_shape(self) -> None:
        assert is_multi_entry_response({ENTRIES_KEY: []})
        assert not is_multi_entry_response({"mood": 3})
        assert not is_multi_entry_response([])
