"""
Multi-entry (diary) envelope.

A repeatable worksheet holds several independent completions, one value
store per entry, all bound to the same compiled schema. The wire shape is
``{"_entries": [{field_id: value, ..., "_recorded_at": iso8601}, ...]}``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from formulate.core.config import DEFAULT_CONFIG, EngineConfig
from formulate.core.errors import DiaryNotSupportedError
from formulate.core.loader import CompiledWorksheet

from .resolved_view import ResolvedView, resolved_view
from .value_store import ValueStore, init_store
from .values import ValueErrorCode, ValueProblem

logger = logging.getLogger(__name__)

ENTRIES_KEY = "_entries"
RECORDED_AT_KEY = "_recorded_at"


def is_multi_entry_response(data: Any) -> bool:
    """Check if response data uses the diary ``{"_entries": [...]}`` shape."""
    return isinstance(data, Mapping) and isinstance(data.get(ENTRIES_KEY), list)


@dataclass(frozen=True)
class DiaryEntry:
    """One completion of a repeatable worksheet."""

    store: ValueStore
    recorded_at: datetime | None = None


@dataclass(frozen=True)
class DiaryResult:
    """Result of a diary operation."""

    envelope: DiaryEnvelope
    error: ValueErrorCode | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, envelope: DiaryEnvelope) -> DiaryResult:
        return cls(envelope=envelope)

    @classmethod
    def failure(cls, envelope: DiaryEnvelope, error: ValueErrorCode, message: str) -> DiaryResult:
        logger.debug("Rejected diary operation: %s: %s", error.value, message)
        return cls(envelope=envelope, error=error, message=message)


@dataclass(frozen=True)
class DiaryEnvelope:
    """
    Ordered, bounded list of independent value stores for one schema.

    Attributes:
        compiled: Shared compiled schema (must be repeatable)
        entries: Entries in completion order
    """

    compiled: CompiledWorksheet
    entries: tuple[DiaryEntry, ...] = ()

    @classmethod
    def create(
        cls,
        compiled: CompiledWorksheet,
        seed: bool = True,
        recorded_at: datetime | None = None,
    ) -> DiaryEnvelope:
        """
        Create an envelope with zero or one seed entry.

        Raises:
            DiaryNotSupportedError: If the schema is not repeatable
        """
        if not compiled.repeatable:
            raise DiaryNotSupportedError(
                f"Schema v{compiled.version} is not repeatable; diary entries are not available"
            )
        entries = (DiaryEntry(init_store(compiled), recorded_at),) if seed else ()
        return cls(compiled=compiled, entries=entries)

    @property
    def max_entries(self) -> int:
        return self.compiled.schema.max_entries or 1

    def __len__(self) -> int:
        return len(self.entries)

    def stores(self) -> list[ValueStore]:
        return [entry.store for entry in self.entries]

    def _index_problem(self, index: int) -> str | None:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self.entries):
            return f"entry {index} does not exist ({len(self.entries)} entries)"
        return None

    def add_entry(self, recorded_at: datetime | None = None) -> DiaryResult:
        """Append a fresh entry; refused at ``max_entries``."""
        if len(self.entries) >= self.max_entries:
            return DiaryResult.failure(
                self, ValueErrorCode.AT_MAXIMUM, f"diary already holds {self.max_entries} entries"
            )
        entry = DiaryEntry(init_store(self.compiled), recorded_at)
        return DiaryResult.success(replace(self, entries=self.entries + (entry,)))

    def remove_entry(self, index: int) -> DiaryResult:
        problem = self._index_problem(index)
        if problem:
            return DiaryResult.failure(self, ValueErrorCode.INDEX_OUT_OF_RANGE, problem)
        entries = self.entries[:index] + self.entries[index + 1 :]
        return DiaryResult.success(replace(self, entries=entries))

    def replace_entry(self, index: int, store: ValueStore) -> DiaryResult:
        """Swap in the updated store of one entry, keeping its timestamp."""
        problem = self._index_problem(index)
        if problem:
            return DiaryResult.failure(self, ValueErrorCode.INDEX_OUT_OF_RANGE, problem)
        if store.compiled is not self.compiled:
            return DiaryResult.failure(
                self, ValueErrorCode.SHAPE_MISMATCH, "store belongs to a different schema"
            )
        entries = list(self.entries)
        entries[index] = replace(entries[index], store=store)
        return DiaryResult.success(replace(self, entries=tuple(entries)))

    def resolve(self, config: EngineConfig = DEFAULT_CONFIG) -> list[ResolvedView]:
        """Resolved view of every entry; entries are evaluated independently."""
        return [resolved_view(self.compiled, entry.store, config) for entry in self.entries]

    # -------------------------------------------------------------------------
    # Wire format
    # -------------------------------------------------------------------------

    def to_response_data(self) -> dict[str, list[dict[str, Any]]]:
        entries = []
        for entry in self.entries:
            data = entry.store.to_dict()
            if entry.recorded_at is not None:
                data[RECORDED_AT_KEY] = entry.recorded_at.isoformat()
            entries.append(data)
        return {ENTRIES_KEY: entries}

    @classmethod
    def from_response_data(
        cls, compiled: CompiledWorksheet, data: Mapping[str, Any]
    ) -> tuple[DiaryEnvelope, dict[int, dict[str, ValueProblem]]]:
        """
        Rebuild an envelope from response data.

        A flat single-entry response is wrapped as one entry. Entries beyond
        ``max_entries`` are dropped.

        Returns:
            Tuple of (envelope, rejected values by entry index and field id)

        Raises:
            DiaryNotSupportedError: If the schema is not repeatable
        """
        envelope = cls.create(compiled, seed=False)
        raw_entries = list(data[ENTRIES_KEY]) if is_multi_entry_response(data) else [data]

        if len(raw_entries) > envelope.max_entries:
            logger.warning(
                "Dropping %d diary entries beyond max_entries=%d",
                len(raw_entries) - envelope.max_entries,
                envelope.max_entries,
            )
            raw_entries = raw_entries[: envelope.max_entries]

        entries: list[DiaryEntry] = []
        problems: dict[int, dict[str, ValueProblem]] = {}
        for i, raw in enumerate(raw_entries):
            if not isinstance(raw, Mapping):
                problems[i] = {
                    ENTRIES_KEY: ValueProblem(ValueErrorCode.SHAPE_MISMATCH, f"entry {i} is not an object")
                }
                entries.append(DiaryEntry(init_store(compiled)))
                continue
            values = {k: v for k, v in raw.items() if k != RECORDED_AT_KEY}
            store, entry_problems = ValueStore.from_dict(compiled, values)
            if entry_problems:
                problems[i] = entry_problems
            entries.append(DiaryEntry(store, _parse_timestamp(raw.get(RECORDED_AT_KEY))))

        return replace(envelope, entries=tuple(entries)), problems


def _parse_timestamp(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring unparseable diary timestamp %r", raw)
        return None
