"""
Record session manager.

A record field is a paginated, bounded list of structurally identical
entries. A session pairs a value store with the entry currently in focus;
every operation returns a new session and leaves the old one untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from formulate.core import ir

from .value_store import UpdateResult, ValueStore
from .values import ValueErrorCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionResult:
    """Result of a session operation."""

    session: RecordSession
    error: ValueErrorCode | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, session: RecordSession) -> SessionResult:
        return cls(session=session)

    @classmethod
    def failure(cls, session: RecordSession, error: ValueErrorCode, message: str) -> SessionResult:
        return cls(session=session, error=error, message=message)


@dataclass(frozen=True)
class RecordSession:
    """
    Focus state for one record field of one value store.

    Attributes:
        store: Value store holding the record's entries
        record_id: Id of the record field
        current_index: Entry in focus
    """

    store: ValueStore
    record_id: str
    current_index: int = 0

    @classmethod
    def open(cls, store: ValueStore, record_id: str, current_index: int = 0) -> RecordSession:
        """
        Start a session on a record field.

        Raises:
            KeyError: If ``record_id`` is not a record field of the store's schema
        """
        fld = store.compiled.get_field(record_id)
        if not isinstance(fld, ir.RecordField):
            raise KeyError(f"'{record_id}' is not a record field")
        count = len(store.peek(record_id) or [])
        index = min(max(current_index, 0), max(count - 1, 0))
        return cls(store=store, record_id=record_id, current_index=index)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def record(self) -> ir.RecordField:
        fld = self.store.compiled.get_field(self.record_id)
        assert isinstance(fld, ir.RecordField)
        return fld

    @property
    def entries(self) -> list[dict[str, Any]]:
        return self.store.get(self.record_id, [])

    @property
    def count(self) -> int:
        return len(self.store.peek(self.record_id) or [])

    @property
    def current_entry(self) -> dict[str, Any] | None:
        entries = self.entries
        if not entries:
            return None
        return entries[self.current_index]

    @property
    def can_add(self) -> bool:
        return self.count < self.record.max_records

    @property
    def can_remove(self) -> bool:
        return self.count > self.record.min_records

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def _from_update(self, result: UpdateResult, current_index: int) -> SessionResult:
        if not result.ok:
            assert result.error is not None
            return SessionResult.failure(self, result.error, result.message)
        return SessionResult.success(replace(self, store=result.store, current_index=current_index))

    def add_entry(self) -> SessionResult:
        """Append a blank entry and focus it; refused at ``max_records``."""
        result = self.store.add_entry(self.record_id)
        return self._from_update(result, self.count)

    def remove_entry(self, index: int | None = None) -> SessionResult:
        """
        Remove an entry (the focused one by default); refused at ``min_records``.

        Removing the focused entry moves focus to ``min(index, len - 1)``;
        removing an earlier entry keeps the same entry in focus.
        """
        index = self.current_index if index is None else index
        result = self.store.remove_entry(self.record_id, index)
        if not result.ok:
            return self._from_update(result, self.current_index)

        remaining = len(result.store.peek(self.record_id))
        if index < self.current_index:
            focus = self.current_index - 1
        else:
            focus = min(self.current_index, remaining - 1)
        logger.debug("Removed entry %d of '%s'; focus %d", index, self.record_id, focus)
        return self._from_update(result, max(focus, 0))

    def set_current_index(self, index: int) -> SessionResult:
        """Move focus to an existing entry."""
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < self.count:
            return SessionResult.failure(
                self,
                ValueErrorCode.INDEX_OUT_OF_RANGE,
                f"entry {index} does not exist ({self.count} entries)",
            )
        return SessionResult.success(replace(self, current_index=index))

    def next(self) -> SessionResult:
        """Focus the next entry, staying on the last one."""
        last = max(self.count - 1, 0)
        return SessionResult.success(replace(self, current_index=min(self.current_index + 1, last)))

    def previous(self) -> SessionResult:
        """Focus the previous entry, staying on the first one."""
        return SessionResult.success(replace(self, current_index=max(self.current_index - 1, 0)))

    def set_subfield_value(
        self, entry_index: int, group_id: str, subfield_id: str, value: Any
    ) -> SessionResult:
        """Set one sub-field of one entry; focus is unchanged."""
        result = self.store.set_subfield(self.record_id, entry_index, group_id, subfield_id, value)
        return self._from_update(result, self.current_index)
