"""
Runtime evaluation: value store, computed fields, visibility, record
sessions and diary envelopes.
"""

from .computed_evaluator import UNRESOLVED, Unresolved, format_computed, resolve_computed
from .diary import DiaryEnvelope, DiaryResult, is_multi_entry_response
from .record_session import RecordSession, SessionResult
from .resolved_view import (
    ResolvedView,
    SubmissionCheck,
    check_submission,
    refresh_view,
    resolved_view,
)
from .value_store import UpdateResult, ValueStore, init_store
from .values import ValueErrorCode, ValueProblem
from .visibility_evaluator import resolve_visibility

__all__ = [
    "UNRESOLVED",
    "Unresolved",
    "format_computed",
    "resolve_computed",
    "DiaryEnvelope",
    "DiaryResult",
    "is_multi_entry_response",
    "RecordSession",
    "SessionResult",
    "ResolvedView",
    "SubmissionCheck",
    "check_submission",
    "refresh_view",
    "resolved_view",
    "UpdateResult",
    "ValueStore",
    "init_store",
    "ValueErrorCode",
    "ValueProblem",
    "resolve_visibility",
]
