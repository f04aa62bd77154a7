"""
Error types for worksheet schema loading, validation, and evaluation.

Only structural problems are raised. Value errors (a rejected ``set`` or an
out-of-range row count) are returned as result objects so that a half-filled
form never crashes; see ``formulate.runtime.values.ValueErrorCode``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .validator import ValidationIssue


class FormulateError(Exception):
    """Base exception for all worksheet engine errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SchemaLoadError(FormulateError):
    """
    Raised when a schema document cannot be read at all.

    Examples:
    - File not found
    - Invalid JSON
    - Top-level value is not an object
    """

    pass


class SchemaValidationError(FormulateError):
    """
    Raised when a schema fails structural validation at compile time.

    Carries every violation so that an authoring tool can highlight all of
    them at once.
    """

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__(self._format_issues(issues))

    @staticmethod
    def _format_issues(issues: list[ValidationIssue]) -> str:
        if not issues:
            return "Schema is invalid"
        lines = [f"Schema has {len(issues)} error(s):"]
        for issue in issues:
            lines.append(f"  - {issue}")
        return "\n".join(lines)


class DependencyCycleError(FormulateError):
    """Raised when an evaluation order is requested for a graph with a cycle."""

    def __init__(self, members: set[str]):
        self.members = members
        super().__init__(f"Circular dependency detected involving: {sorted(members)}")


class DiaryNotSupportedError(FormulateError):
    """Raised when a diary envelope is requested for a non-repeatable schema."""

    pass
