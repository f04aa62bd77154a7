"""
Computed field types for worksheet IR.

Computed fields are read-only values derived from other fields through a
fixed set of aggregate and comparison operations. They never occupy a slot
in the value store.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ComputedOperation(StrEnum):
    """Supported operations for computed fields."""

    SUM = "sum"
    AVERAGE = "average"
    COUNT = "count"
    MIN = "min"
    MAX = "max"
    DIFFERENCE = "difference"
    PERCENTAGE_CHANGE = "percentage_change"

    @property
    def is_binary(self) -> bool:
        """Check if the operation compares two paths (field_a / field_b)."""
        return self in (ComputedOperation.DIFFERENCE, ComputedOperation.PERCENTAGE_CHANGE)


class ComputedFormat(StrEnum):
    """Display formats for computed results."""

    NUMBER = "number"
    INTEGER = "integer"
    PERCENTAGE_CHANGE = "percentage_change"


class PathReference(BaseModel):
    """
    Parsed reference from a computed field to the values it reads.

    Examples:
        - PathReference.parse("activity-table.pleasure")
          -> field_id="activity-table", parts=("pleasure",)
        - PathReference.parse("thought-record.emotion.intensity")
          -> field_id="thought-record", parts=("emotion", "intensity")
        - PathReference.parse("mood-rating") -> field_id="mood-rating", parts=()
    """

    field_id: str = Field(description="Top-level field the path starts from")
    parts: tuple[str, ...] = Field(default=(), description="Column, group/sub-field or node/sub-field")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, raw: str) -> PathReference:
        """
        Parse a dotted path string.

        Raises:
            ValueError: If the path is empty, has empty segments or is deeper
                than three segments.
        """
        if not isinstance(raw, str) or not raw.strip():
            raise ValueError("path reference is empty")
        segments = raw.split(".")
        if any(not s.strip() for s in segments):
            raise ValueError(f"path reference '{raw}' has an empty segment")
        if len(segments) > 3:
            raise ValueError(f"path reference '{raw}' is deeper than three segments")
        return cls(field_id=segments[0], parts=tuple(segments[1:]))

    def __str__(self) -> str:
        return ".".join((self.field_id, *self.parts))

    @property
    def is_simple(self) -> bool:
        """Check if this references a top-level field without a sub-key."""
        return not self.parts


class Computation(BaseModel):
    """
    Definition of a computed field's operation.

    Examples:
        - {"operation": "average", "field": "activity-table.mood"}
        - {"operation": "difference", "field_a": "record-table.belief_before",
           "field_b": "record-table.belief_after"}
        - {"operation": "sum", "field": "diary.minutes", "group_by": "diary.day"}
    """

    operation: ComputedOperation
    field: str | None = None
    field_a: str | None = Field(default=None, validation_alias=AliasChoices("field_a", "fieldA"))
    field_b: str | None = Field(default=None, validation_alias=AliasChoices("field_b", "fieldB"))
    group_by: str | None = Field(default=None, validation_alias=AliasChoices("group_by", "groupBy"))
    format: ComputedFormat | None = None

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        if self.operation.is_binary:
            return f"{self.operation.value}({self.field_a}, {self.field_b})"
        return f"{self.operation.value}({self.field})"

    @property
    def raw_paths(self) -> list[tuple[str, str]]:
        """All declared path strings keyed by their attribute name."""
        paths: list[tuple[str, str]] = []
        for attr in ("field", "field_a", "field_b", "group_by"):
            value = getattr(self, attr)
            if value is not None:
                paths.append((attr, value))
        return paths
