"""
Visibility rule types for worksheet IR.

A section or field may carry one ``show_when`` rule that reads exactly one
other field. Compound boolean logic is not supported.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class VisibilityOperator(StrEnum):
    """Operators available to ``show_when`` rules."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    NOT_EMPTY = "not_empty"
    EMPTY = "empty"
    CONTAINS = "contains"

    @property
    def needs_value(self) -> bool:
        """Check if the operator compares against a target value."""
        return self not in (VisibilityOperator.EMPTY, VisibilityOperator.NOT_EMPTY)

    @property
    def is_numeric(self) -> bool:
        """Check if the operator requires a numeric target value."""
        return self in (VisibilityOperator.GREATER_THAN, VisibilityOperator.LESS_THAN)


PredicateValue = str | int | float | bool | list[str] | None


class VisibilityRule(BaseModel):
    """
    A single-field visibility predicate.

    Examples:
        - {"field": "risk-rating", "operator": "greater_than", "value": 7}
        - {"field": "had-panic", "operator": "equals", "value": "yes"}
        - {"field": "triggers", "operator": "not_empty"}
    """

    field: str
    operator: VisibilityOperator
    value: PredicateValue = None

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        if self.operator.needs_value:
            return f"{self.field} {self.operator.value} {self.value!r}"
        return f"{self.field} {self.operator.value}"
