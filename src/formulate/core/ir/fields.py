"""
Field type definitions for worksheet IR.

Every field variant carries a literal ``type`` tag so that the full set can be
parsed as a discriminated union (see ``worksheet.WorksheetField``). The set of
variants is closed; an unknown ``type`` is rejected when the schema is parsed.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .computed import Computation
from .conditions import VisibilityRule


class FieldKind(StrEnum):
    """Enumeration of supported field types."""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    DATE = "date"
    TIME = "time"
    SELECT = "select"
    LIKERT = "likert"
    CHECKLIST = "checklist"
    TABLE = "table"
    RECORD = "record"
    FORMULATION = "formulation"
    COMPUTED = "computed"

    @property
    def is_text_like(self) -> bool:
        """Text-like fields hold a plain string and default to ''."""
        return self in (
            FieldKind.TEXT,
            FieldKind.TEXTAREA,
            FieldKind.DATE,
            FieldKind.TIME,
            FieldKind.SELECT,
        )

    @property
    def is_collection(self) -> bool:
        """Collection fields hold a bounded list of rows or entries."""
        return self in (FieldKind.TABLE, FieldKind.RECORD)


class ColumnWidth(StrEnum):
    NARROW = "narrow"
    NORMAL = "normal"
    WIDE = "wide"


class Option(BaseModel):
    """A choice in a select or checklist field."""

    id: str
    label: str = ""

    model_config = ConfigDict(frozen=True)


class BaseField(BaseModel):
    """
    Attributes shared by every field variant.

    Field ids are unique across the whole schema, not just within a section,
    because computed paths and visibility rules reference them globally.
    """

    id: str
    label: str = ""
    required: bool = False
    placeholder: str | None = None
    show_when: VisibilityRule | None = Field(
        default=None, validation_alias=AliasChoices("show_when", "showWhen")
    )

    model_config = ConfigDict(frozen=True)

    @property
    def kind(self) -> FieldKind:
        return FieldKind(self.type)  # type: ignore[attr-defined]


class TextField(BaseField):
    type: Literal["text"] = "text"


class TextareaField(BaseField):
    type: Literal["textarea"] = "textarea"


class DateField(BaseField):
    type: Literal["date"] = "date"


class TimeField(BaseField):
    type: Literal["time"] = "time"


class NumberField(BaseField):
    type: Literal["number"] = "number"
    min: float | None = None
    max: float | None = None
    step: float | None = None
    suffix: str | None = None


class LikertField(BaseField):
    """
    Slider scale. Anchor keys are stringified scale points, e.g.
    ``{"0": "Not at all", "50": "Moderate", "100": "Extreme"}``.
    """

    type: Literal["likert"] = "likert"
    min: float = 0
    max: float = 10
    step: float = 1
    anchors: dict[str, str] = Field(default_factory=dict)


class SelectField(BaseField):
    type: Literal["select"] = "select"
    options: list[Option] = Field(default_factory=list)


class ChecklistField(BaseField):
    type: Literal["checklist"] = "checklist"
    options: list[Option] = Field(default_factory=list)


# =============================================================================
# Tables
# =============================================================================


class TableColumn(BaseModel):
    """A column of a table field. Cells hold scalars only."""

    id: str
    header: str = ""
    type: Literal["text", "textarea", "number"] = "text"
    min: float | None = None
    max: float | None = None
    step: float | None = None
    suffix: str | None = None
    width: ColumnWidth | None = None

    model_config = ConfigDict(frozen=True)


class TableField(BaseField):
    """
    A grid of rows sharing the same columns.

    ``group_by`` names a column the renderer groups rows by for display. The
    engine only checks that the column exists; computed aggregates group
    through ``Computation.group_by`` instead.
    """

    type: Literal["table"] = "table"
    columns: list[TableColumn] = Field(default_factory=list)
    min_rows: int = Field(default=1, validation_alias=AliasChoices("min_rows", "minRows"))
    max_rows: int = Field(default=20, validation_alias=AliasChoices("max_rows", "maxRows"))
    group_by: str | None = Field(default=None, validation_alias=AliasChoices("group_by", "groupBy"))

    def column(self, column_id: str) -> TableColumn | None:
        for col in self.columns:
            if col.id == column_id:
                return col
        return None


# =============================================================================
# Sub-fields (record groups and formulation nodes)
# =============================================================================


SubFieldType = Literal["text", "textarea", "number", "likert", "checklist", "select"]


class SubField(BaseModel):
    """
    A simple input nested inside a record group or a formulation node.

    Nested tables, records and formulations are not allowed.
    """

    id: str
    type: SubFieldType = "textarea"
    label: str = ""
    placeholder: str | None = None
    min: float | None = None
    max: float | None = None
    step: float | None = None
    suffix: str | None = None
    anchors: dict[str, str] = Field(default_factory=dict)
    options: list[Option] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def likert_bounds(self, default_max: float) -> tuple[float, float]:
        """
        Slider range of a likert sub-field.

        Record sub-fields default to a 0-100 scale, formulation node
        sub-fields to 0-10.
        """
        lo = 0 if self.min is None else self.min
        hi = default_max if self.max is None else self.max
        return lo, hi


RECORD_LIKERT_MAX = 100
NODE_LIKERT_MAX = 10


# =============================================================================
# Records
# =============================================================================


class RecordGroup(BaseModel):
    """A named column of a record entry holding one or more sub-fields."""

    id: str
    header: str = ""
    width: ColumnWidth | None = None
    fields: list[SubField] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def subfield(self, subfield_id: str) -> SubField | None:
        for sub in self.fields:
            if sub.id == subfield_id:
                return sub
        return None


class RecordField(BaseField):
    """
    Paginated multi-column entries (e.g. a thought record).

    A value is a list of entries, each mapping group id -> sub-field id -> value.
    """

    type: Literal["record"] = "record"
    groups: list[RecordGroup] = Field(default_factory=list)
    min_records: int = Field(default=1, validation_alias=AliasChoices("min_records", "minRecords"))
    max_records: int = Field(default=20, validation_alias=AliasChoices("max_records", "maxRecords"))

    def group(self, group_id: str) -> RecordGroup | None:
        for grp in self.groups:
            if grp.id == group_id:
                return grp
        return None


# =============================================================================
# Computed
# =============================================================================


class ComputedField(BaseField):
    type: Literal["computed"] = "computed"
    computation: Computation
