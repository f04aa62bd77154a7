"""
Worksheet schema: sections, the field union and the top-level document.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Annotated

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .conditions import VisibilityRule
from .fields import (
    ChecklistField,
    ComputedField,
    DateField,
    LikertField,
    NumberField,
    RecordField,
    SelectField,
    TableField,
    TextareaField,
    TextField,
    TimeField,
)
from .formulation import FormulationField

WorksheetField = Annotated[
    TextField
    | TextareaField
    | NumberField
    | DateField
    | TimeField
    | SelectField
    | LikertField
    | ChecklistField
    | TableField
    | RecordField
    | FormulationField
    | ComputedField,
    Field(discriminator="type"),
]


class Section(BaseModel):
    """
    A titled group of fields.

    A section whose fields are all hidden renders as absent, but the values of
    those fields are kept.
    """

    id: str
    title: str = ""
    description: str | None = None
    show_when: VisibilityRule | None = Field(
        default=None, validation_alias=AliasChoices("show_when", "showWhen")
    )
    fields: list[WorksheetField] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class WorksheetSchema(BaseModel):
    """
    Versioned, declarative description of a worksheet.

    Attributes:
        version: Incremented on every edit; an assignment in progress keeps
            the version it started with.
        repeatable: Diary mode, one completion per entry.
        max_entries: Upper bound on diary entries (required when repeatable).
        sections: Ordered sections.
    """

    version: int = 1
    title: str | None = None
    repeatable: bool = False
    max_entries: int | None = Field(
        default=None, validation_alias=AliasChoices("max_entries", "maxEntries")
    )
    sections: list[Section] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def iter_fields(self) -> Iterator[tuple[Section, WorksheetField]]:
        """Yield (section, field) pairs in declaration order."""
        for section in self.sections:
            for fld in section.fields:
                yield section, fld

    @property
    def fields(self) -> list[WorksheetField]:
        return [fld for _, fld in self.iter_fields()]

    def get_field(self, field_id: str) -> WorksheetField | None:
        for _, fld in self.iter_fields():
            if fld.id == field_id:
                return fld
        return None

    def get_section(self, section_id: str) -> Section | None:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None
