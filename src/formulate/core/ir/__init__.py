"""
Worksheet Intermediate Representation (IR) types.

Types are organized into submodules; everything is re-exported here so that
callers can write ``from formulate.core import ir`` and use ``ir.TableField``.
"""

# Computed fields
from .computed import (
    Computation,
    ComputedFormat,
    ComputedOperation,
    PathReference,
)

# Visibility rules
from .conditions import (
    PredicateValue,
    VisibilityOperator,
    VisibilityRule,
)

# Fields
from .fields import (
    BaseField,
    ChecklistField,
    ColumnWidth,
    ComputedField,
    DateField,
    FieldKind,
    LikertField,
    NumberField,
    Option,
    RecordField,
    RecordGroup,
    SelectField,
    SubField,
    SubFieldType,
    RECORD_LIKERT_MAX,
    NODE_LIKERT_MAX,
    TableColumn,
    TableField,
    TextareaField,
    TextField,
    TimeField,
)

# Formulations
from .formulation import (
    ConnectionDirection,
    ConnectionStyle,
    FormulationConnection,
    FormulationField,
    FormulationLayout,
    FormulationNode,
)

# Schema
from .worksheet import (
    Section,
    WorksheetField,
    WorksheetSchema,
)

__all__ = [
    # Computed
    "Computation",
    "ComputedFormat",
    "ComputedOperation",
    "PathReference",
    # Conditions
    "PredicateValue",
    "VisibilityOperator",
    "VisibilityRule",
    # Fields
    "BaseField",
    "ChecklistField",
    "ColumnWidth",
    "ComputedField",
    "DateField",
    "FieldKind",
    "LikertField",
    "NumberField",
    "Option",
    "RecordField",
    "RecordGroup",
    "SelectField",
    "SubField",
    "SubFieldType",
    "RECORD_LIKERT_MAX",
    "NODE_LIKERT_MAX",
    "TableColumn",
    "TableField",
    "TextareaField",
    "TextField",
    "TimeField",
    # Formulation
    "ConnectionDirection",
    "ConnectionStyle",
    "FormulationConnection",
    "FormulationField",
    "FormulationLayout",
    "FormulationNode",
    # Schema
    "Section",
    "WorksheetField",
    "WorksheetSchema",
]
