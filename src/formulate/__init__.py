"""
Formulate - schema-driven clinical worksheet engine.

Validates declarative worksheet schemas, holds the values of a completion,
and resolves computed fields and conditional visibility for renderers and
exporters.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _metadata_version

# Re-export commonly used types for convenience
from .core import ir
from .core.config import EngineConfig, load_config
from .core.errors import (
    DependencyCycleError,
    DiaryNotSupportedError,
    FormulateError,
    SchemaLoadError,
    SchemaValidationError,
)
from .core.loader import CompiledWorksheet, compile_schema, load_schema_file
from .core.validator import validate
from .runtime import (
    UNRESOLVED,
    DiaryEnvelope,
    RecordSession,
    ResolvedView,
    ValueStore,
    check_submission,
    init_store,
    resolved_view,
)


def _get_version() -> str:
    try:
        return _metadata_version("formulate-engine")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _get_version()

__all__ = [
    "__version__",
    "ir",
    "EngineConfig",
    "load_config",
    "FormulateError",
    "SchemaLoadError",
    "SchemaValidationError",
    "DependencyCycleError",
    "DiaryNotSupportedError",
    "CompiledWorksheet",
    "compile_schema",
    "load_schema_file",
    "validate",
    "UNRESOLVED",
    "DiaryEnvelope",
    "RecordSession",
    "ResolvedView",
    "ValueStore",
    "check_submission",
    "init_store",
    "resolved_view",
]
