"""
Engine configuration loaded from ``formulate.toml``.

Example:

    [engine]
    hidden_required_blocks_submit = false
    blank_rows_are_empty = false
    unresolved_display = "—"
"""

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path

from .errors import FormulateError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "formulate.toml"
UNRESOLVED_DISPLAY = "—"


@dataclass(frozen=True)
class EngineConfig:
    """Evaluation switches that differ between deployments."""

    # Whether a required field that is currently hidden still blocks submission
    hidden_required_blocks_submit: bool = False
    # Whether a table/record with only blank rows counts as empty for show_when
    blank_rows_are_empty: bool = False
    # Display string for an unresolved computed value
    unresolved_display: str = UNRESOLVED_DISPLAY


DEFAULT_CONFIG = EngineConfig()


def load_config(path: Path | None = None) -> EngineConfig:
    """
    Load engine configuration.

    Args:
        path: Path to a ``formulate.toml`` file or a directory containing
            one. Defaults to the current directory.

    Returns:
        EngineConfig, with defaults when the file or the ``[engine]`` table
        is absent.

    Raises:
        FormulateError: If the file exists but is not valid TOML
    """
    path = Path.cwd() if path is None else Path(path)
    if path.is_dir():
        path = path / CONFIG_FILENAME
    if not path.exists():
        logger.debug("No %s found, using default engine config", path)
        return DEFAULT_CONFIG

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise FormulateError(f"Invalid TOML in {path}: {e}") from e

    engine = data.get("engine", {})
    config = EngineConfig(
        hidden_required_blocks_submit=bool(engine.get("hidden_required_blocks_submit", False)),
        blank_rows_are_empty=bool(engine.get("blank_rows_are_empty", False)),
        unresolved_display=str(engine.get("unresolved_display", UNRESOLVED_DISPLAY)),
    )
    logger.debug("Loaded engine config from %s: %s", path, config)
    return config
