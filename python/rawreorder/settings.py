"""
User settings, read from a VS Code style settings.json.

Keys live under the "tailwind-raw-reorder" section, either flat
("tailwind-raw-reorder.highlightColor": ...) or nested
({"tailwind-raw-reorder": {"highlightColor": ...}}). Unrelated keys are ignored.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rawreorder.catalog import DEFAULT_CLASS_REGEX
from rawreorder.errors import SettingsError
from rawreorder.models import DEFAULT_HIGHLIGHT_COLOR, HighlightConfig

logger = structlog.get_logger(__name__)

SECTION = "tailwind-raw-reorder"


class ReorderSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    class_regex: Dict[str, Any] = Field(
        default_factory=lambda: dict(DEFAULT_CLASS_REGEX),
        alias="classRegex",
        description="Per-language patterns locating class lists.",
    )
    ignore_config_not_found: bool = Field(
        False,
        alias="IgnoreConfigNotFound",
        description="Abort silently when no Tailwind config is found.",
    )
    tailwind_config_path: Optional[str] = Field(
        None,
        alias="tailwindConfigPath",
        description="Tailwind config to use instead of searching. Relative to the workspace root.",
    )
    highlight_color: str = Field(DEFAULT_HIGHLIGHT_COLOR, alias="highlightColor")
    highlight_timeout: float = Field(7, gt=0, allow_inf_nan=False, alias="highlightTimeout", description="Seconds.")
    run_on_save: bool = Field(False, alias="runOnSave")
    batch_command: List[str] = Field(
        default_factory=lambda: ["rustywind"],
        alias="batchCommand",
        min_length=1,
        description="Executable (and leading arguments) for the whole-project reorder.",
    )

    def highlight_config(self) -> HighlightConfig:
        # Sub-millisecond timeouts still arm a timer.
        timeout_ms = max(1, round(self.highlight_timeout * 1000))
        return HighlightConfig(color=self.highlight_color, timeout_ms=timeout_ms)

    def resolved_config_path(self, workspace_root: Optional[Path]) -> Optional[Path]:
        if not self.tailwind_config_path:
            return None
        if workspace_root is None:
            return Path(self.tailwind_config_path)
        return expand_config_path(workspace_root, self.tailwind_config_path)

    def with_changes(self, values: Dict[str, Any]) -> "ReorderSettings":
        """Returns new settings with the given (aliased) keys replaced."""
        data = self.model_dump(by_alias=True)
        data.update(values)
        return ReorderSettings.model_validate(data)


def expand_config_path(workspace_root: Path, path: Union[str, Path]) -> Path:
    path = Path(path)
    return path if path.is_absolute() else (Path(workspace_root) / path).resolve()


def extract_section(data: Dict[str, Any]) -> Dict[str, Any]:
    """Collects the section's keys from a settings mapping, flat keys winning."""
    values: Dict[str, Any] = {}
    nested = data.get(SECTION)
    if isinstance(nested, dict):
        values.update(nested)
    prefix = f"{SECTION}."
    for key, value in data.items():
        if key.startswith(prefix):
            values[key[len(prefix) :]] = value
    return values


def load_settings(path: Optional[Union[str, Path]] = None) -> ReorderSettings:
    if path is None:
        return ReorderSettings()

    path = Path(path)
    if not path.exists():
        logger.info(f"Settings file {path} not found, using defaults")
        return ReorderSettings()

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read().strip()
        data = json.loads(content) if content else {}
    except (OSError, json.JSONDecodeError) as e:
        raise SettingsError(f"Could not read settings from {path}: {e}") from e

    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {path} must contain a JSON object")

    try:
        return ReorderSettings.model_validate(extract_section(data))
    except ValidationError as e:
        raise SettingsError(f"Invalid settings in {path}: {e}") from e
