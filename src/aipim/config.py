"""Project settings loader with schema validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import jsonschema
import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError
from .paths import validate_path

CONFIG_FILENAME = ".aipim.yaml"

SETTINGS_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "AIPIM Project Settings",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "managed_dir": {"type": "string", "minLength": 1},
        "required_dirs": {"type": "array", "items": {"type": "string"}},
        "scripts": {"type": "array", "items": {"type": "string"}},
        "index_files": {"type": "array", "items": {"type": "string"}},
        "instruction_files": {
            "type": "object",
            "additionalProperties": {"type": "string"},
        },
        "tasks": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "prefix": {"type": "string", "pattern": "^[A-Z]+$"},
                "id_width": {"type": "integer", "minimum": 1, "maximum": 9},
                "max_retries": {"type": "integer", "minimum": 0},
                "scan_completed": {"type": "boolean"},
            },
        },
    },
}


class TaskSettings(BaseModel):
    """Task id allocation settings."""

    prefix: str = Field(default="TASK", description="Task filename prefix")
    id_width: int = Field(default=3, description="Zero-padding width of task ids")
    max_retries: int = Field(
        default=10,
        description="Collisions tolerated before allocation fails",
    )
    scan_completed: bool = Field(
        default=True,
        description="Also count ids of tasks moved to the completed directory",
    )


class ProjectSettings(BaseModel):
    """Layout of the managed directory and the files AIPIM owns."""

    managed_dir: str = Field(default=".project", description="Managed root")
    required_dirs: list[str] = Field(
        default_factory=lambda: [
            "backlog",
            "completed",
            "decisions",
            "docs",
            "ideas",
            "reports",
        ],
        description="Subdirectories the structure check expects",
    )
    scripts: list[str] = Field(
        default_factory=lambda: ["pre-session.sh", "validate-dod.sh"],
        description="Maintenance scripts under <managed_dir>/scripts",
    )
    index_files: list[str] = Field(
        default_factory=lambda: ["backlog.md", "decisions.md", "completed.md"],
        description="Signed index files under the managed root",
    )
    instruction_files: dict[str, str] = Field(
        default_factory=lambda: {
            "claude-code": "CLAUDE.md",
            "gemini": "GEMINI.md",
            "chatgpt": "CHATGPT.md",
        },
        description="Instruction filename per assistant",
    )
    tasks: TaskSettings = Field(default_factory=TaskSettings)

    @property
    def backup_dir(self) -> str:
        """Directory (relative to the project root) holding snapshots."""
        return f"{self.managed_dir}-backups"

    @property
    def backlog_dir(self) -> str:
        return f"{self.managed_dir}/backlog"

    @property
    def completed_dir(self) -> str:
        return f"{self.managed_dir}/completed"

    @property
    def backlog_index(self) -> str:
        return f"{self.managed_dir}/backlog.md"

    def index_paths(self) -> list[str]:
        """Project-relative paths of the index files."""
        return [f"{self.managed_dir}/{name}" for name in self.index_files]

    def script_paths(self) -> list[str]:
        """Project-relative paths of the maintenance scripts."""
        return [f"{self.managed_dir}/scripts/{name}" for name in self.scripts]

    def default_scan_targets(self) -> list[str]:
        """Instruction files followed by index files."""
        return list(self.instruction_files.values()) + self.index_paths()


def load_settings(project_root: Path) -> ProjectSettings:
    """Load project settings, falling back to defaults.

    Args:
        project_root: Root of the user's project

    Returns:
        Validated project settings

    Raises:
        ConfigError: If the settings file cannot be parsed or is invalid
    """
    config_path = validate_path(CONFIG_FILENAME, project_root)
    if not config_path.exists():
        return ProjectSettings()

    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        msg = f"Failed to parse {CONFIG_FILENAME}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Failed to read {CONFIG_FILENAME}: {e}"
        raise ConfigError(msg) from e

    try:
        jsonschema.validate(data, SETTINGS_SCHEMA)
    except jsonschema.ValidationError as e:
        msg = f"Schema validation failed: {e.message}"
        raise ConfigError(
            msg,
            details={"path": list(e.absolute_path), "schema": "settings"},
        ) from e

    try:
        return ProjectSettings.model_validate(data)
    except ValidationError as e:
        msg = f"Settings validation failed: {e}"
        raise ConfigError(msg) from e
