"""Core data models for AIPIM."""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FileStatus(str, Enum):
    """Edit status of a managed file relative to its embedded signature."""

    PRISTINE = "pristine"
    MODIFIED = "modified"
    LEGACY = "legacy"
    MISSING = "missing"


class CheckStatus(str, Enum):
    """Outcome of a single diagnostic check."""

    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


class UpdateAction(str, Enum):
    """What the update engine does with a target file."""

    CREATE = "create"
    OVERWRITE = "overwrite"
    SKIP = "skip"


class UpdateDecision(str, Enum):
    """Reported verdict for a single target file."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


class GuidelineVersion(str, Enum):
    """Size of the generated instruction files."""

    COMPACT = "compact"
    FULL = "full"


class ScanResult(BaseModel):
    """Classification of one managed file."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(..., description="Absolute path of the scanned file")
    relative_path: str = Field(..., description="Path relative to the project root")
    status: FileStatus = Field(..., description="Edit status of the file")


class CheckResult(BaseModel):
    """A single diagnostic record produced by the doctor."""

    id: str = Field(..., description="Stable identifier of the check")
    name: str = Field(..., description="Human-readable check name")
    status: CheckStatus = Field(..., description="Check outcome")
    message: str = Field(..., description="Details for the user")


class UpdateOutcome(BaseModel):
    """Per-file result of an update run."""

    relative_path: str
    status: FileStatus
    action: UpdateAction
    decision: UpdateDecision
    reason: str = ""


class UpdateReport(BaseModel):
    """Aggregate result of an update run."""

    outcomes: list[UpdateOutcome] = Field(default_factory=list)
    dry_run: bool = False
    backup_path: Path | None = None

    def count(self, decision: UpdateDecision) -> int:
        """Number of outcomes with the given decision."""
        return sum(1 for o in self.outcomes if o.decision == decision)

    @property
    def has_errors(self) -> bool:
        """Whether any target failed to be written."""
        return self.count(UpdateDecision.ERROR) > 0

    def summary(self) -> str:
        """One-line summary of decisions."""
        return (
            f"{self.count(UpdateDecision.CREATED)} created, "
            f"{self.count(UpdateDecision.UPDATED)} updated, "
            f"{self.count(UpdateDecision.SKIPPED)} skipped, "
            f"{self.count(UpdateDecision.ERROR)} failed"
        )


class TaskRecord(BaseModel):
    """A task file claimed in the backlog directory."""

    id: str = Field(..., description="Zero-padded sequential identifier")
    type: str = Field(..., description="Task type tag (feat, fix, chore, ...)")
    title: str = Field(..., description="Original task title")
    slug: str = Field(..., description="Filename-safe form of the title")
    path: Path = Field(..., description="Absolute path of the task file")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Validate the type tag is a short lowercase word."""
        return validate_task_type(v)


def validate_task_type(value: str) -> str:
    """Check a task type tag is a short lowercase word."""
    if not re.match(r"^[a-z][a-z0-9_-]{0,19}$", value):
        msg = "Task type must be a short lowercase word (e.g., feat, fix)"
        raise ValueError(msg)
    return value


class InstallConfig(BaseModel):
    """Options for installing AIPIM into a project."""

    ais: list[str] = Field(
        default_factory=lambda: ["claude-code"],
        description="Assistants to generate instruction files for",
    )
    guidelines: list[str] = Field(
        default_factory=list,
        description="Framework guidelines to inject",
    )
    version: GuidelineVersion = Field(
        default=GuidelineVersion.COMPACT,
        description="Instruction file size",
    )
    force: bool = Field(
        default=False,
        description="Overwrite customized or unsigned instruction files",
    )


class InstallReport(BaseModel):
    """What an install created and how the instruction files were handled."""

    created: list[str] = Field(default_factory=list)
    existing: list[str] = Field(default_factory=list)
    instructions: UpdateReport = Field(default_factory=UpdateReport)
    dry_run: bool = False


class ExistingSetup(BaseModel):
    """What AIPIM artifacts a project already has."""

    has_project: bool = False
    has_prompts: list[str] = Field(default_factory=list)


class DetectedProject(BaseModel):
    """Facts about a project discovered before installing."""

    framework: str | None = None
    framework_version: str | None = None
    package_manager: str | None = None
    has_git: bool = False
    has_node_modules: bool = False
    existing_setup: ExistingSetup = Field(default_factory=ExistingSetup)
