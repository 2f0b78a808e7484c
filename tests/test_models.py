"""Tests for AIPIM data models."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from aipim.models import (
    FileStatus,
    InstallConfig,
    ScanResult,
    TaskRecord,
    UpdateAction,
    UpdateDecision,
    UpdateOutcome,
    UpdateReport,
)


class TestTaskRecord:
    """Test TaskRecord validation."""

    def test_valid_record(self) -> None:
        """Test creating a valid task record."""
        record = TaskRecord(
            id="001",
            type="feat",
            title="Login",
            slug="login",
            path=Path("/p/.project/backlog/TASK-001-login.md"),
        )
        assert record.type == "feat"

    @pytest.mark.parametrize("task_type", ["Feat", "with space", "", "x" * 21])
    def test_invalid_type(self, task_type: str) -> None:
        """Test type tags must be short lowercase words."""
        with pytest.raises(ValidationError, match="Task type must be"):
            TaskRecord(id="001", type=task_type, title="t", slug="t", path=Path("t.md"))


class TestScanResult:
    """Test ScanResult behavior."""

    def test_frozen(self) -> None:
        """Test scan results are immutable."""
        result = ScanResult(path=Path("/p/CLAUDE.md"), relative_path="CLAUDE.md", status="legacy")
        assert result.status == FileStatus.LEGACY
        with pytest.raises(ValidationError):
            result.status = FileStatus.PRISTINE


class TestUpdateReport:
    """Test update report aggregation."""

    def _outcome(self, decision: UpdateDecision) -> UpdateOutcome:
        return UpdateOutcome(
            relative_path="CLAUDE.md",
            status=FileStatus.PRISTINE,
            action=UpdateAction.OVERWRITE,
            decision=decision,
        )

    def test_counts_and_summary(self) -> None:
        """Test per-decision counts."""
        report = UpdateReport(
            outcomes=[
                self._outcome(UpdateDecision.UPDATED),
                self._outcome(UpdateDecision.UPDATED),
                self._outcome(UpdateDecision.SKIPPED),
            ],
        )
        assert report.count(UpdateDecision.UPDATED) == 2
        assert not report.has_errors
        assert report.summary() == "0 created, 2 updated, 1 skipped, 0 failed"

    def test_has_errors(self) -> None:
        """Test a single error marks the report."""
        report = UpdateReport(outcomes=[self._outcome(UpdateDecision.ERROR)])
        assert report.has_errors


class TestInstallConfig:
    """Test install defaults."""

    def test_defaults(self) -> None:
        """Test Claude Code compact is the default."""
        config = InstallConfig()
        assert config.ais == ["claude-code"]
        assert config.version.value == "compact"
        assert not config.force
