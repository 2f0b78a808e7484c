"""Tests for installing the managed skeleton."""

import asyncio
import os
from pathlib import Path

import pytest

from aipim.config import ProjectSettings
from aipim.exceptions import AipimError
from aipim.installer import ProjectInstaller
from aipim.models import FileStatus, GuidelineVersion, InstallConfig, UpdateDecision
from aipim.signature import signature_manager


class TestProjectInstaller:
    """Test project installation."""

    @pytest.fixture
    def installer(self) -> ProjectInstaller:
        """Create an installer with default settings."""
        return ProjectInstaller(ProjectSettings())

    def test_fresh_install(self, tmp_path: Path, installer: ProjectInstaller) -> None:
        """Test a fresh install lays out everything and signs files."""
        report = asyncio.run(installer.install(tmp_path, InstallConfig()))

        project = tmp_path / ".project"
        for name in ["backlog", "completed", "decisions", "docs", "ideas", "reports", "scripts"]:
            assert (project / name).is_dir()
        assert (project / "context.md").is_file()
        for name in ["backlog.md", "decisions.md", "completed.md"]:
            content = (project / name).read_text()
            assert signature_manager.verify(content) == FileStatus.PRISTINE

        claude = (tmp_path / "CLAUDE.md").read_text()
        assert signature_manager.verify(claude) == FileStatus.PRISTINE
        assert report.instructions.outcomes[0].decision == UpdateDecision.CREATED
        assert ".project/backlog.md" in report.created
        assert report.instructions.backup_path is None
        assert not (tmp_path / ".project-backups").exists()

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_scripts_are_executable(self, tmp_path: Path, installer: ProjectInstaller) -> None:
        """Test maintenance scripts get the execute bit."""
        asyncio.run(installer.install(tmp_path, InstallConfig()))
        script = tmp_path / ".project" / "scripts" / "pre-session.sh"
        assert os.access(script, os.X_OK)

    def test_reinstall_keeps_existing_files(
        self,
        tmp_path: Path,
        installer: ProjectInstaller,
    ) -> None:
        """Test re-running install preserves tasks, context and edits."""
        asyncio.run(installer.install(tmp_path, InstallConfig()))
        (tmp_path / ".project" / "context.md").write_text("my context")
        claude_path = tmp_path / "CLAUDE.md"
        claude_path.write_text(claude_path.read_text().replace("Session Protocol", "My Protocol"))

        report = asyncio.run(installer.install(tmp_path, InstallConfig()))

        assert (tmp_path / ".project" / "context.md").read_text() == "my context"
        assert "My Protocol" in claude_path.read_text()
        assert report.instructions.outcomes[0].decision == UpdateDecision.SKIPPED
        assert ".project/context.md" in report.existing

    def test_multiple_assistants(self, tmp_path: Path, installer: ProjectInstaller) -> None:
        """Test one file per assistant."""
        config = InstallConfig(ais=["claude-code", "gemini"], version=GuidelineVersion.FULL)
        asyncio.run(installer.install(tmp_path, config))

        assert (tmp_path / "CLAUDE.md").is_file()
        assert "Definition of Done" in (tmp_path / "GEMINI.md").read_text()
        assert not (tmp_path / "CHATGPT.md").exists()

    def test_unknown_assistant(self, tmp_path: Path, installer: ProjectInstaller) -> None:
        """Test unknown assistants are rejected before writing."""
        with pytest.raises(AipimError, match="Unknown assistant"):
            asyncio.run(installer.install(tmp_path, InstallConfig(ais=["copilot"])))
        assert not (tmp_path / ".project").exists()

    def test_dry_run(self, tmp_path: Path, installer: ProjectInstaller) -> None:
        """Test dry run reports without writing."""
        report = asyncio.run(installer.install(tmp_path, InstallConfig(), dry_run=True))

        assert report.dry_run
        assert ".project/" in report.created
        assert report.instructions.outcomes[0].decision == UpdateDecision.CREATED
        assert list(tmp_path.iterdir()) == []

    def test_detected_framework_guidelines(
        self,
        tmp_path: Path,
        installer: ProjectInstaller,
    ) -> None:
        """Test guidelines default to the detected framework."""
        (tmp_path / "requirements.txt").write_text("flask\n")
        files = installer.instruction_files(tmp_path, InstallConfig())
        assert "### Flask" in files["CLAUDE.md"]
        assert "### Python" in files["CLAUDE.md"]
