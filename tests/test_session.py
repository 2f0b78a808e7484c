"""Tests for the session-start prompt."""

import asyncio
from pathlib import Path

import pytest

from aipim import session
from aipim.config import ProjectSettings
from aipim.session import build_session_prompt, clipboard_commands, copy_to_clipboard

TASK = """\
---
title: "Add login"
status: in-progress
---

# TASK-001 feat: Add login

## Objective

Users can sign in.

### Phase 1: Backend

- [x] Session model
- [ ] Login endpoint
- [ ] Logout endpoint
"""


@pytest.fixture
def no_git(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace git calls with fixed output."""

    async def fake_branch(cwd: Path | None = None) -> str:
        return "feature/login"

    async def fake_log(count: int, cwd: Path | None = None) -> str:
        return "abc123 Add session model"

    monkeypatch.setattr(session, "git_branch", fake_branch)
    monkeypatch.setattr(session, "git_log", fake_log)


class TestBuildSessionPrompt:
    """Test prompt assembly."""

    @pytest.mark.usefixtures("no_git")
    def test_prompt_with_active_task(self, tmp_path: Path) -> None:
        """Test context, task progress and git state appear."""
        project = tmp_path / ".project"
        (project / "backlog").mkdir(parents=True)
        (project / "context.md").write_text(
            '---\nsession: 3\nnext_action: "Finish login"\n---\n\n# Current State\n\nHalfway.\n',
        )
        (project / "backlog" / "TASK-001-add-login.md").write_text(TASK)

        prompt = asyncio.run(build_session_prompt(tmp_path, ProjectSettings()))

        assert "**Branch:** feature/login" in prompt
        assert "**Session:** 3" in prompt
        assert "**Next action:** Finish login" in prompt
        assert "Halfway." in prompt
        assert "## Active Task: Add login" in prompt
        assert "Progress: 1/3 (33%)" in prompt
        assert "Phase: Phase 1: Backend" in prompt
        assert "- [x] Session model" in prompt
        assert "**Current:** Login endpoint" in prompt
        assert "**Next:** Logout endpoint" in prompt
        assert "abc123 Add session model" in prompt

    @pytest.mark.usefixtures("no_git")
    def test_prompt_for_empty_project(self, tmp_path: Path) -> None:
        """Test a project with nothing yet still yields a prompt."""
        prompt = asyncio.run(build_session_prompt(tmp_path))
        assert prompt.startswith("# Session Resume")
        assert "Active Task" not in prompt

    def test_git_failure_falls_back(self, tmp_path: Path) -> None:
        """Test outside a repository the branch is unknown."""
        branch = asyncio.run(session.git_safe(["not-a-git-command"], "unknown", tmp_path))
        assert branch == "unknown"


class TestClipboard:
    """Test clipboard tool selection."""

    def test_platform_commands(self) -> None:
        """Test each platform's tool list."""
        assert clipboard_commands("darwin") == [["pbcopy"]]
        assert clipboard_commands("win32") == [["clip"]]
        assert clipboard_commands("linux")[0] == ["wl-copy"]

    def test_no_tool_available(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test copying reports failure when no tool is installed."""
        monkeypatch.setattr(session.shutil, "which", lambda name: None)
        assert asyncio.run(copy_to_clipboard("text")) is False
