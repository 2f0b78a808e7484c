"""Tests for markdown generation."""

from datetime import datetime, timezone

import pytest
import yaml

from aipim.compiler import (
    InstructionCompiler,
    backlog_row,
    merge_guidelines,
    slugify,
)
from aipim.models import DetectedProject, GuidelineVersion


class TestSlugify:
    """Test task title slugs."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Cleanup", "cleanup"),
            ("Add OAuth2 login!", "add-oauth2-login"),
            ("  --Weird__spacing--  ", "weird-spacing"),
            ("", "task"),
            ("!!!", "task"),
        ],
    )
    def test_slugify(self, name: str, expected: str) -> None:
        """Test slug normalization."""
        assert slugify(name) == expected

    def test_slug_length_limit(self) -> None:
        """Test long titles are truncated without a trailing dash."""
        slug = slugify("word " * 30)
        assert len(slug) <= 50
        assert not slug.endswith("-")


class TestMergeGuidelines:
    """Test guideline slot replacement."""

    def test_replaces_slot(self) -> None:
        """Test the slot and its placeholder content are replaced."""
        base = "# T\n{{SLOT:guidelines}}old{{/SLOT:guidelines}}\nend"
        assert merge_guidelines(base, ["a", "b"]) == "# T\na\n\nb\nend"

    def test_without_slot(self) -> None:
        """Test content without a slot is unchanged."""
        assert merge_guidelines("# T", ["a"]) == "# T"


class TestInstructionCompiler:
    """Test instruction file generation."""

    @pytest.fixture
    def compiler(self) -> InstructionCompiler:
        """Create a compiler for the default managed directory."""
        return InstructionCompiler(".project")

    def test_compact_instructions(self, compiler: InstructionCompiler) -> None:
        """Test the compact variant."""
        content = compiler.compile_instruction_file("claude-code")
        assert content.startswith("# Project Instructions for Claude Code")
        assert "## Session Protocol" in content
        assert "`.project/context.md`" in content
        assert "## Definition of Done" not in content
        assert "{{SLOT" not in content

    def test_full_instructions(self, compiler: InstructionCompiler) -> None:
        """Test the full variant adds DoD and commit sections."""
        content = compiler.compile_instruction_file("gemini", version=GuidelineVersion.FULL)
        assert content.startswith("# Project Instructions for Gemini")
        assert "## Definition of Done" in content
        assert "## Commit Conventions" in content

    def test_guidelines_injected(self, compiler: InstructionCompiler) -> None:
        """Test known and unknown guidelines render."""
        content = compiler.compile_instruction_file(
            "claude-code",
            guidelines=["react", "elm"],
        )
        assert "### React" in content
        assert "Prefer function components" in content
        assert "### elm" in content

    def test_no_guidelines_removes_section(self, compiler: InstructionCompiler) -> None:
        """Test an empty guideline list leaves no guidelines section behind."""
        content = compiler.compile_instruction_file("claude-code", guidelines=[])
        assert "## Guidelines" not in content
        assert "conventions" not in content
        assert content.endswith("`.project/decisions/`")

    def test_stack_line(self, compiler: InstructionCompiler) -> None:
        """Test detected stack is shown."""
        project = DetectedProject(
            framework="next",
            framework_version="14.1.0",
            package_manager="pnpm",
        )
        content = compiler.compile_instruction_file("claude-code", project=project)
        assert "**Stack:** next 14.1.0 (pnpm)" in content

    def test_output_is_deterministic(self, compiler: InstructionCompiler) -> None:
        """Test identical input gives identical output."""
        first = compiler.compile_instruction_file("chatgpt", guidelines=["python"])
        second = compiler.compile_instruction_file("chatgpt", guidelines=["python"])
        assert first == second

    def test_custom_managed_dir(self) -> None:
        """Test paths follow the managed directory."""
        content = InstructionCompiler(".ai").compile_instruction_file("claude-code")
        assert "`.ai/context.md`" in content


class TestIndexAndTaskTemplates:
    """Test index, task, context and script templates."""

    @pytest.fixture
    def compiler(self) -> InstructionCompiler:
        """Create a compiler."""
        return InstructionCompiler()

    def test_backlog_index(self, compiler: InstructionCompiler) -> None:
        """Test the backlog index carries a table header."""
        content = compiler.compile_index("backlog.md")
        assert content.startswith("# Backlog")
        assert "| ID | Type | Task | Status |" in content

    def test_other_index(self, compiler: InstructionCompiler) -> None:
        """Test other indexes get a placeholder."""
        assert compiler.compile_index("decisions.md").startswith("# Decisions")

    def test_task_frontmatter(self, compiler: InstructionCompiler) -> None:
        """Test task front matter is valid YAML."""
        created = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        content = compiler.compile_task("007", "feat", 'Say "hi"', created)

        frontmatter = yaml.safe_load(content.split("---")[1])
        assert frontmatter["id"] == "007"
        assert frontmatter["title"] == 'Say "hi"'
        assert frontmatter["status"] == "todo"
        assert '# TASK-007 feat: Say "hi"' in content
        assert "- [ ] Implement the change" in content

    def test_multiline_title_keeps_front_matter_intact(
        self,
        compiler: InstructionCompiler,
    ) -> None:
        """Test a title with line breaks still yields one-line YAML fields."""
        created = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        content = compiler.compile_task("008", "fix", "Line one\nstatus: done", created)

        frontmatter = yaml.safe_load(content.split("---")[1])
        assert frontmatter["title"] == "Line one status: done"
        assert frontmatter["status"] == "todo"
        assert "# TASK-008 fix: Line one status: done\n" in content

    def test_context_template(self, compiler: InstructionCompiler) -> None:
        """Test the context file has front matter and a state section."""
        content = compiler.compile_context()
        assert yaml.safe_load(content.split("---")[1])["session"] == 0
        assert "# Current State" in content

    def test_scripts(self, compiler: InstructionCompiler) -> None:
        """Test known scripts have bodies and unknown ones a stub."""
        assert compiler.compile_script("validate-dod.sh").startswith("#!/usr/bin/env bash")
        assert "Definition of done" in compiler.compile_script("validate-dod.sh")
        assert compiler.compile_script("custom.sh").startswith("#!/usr/bin/env bash")


class TestBacklogRow:
    """Test backlog index rows."""

    def test_row_format(self) -> None:
        """Test the row links the task file."""
        row = backlog_row("001", "chore", "Cleanup", "TASK-001-cleanup.md")
        assert row == "| 001 | chore | [Cleanup](backlog/TASK-001-cleanup.md) | Todo |"

    def test_pipes_escaped(self) -> None:
        """Test table separators in titles are escaped."""
        row = backlog_row("002", "fix", "a|b", "TASK-002-a-b.md")
        assert "[a\\|b]" in row

    def test_multiline_title_stays_on_one_row(self) -> None:
        """Test line breaks in a title do not split the row."""
        row = backlog_row("003", "fix", "first\nsecond", "TASK-003-first-second.md")
        assert "\n" not in row
        assert "[first second]" in row
