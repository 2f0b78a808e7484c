"""Markdown generation for instruction files, indexes and tasks.

Everything returned here is an unsigned body; callers sign before writing.
"""

from __future__ import annotations

import re
from datetime import datetime

from .models import DetectedProject, GuidelineVersion

GUIDELINES_SLOT_RE = re.compile(
    r"\{\{SLOT:guidelines\}\}[\s\S]*?\{\{/SLOT:guidelines\}\}",
)

ASSISTANT_NAMES = {
    "claude-code": "Claude Code",
    "gemini": "Gemini",
    "chatgpt": "ChatGPT",
}

GUIDELINES: dict[str, list[str]] = {
    "react": [
        "Prefer function components and hooks over class components",
        "Keep components small; lift state only as far as needed",
        "Co-locate component tests with the component",
    ],
    "next": [
        "Default to server components; add 'use client' only when required",
        "Fetch data in server components or route handlers, not in effects",
    ],
    "astro": [
        "Ship zero JavaScript by default; hydrate islands explicitly",
        "Keep content collections typed with schemas",
    ],
    "vue": [
        "Use the Composition API with <script setup>",
        "Keep props typed and emit events instead of mutating props",
    ],
    "svelte": [
        "Keep stores small and derive values instead of duplicating state",
    ],
    "express": [
        "Validate request input at the route boundary",
        "Centralize error handling in one error middleware",
    ],
    "python": [
        "Type-hint public functions and keep modules import-side-effect free",
        "Run the test suite before marking a task done",
    ],
    "django": [
        "Keep business logic out of views; use services or model methods",
        "Every model change ships with a migration",
    ],
    "fastapi": [
        "Declare request and response models with pydantic",
        "Use dependencies for auth and database sessions",
    ],
    "flask": [
        "Use application factories and blueprints",
    ],
}

INDEX_TITLES = {
    "backlog.md": "Backlog",
    "decisions.md": "Decisions",
    "completed.md": "Completed",
}

SCRIPTS = {
    "pre-session.sh": """\
#!/usr/bin/env bash
# Print where the last session left off.
set -euo pipefail
cd "$(dirname "$0")/../.."

echo "== Branch: $(git rev-parse --abbrev-ref HEAD 2>/dev/null || echo unknown)"
echo "== Last commits"
git log -5 --oneline 2>/dev/null || true
echo "== Session context"
cat .project/context.md 2>/dev/null || echo "(no context.md)"
""",
    "validate-dod.sh": """\
#!/usr/bin/env bash
# Fail if the given task still has unchecked items.
set -euo pipefail

task_file="${1:?usage: validate-dod.sh <task-file>}"
if grep -q -- '- \\[ \\]' "$task_file"; then
    echo "Definition of done not met: unchecked items in $task_file"
    grep -n -- '- \\[ \\]' "$task_file"
    exit 1
fi
echo "Definition of done met: $task_file"
""",
}


def merge_guidelines(base: str, guidelines: list[str]) -> str:
    """Replace the guidelines slot in ``base`` with rendered guideline blocks."""
    return GUIDELINES_SLOT_RE.sub(lambda _: "\n\n".join(guidelines), base, count=1)


def slugify(name: str) -> str:
    """Convert a task title into a filename-safe slug.

    - lowercase
    - replace non [a-z0-9] with '-'
    - collapse/trim '-'
    - limit to 50 chars
    """
    s = (name or "").strip().lower()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    s = s.strip("-")
    s = s[:50].rstrip("-")
    return s or "task"


class InstructionCompiler:
    """Renders the markdown AIPIM manages."""

    def __init__(self, managed_dir: str = ".project") -> None:
        self.managed_dir = managed_dir

    def compile_instruction_file(
        self,
        ai: str,
        version: GuidelineVersion = GuidelineVersion.COMPACT,
        guidelines: list[str] | None = None,
        project: DetectedProject | None = None,
    ) -> str:
        """Generate the instruction file body for one assistant.

        Args:
            ai: Assistant id (claude-code, gemini, chatgpt)
            version: Compact or full instructions
            guidelines: Framework guideline names to inject
            project: Detected project facts, if available

        Returns:
            Unsigned markdown content
        """
        assistant = ASSISTANT_NAMES.get(ai, ai)
        d = self.managed_dir

        sections = [
            f"# Project Instructions for {assistant}",
            "",
            "This project tracks work in plain markdown. Read this file before",
            "writing code and keep the task files current while you work.",
            "",
        ]

        if project and project.framework:
            stack = project.framework
            if project.framework_version:
                stack += f" {project.framework_version}"
            if project.package_manager:
                stack += f" ({project.package_manager})"
            sections.extend([f"**Stack:** {stack}", ""])

        sections.extend([
            "## Session Protocol",
            f"1. Read `{d}/context.md` to see where the last session ended",
            f"2. Open the active task in `{d}/backlog/`",
            "3. Work one checklist item at a time and tick it off when done",
            f"4. Before ending, update `{d}/context.md` with the next action",
            "",
            "## Task Workflow",
            f"- New tasks: `aipim task init <type> <name>` (indexed in `{d}/backlog.md`)",
            f"- Finished tasks move to `{d}/completed/`",
            f"- Architectural decisions go in `{d}/decisions/`",
            "",
        ])

        if version == GuidelineVersion.FULL:
            sections.extend([
                "## Definition of Done",
                "- All checklist items in the task file are ticked",
                "- Tests cover the new behavior and pass",
                "- Documentation reflects the change",
                f"- `{d}/scripts/validate-dod.sh <task-file>` passes",
                "",
                "## Commit Conventions",
                "- Prefix commits with the task type (feat, fix, chore, docs, refactor)",
                "- Reference the task id in the commit body",
                "",
            ])

        blocks = self._render_guidelines(guidelines or [])
        if blocks:
            sections.extend([
                "## Guidelines",
                "{{SLOT:guidelines}}{{/SLOT:guidelines}}",
            ])

        base = "\n".join(sections)
        return merge_guidelines(base, blocks).strip()

    def _render_guidelines(self, names: list[str]) -> list[str]:
        blocks = []
        for name in names:
            items = GUIDELINES.get(name.lower())
            if items is None:
                blocks.append(f"### {name}\n- Follow established {name} conventions")
                continue
            bullets = "\n".join(f"- {item}" for item in items)
            blocks.append(f"### {name.title()}\n{bullets}")
        return blocks

    def compile_index(self, name: str) -> str:
        """Generate the initial body of an index file."""
        title = INDEX_TITLES.get(name, name.removesuffix(".md").title())
        if name == "backlog.md":
            return "\n".join([
                f"# {title}",
                "",
                "| ID | Type | Task | Status |",
                "|----|------|------|--------|",
            ])
        return "\n".join([
            f"# {title}",
            "",
            "_Nothing recorded yet._",
        ])

    def compile_task(
        self,
        task_id: str,
        task_type: str,
        title: str,
        created: datetime,
        prefix: str = "TASK",
    ) -> str:
        """Generate a new task file body.

        Whitespace runs in ``title``, newlines included, collapse to single
        spaces so the front matter and heading stay on one line.
        """
        title = " ".join(title.split())
        escaped = title.replace("\\", "\\\\").replace('"', '\\"')
        return "\n".join([
            "---",
            f'id: "{task_id}"',
            f'title: "{escaped}"',
            f"type: {task_type}",
            f"created: {created.isoformat(timespec='seconds')}",
            "estimated_hours: 0",
            "actual_hours: 0",
            "status: todo",
            "priority: P2-M",
            "---",
            "",
            f"# {prefix}-{task_id} {task_type}: {title}",
            "",
            "## Objective",
            "",
            "Describe what this task delivers and how success is measured.",
            "",
            "### Phase 1: Planning",
            "",
            "- [ ] Clarify scope and acceptance criteria",
            "",
            "### Phase 2: Implementation",
            "",
            "- [ ] Implement the change",
            "- [ ] Add or update tests",
            "",
            "### Phase 3: Validation",
            "",
            "- [ ] Definition of done verified",
        ])

    def compile_context(self) -> str:
        """Generate the initial session context file."""
        return "\n".join([
            "---",
            "session: 0",
            "active_branches: []",
            "blockers: []",
            'next_action: "Create the first task"',
            "---",
            "",
            "# Current State",
            "",
            "Project initialized.",
            "",
            "# Next Steps",
            "",
            "1. Run `aipim task init feat <name>`",
            "",
        ])

    def compile_script(self, name: str) -> str:
        """Return the body of a maintenance script."""
        return SCRIPTS.get(name, f"#!/usr/bin/env bash\n# {name}\n")


def backlog_row(task_id: str, task_type: str, title: str, filename: str) -> str:
    """Markdown table row linking a task from the backlog index."""
    cell = " ".join(title.split()).replace("|", "\\|")
    return f"| {task_id} | {task_type} | [{cell}](backlog/{filename}) | Todo |"
