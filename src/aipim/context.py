"""Parsing of session context and task files for the session-start prompt."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
CHECKBOX_RE = re.compile(r"^\s*[-*] \[([ xX])\](.*)$", re.MULTILINE)
PHASE_RE = re.compile(r"^###\s+(Phase\b.*?)\s*$", re.MULTILINE)


@dataclass
class SessionContext:
    """Parsed ``context.md``."""

    frontmatter: dict[str, Any] = field(default_factory=dict)
    current_state: str = ""
    next_action: str = ""


@dataclass
class TaskSummary:
    """Front matter and phase of a task file."""

    title: str = ""
    estimated_hours: str = ""
    actual_hours: str = ""
    status: str = ""
    current_phase: str | None = None


@dataclass
class Progress:
    """Checkbox completion counts."""

    completed: int = 0
    total: int = 0

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 0
        return round(self.completed * 100 / self.total)


@dataclass
class Checkpoints:
    """Where in a checklist the work currently is."""

    last_completed: list[str] = field(default_factory=list)
    current: str | None = None
    next: str | None = None


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split YAML front matter from the body.

    Malformed front matter is treated as absent.

    Returns:
        The front matter mapping and the remaining body
    """
    match = FRONTMATTER_RE.match(content)
    if match is None:
        return {}, content
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.debug("Ignoring malformed front matter: %s", e)
        return {}, content[match.end():]
    return (data if isinstance(data, dict) else {}), content[match.end():]


def _section(body: str, heading: str) -> list[str]:
    """Lines under ``heading`` up to the next heading of any level."""
    lines = body.splitlines()
    collected: list[str] = []
    inside = False
    for line in lines:
        if line.strip() == heading:
            inside = True
            continue
        if inside:
            if line.startswith("#"):
                break
            collected.append(line)
    return collected


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def parse_context(content: str) -> SessionContext:
    """Parse the session context file."""
    frontmatter, body = parse_frontmatter(content)
    current_state = "\n".join(_section(body, "# Current State")).strip()
    return SessionContext(
        frontmatter=frontmatter,
        current_state=current_state,
        next_action=_text(frontmatter.get("next_action")),
    )


def calculate_progress(content: str) -> Progress:
    """Count checked and total checkboxes."""
    marks = [m.group(1) for m in CHECKBOX_RE.finditer(content)]
    return Progress(
        completed=sum(1 for mark in marks if mark != " "),
        total=len(marks),
    )


def extract_checkpoints(content: str) -> Checkpoints:
    """Last three completed items, plus the first two open ones."""
    done: list[str] = []
    pending: list[str] = []
    for match in CHECKBOX_RE.finditer(content):
        text = match.group(2).strip()
        if match.group(1) == " ":
            pending.append(text)
        else:
            done.append(text)
    return Checkpoints(
        last_completed=done[-3:],
        current=pending[0] if pending else None,
        next=pending[1] if len(pending) > 1 else None,
    )


def current_phase(content: str) -> str | None:
    """First phase with open checkboxes, else the last phase."""
    phases = list(PHASE_RE.finditer(content))
    if not phases:
        return None
    for i, match in enumerate(phases):
        end = phases[i + 1].start() if i + 1 < len(phases) else len(content)
        if any(m.group(1) == " " for m in CHECKBOX_RE.finditer(content, match.end(), end)):
            return match.group(1)
    return phases[-1].group(1)


def parse_task(content: str) -> TaskSummary:
    """Parse a task file's front matter and phase."""
    frontmatter, body = parse_frontmatter(content)
    return TaskSummary(
        title=_text(frontmatter.get("title")),
        estimated_hours=_text(frontmatter.get("estimated_hours")),
        actual_hours=_text(frontmatter.get("actual_hours")),
        status=_text(frontmatter.get("status")),
        current_phase=current_phase(body),
    )


def extract_objective(content: str) -> str:
    """Text of the ``## Objective`` section, without bold label lines."""
    lines = [
        line.strip()
        for line in _section(content, "## Objective")
        if line.strip() and not line.strip().startswith("**")
    ]
    return "\n".join(lines)


def find_active_task(backlog_dir: Path, pattern: re.Pattern[str]) -> Path | None:
    """The first in-progress task, else the lowest-numbered one."""
    if not backlog_dir.is_dir():
        return None

    tasks: list[tuple[int, Path]] = []
    for path in backlog_dir.iterdir():
        match = pattern.match(path.name)
        if match and path.is_file():
            tasks.append((int(match.group(1)), path))
    tasks.sort()

    for _, path in tasks:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        if parse_task(content).status == "in-progress":
            return path
    return tasks[0][1] if tasks else None
