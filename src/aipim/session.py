"""Session-start prompt: project context, active task and git state."""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
from pathlib import Path

from .config import ProjectSettings
from .context import (
    calculate_progress,
    extract_checkpoints,
    extract_objective,
    find_active_task,
    parse_context,
    parse_task,
)
from .paths import validate_path_safe
from .tasks import task_filename_pattern

logger = logging.getLogger(__name__)


async def run_command(
    args: list[str],
    cwd: Path | None = None,
    stdin: str | None = None,
) -> tuple[int, str, str]:
    """Run a command without a shell.

    Returns:
        Exit code, stdout and stderr (stripped)
    """
    proc = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    out, err = await proc.communicate(stdin.encode("utf-8") if stdin is not None else None)
    return (
        proc.returncode or 0,
        out.decode("utf-8", errors="replace").strip(),
        err.decode("utf-8", errors="replace").strip(),
    )


async def git_safe(args: list[str], fallback: str, cwd: Path | None = None) -> str:
    """Run git, returning ``fallback`` on any failure."""
    try:
        code, out, err = await run_command(["git", *args], cwd=cwd)
    except OSError as e:
        logger.debug("Failed to spawn git: %s", e)
        return fallback
    if code != 0:
        logger.debug("git %s failed: %s", " ".join(args), err or out)
        return fallback
    return out


async def git_branch(cwd: Path | None = None) -> str:
    return await git_safe(["rev-parse", "--abbrev-ref", "HEAD"], "unknown", cwd)


async def git_log(count: int, cwd: Path | None = None) -> str:
    return await git_safe(["log", f"-{count}", "--oneline"], "", cwd)


def clipboard_commands(platform: str | None = None) -> list[list[str]]:
    """Clipboard tools to try, in order, for the platform."""
    platform = platform or sys.platform
    if platform == "darwin":
        return [["pbcopy"]]
    if platform.startswith("win"):
        return [["clip"]]
    return [
        ["wl-copy"],
        ["xclip", "-selection", "clipboard"],
        ["xsel", "--clipboard", "--input"],
    ]


async def copy_to_clipboard(text: str) -> bool:
    """Copy text with the first clipboard tool that works."""
    for command in clipboard_commands():
        if shutil.which(command[0]) is None:
            continue
        try:
            code, _, err = await run_command(command, stdin=text)
        except OSError as e:
            logger.debug("%s failed: %s", command[0], e)
            continue
        if code == 0:
            return True
        logger.debug("%s exited %d: %s", command[0], code, err)
    return False


def _read(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


async def build_session_prompt(
    project_root: Path,
    settings: ProjectSettings | None = None,
) -> str:
    """Assemble the prompt that resumes work in a new assistant session."""
    settings = settings or ProjectSettings()
    root = Path(project_root)

    branch, commits = await asyncio.gather(git_branch(root), git_log(5, root))

    context_path = validate_path_safe(f"{settings.managed_dir}/context.md", root)
    backlog_dir = validate_path_safe(settings.backlog_dir, root)
    context_content = await asyncio.to_thread(_read, context_path)
    task_path = await asyncio.to_thread(
        find_active_task,
        backlog_dir,
        task_filename_pattern(settings.tasks.prefix),
    )

    sections = [
        "# Session Resume",
        "",
        f"**Branch:** {branch}",
        "",
    ]

    if context_content is not None:
        ctx = parse_context(context_content)
        session = ctx.frontmatter.get("session")
        if session is not None:
            sections.append(f"**Session:** {session}")
        if ctx.next_action:
            sections.append(f"**Next action:** {ctx.next_action}")
        if ctx.current_state:
            sections.extend(["", "## Current State", ctx.current_state])
        sections.append("")

    task_content = await asyncio.to_thread(_read, task_path) if task_path else None
    if task_path and task_content is not None:
        task = parse_task(task_content)
        progress = calculate_progress(task_content)
        checkpoints = extract_checkpoints(task_content)
        objective = extract_objective(task_content)

        sections.extend([
            f"## Active Task: {task.title or task_path.stem}",
            f"File: `{task_path.relative_to(root) if task_path.is_relative_to(root) else task_path}`",
            f"Progress: {progress.completed}/{progress.total} ({progress.percentage}%)",
        ])
        if task.current_phase:
            sections.append(f"Phase: {task.current_phase}")
        if objective:
            sections.extend(["", "### Objective", objective])
        if checkpoints.last_completed:
            sections.extend(["", "### Recently Completed"])
            sections.extend(f"- [x] {item}" for item in checkpoints.last_completed)
        if checkpoints.current:
            sections.extend(["", f"**Current:** {checkpoints.current}"])
        if checkpoints.next:
            sections.append(f"**Next:** {checkpoints.next}")
        sections.append("")

    sections.extend([
        "## Recent Commits",
        commits or "(no commits)",
        "",
        "Continue from the current checkpoint. Update the task file and "
        f"`{settings.managed_dir}/context.md` before ending the session.",
    ])
    return "\n".join(sections)
