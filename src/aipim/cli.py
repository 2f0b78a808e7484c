"""AIPIM command-line interface."""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import ProjectSettings, load_settings
from .doctor import Doctor, has_failures
from .exceptions import AipimError
from .installer import ProjectInstaller
from .models import (
    CheckStatus,
    GuidelineVersion,
    InstallConfig,
    UpdateDecision,
    UpdateReport,
)
from .session import build_session_prompt, copy_to_clipboard
from .tasks import TaskManager

app = typer.Typer(
    name="aipim",
    help="AIPIM: signed instruction files and task tracking for AI coding assistants",
    add_completion=False,
)
task_app = typer.Typer(help="Create and manage backlog tasks", add_completion=False)
app.add_typer(task_app, name="task")

console = Console()
err_console = Console(stderr=True)

DECISION_LABELS = {
    UpdateDecision.CREATED: "[green]Created[/green]",
    UpdateDecision.UPDATED: "[blue]Updated[/blue]",
    UpdateDecision.SKIPPED: "[yellow]Skipped[/yellow]",
    UpdateDecision.ERROR: "[red]Failed[/red]",
}

STATUS_LABELS = {
    CheckStatus.PASS: "[green]PASS[/green]",
    CheckStatus.WARN: "[yellow]WARN[/yellow]",
    CheckStatus.FAIL: "[red]FAIL[/red]",
}


def _get_version_string() -> str:
    """Get version string from package metadata or pyproject.toml."""
    try:
        return get_version("aipim")
    except PackageNotFoundError:
        pass

    # Try to read version from pyproject.toml for development installs
    pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
    if pyproject_path.exists():
        content = pyproject_path.read_text()
        match = re.search(r'version\s*=\s*["\']([^"\']+)["\']', content)
        if match:
            return f"{match.group(1)} (development)"

    return "unknown"


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"AIPIM version {_get_version_string()}")
        raise typer.Exit


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
) -> None:
    """AIPIM: signed instruction files and task tracking for AI coding assistants."""
    _configure_logging(verbose)


def _print_update_report(report: UpdateReport) -> None:
    prefix = "[DRY RUN] " if report.dry_run else ""
    for outcome in report.outcomes:
        label = DECISION_LABELS[outcome.decision]
        console.print(
            f"{prefix}{label} {outcome.relative_path} [dim]({outcome.reason})[/dim]",
            soft_wrap=True,
        )
    if report.backup_path is not None:
        console.print(f"Backup saved to {report.backup_path}", soft_wrap=True)
    console.print(f"\n{report.summary()}")


def _existing_assistants(project_root: Path, settings: ProjectSettings) -> list[str]:
    """Assistants whose instruction files are already present."""
    found = [
        ai
        for ai, filename in settings.instruction_files.items()
        if (project_root / filename).exists()
    ]
    return found or ["claude-code"]


@app.command()
def install(
    ai: list[str] | None = typer.Option(
        None,
        "--ai",
        "-a",
        help="Assistant to generate instructions for (can be repeated)",
    ),
    guidelines: list[str] | None = typer.Option(
        None,
        "--guidelines",
        "-g",
        help="Framework guidelines to include (can be repeated)",
    ),
    full: bool = typer.Option(
        False,
        "--full",
        help="Generate the full instruction set instead of the compact one",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite customized and unsigned instruction files",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would be created without writing files",
    ),
    path: Path = typer.Option(
        Path.cwd(),
        "--path",
        "-p",
        help="Project directory",
        file_okay=False,
        dir_okay=True,
    ),
) -> None:
    """Install the managed directory and instruction files into a project.

    Safe to re-run: existing task files, indexes and scripts are kept, and
    instruction files with local edits are skipped unless --force is given.
    """
    try:
        settings = load_settings(path)
        config = InstallConfig(
            ais=ai or ["claude-code"],
            guidelines=guidelines or [],
            version=GuidelineVersion.FULL if full else GuidelineVersion.COMPACT,
            force=force,
        )
        installer = ProjectInstaller(settings)
        report = asyncio.run(installer.install(path, config, dry_run=dry_run))

        prefix = "[DRY RUN] " if dry_run else ""
        for relative_path in report.created:
            console.print(f"{prefix}[green]Created[/green] {relative_path}", soft_wrap=True)
        _print_update_report(report.instructions)

        if report.instructions.has_errors:
            raise typer.Exit(1)
        if not dry_run:
            console.print(f"[green]✓[/green] AIPIM installed in {path}", soft_wrap=True)

    except AipimError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command()
def update(
    ai: list[str] | None = typer.Option(
        None,
        "--ai",
        "-a",
        help="Assistant to update (defaults to those already installed)",
    ),
    full: bool = typer.Option(
        False,
        "--full",
        help="Regenerate the full instruction set instead of the compact one",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite customized and unsigned instruction files",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show decisions without writing files",
    ),
    path: Path = typer.Option(
        Path.cwd(),
        "--path",
        "-p",
        help="Project directory",
        file_okay=False,
        dir_okay=True,
    ),
) -> None:
    """Regenerate instruction files, keeping local customizations.

    Files whose content still matches their signature are replaced. Edited
    and unsigned files are skipped unless --force is given. A backup of the
    managed directory is taken before the first write.
    """
    try:
        settings = load_settings(path)
        config = InstallConfig(
            ais=ai or _existing_assistants(path, settings),
            version=GuidelineVersion.FULL if full else GuidelineVersion.COMPACT,
            force=force,
        )
        installer = ProjectInstaller(settings)
        files = installer.instruction_files(path, config)
        report = asyncio.run(
            installer.updater.update(path, files, force=force, dry_run=dry_run),
        )
        _print_update_report(report)

        if report.has_errors:
            raise typer.Exit(1)

    except AipimError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _run_diagnostics(path: Path) -> None:
    try:
        settings = load_settings(path)
        results = asyncio.run(Doctor(settings).diagnose(path))
    except AipimError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    table = Table(title="AIPIM Doctor")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Project", str(path))
    table.add_row("Checks Run", str(len(results)))
    table.add_row("Passed", str(sum(1 for r in results if r.status == CheckStatus.PASS)))
    table.add_row("Warnings", str(sum(1 for r in results if r.status == CheckStatus.WARN)))
    table.add_row("Failures", str(sum(1 for r in results if r.status == CheckStatus.FAIL)))
    console.print(table)

    console.print("\n[bold]Checks:[/bold]")
    for result in results:
        console.print(
            f"  {STATUS_LABELS[result.status]} {result.name}: {result.message}",
            soft_wrap=True,
        )

    if has_failures(results):
        console.print("\n[red]Some checks failed[/red]")
        raise typer.Exit(1)
    if any(r.status == CheckStatus.WARN for r in results):
        console.print("\n[yellow]Checks passed with warnings[/yellow]")
        return
    console.print("\n[green]✓[/green] All checks passed")


@app.command()
def validate(
    path: Path = typer.Option(
        Path.cwd(),
        "--path",
        "-p",
        help="Project directory",
        file_okay=False,
        dir_okay=True,
    ),
) -> None:
    """Check project structure, script permissions and file integrity."""
    _run_diagnostics(path)


@app.command(hidden=True)
def doctor(
    path: Path = typer.Option(
        Path.cwd(),
        "--path",
        "-p",
        help="Project directory",
        file_okay=False,
        dir_okay=True,
    ),
) -> None:
    """Alias for validate."""
    _run_diagnostics(path)


@task_app.command("init")
def task_init(
    task_type: str = typer.Argument(..., metavar="TYPE", help="Task type (feat, fix, chore, ...)"),
    name: str = typer.Argument(..., help="Task title"),
    path: Path = typer.Option(
        Path.cwd(),
        "--path",
        "-p",
        help="Project directory",
        file_okay=False,
        dir_okay=True,
    ),
) -> None:
    """Create a task file with the next free id and add it to the backlog."""
    try:
        settings = load_settings(path)
        record = asyncio.run(TaskManager(settings).init_task(path, task_type, name))
    except AipimError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(f"[green]✓[/green] Task created: {record.path}", soft_wrap=True)
    console.print(f"  ID: {settings.tasks.prefix}-{record.id}")


@app.command()
def start(
    print_only: bool = typer.Option(
        False,
        "--print",
        help="Print the prompt instead of copying it to the clipboard",
    ),
    path: Path = typer.Option(
        Path.cwd(),
        "--path",
        "-p",
        help="Project directory",
        file_okay=False,
        dir_okay=True,
    ),
) -> None:
    """Build a prompt that resumes work where the last session ended."""
    try:
        settings = load_settings(path)
        prompt = asyncio.run(build_session_prompt(path, settings))
    except AipimError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if print_only:
        typer.echo(prompt)
        return

    if asyncio.run(copy_to_clipboard(prompt)):
        console.print("[green]✓[/green] Session prompt copied to clipboard")
        return

    console.print("[yellow]Clipboard unavailable, printing prompt instead[/yellow]\n")
    typer.echo(prompt)


@app.command()
def version() -> None:
    """Show AIPIM version information."""
    console.print(f"AIPIM version {_get_version_string()}")


def main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
