"""Pre-update snapshots of the managed directory."""

from __future__ import annotations

import logging
import shutil
from datetime import UTC, datetime
from pathlib import Path

from .config import ProjectSettings
from .exceptions import BackupError, SecurityViolation
from .paths import validate_path, validate_path_safe

logger = logging.getLogger(__name__)


def _snapshot_dir(project_root: Path, settings: ProjectSettings) -> Path:
    stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%SZ")
    backups = validate_path(settings.backup_dir, project_root)
    candidate = backups / stamp
    suffix = 1
    while candidate.exists():
        candidate = backups / f"{stamp}-{suffix}"
        suffix += 1
    return candidate


def create_backup(
    project_root: Path,
    settings: ProjectSettings,
    extra_files: list[str] | None = None,
) -> Path:
    """Copy the managed root and the given files into a timestamped snapshot.

    Args:
        project_root: Root of the user's project
        settings: Project layout
        extra_files: Project-relative files outside the managed root to
            include (instruction files); missing ones and ones that
            escape the project root are left out

    Returns:
        Path of the snapshot directory

    Raises:
        BackupError: If anything could not be copied
    """
    root = Path(project_root)
    try:
        managed = validate_path_safe(settings.managed_dir, root)
        destination = _snapshot_dir(root, settings)
        destination.mkdir(parents=True)

        if managed.is_dir():
            shutil.copytree(managed, destination / settings.managed_dir, symlinks=True)

        for relative_path in extra_files or []:
            try:
                source = validate_path_safe(relative_path, root)
            except SecurityViolation as e:
                logger.warning("Not backing up %s: %s", relative_path, e)
                continue
            if not source.is_file():
                continue
            target = validate_path(relative_path, destination)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
    except OSError as e:
        msg = f"Failed to back up {settings.managed_dir}: {e}"
        raise BackupError(msg, details={"project_root": str(root)}) from e

    logger.info("Backup written to %s", destination)
    return destination
