"""Safe regeneration of managed files."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from .backup import create_backup
from .config import ProjectSettings
from .exceptions import AipimError
from .models import (
    FileStatus,
    ScanResult,
    UpdateAction,
    UpdateDecision,
    UpdateOutcome,
    UpdateReport,
)
from .paths import validate_path_safe
from .scanner import ProjectScanner
from .signature import SignatureManager, signature_manager

logger = logging.getLogger(__name__)

BackupFunc = Callable[[Path, ProjectSettings, list[str]], Path]


def plan_action(status: FileStatus, force: bool = False) -> tuple[UpdateAction, str]:
    """Decide what to do with a file given its classification.

    Customized and unsigned files are only overwritten when ``force`` is set.

    Returns:
        The action and a reason for the user
    """
    if status == FileStatus.MISSING:
        return UpdateAction.CREATE, "file missing"
    if status == FileStatus.PRISTINE:
        return UpdateAction.OVERWRITE, "matches signature"
    if status == FileStatus.MODIFIED:
        if force:
            return UpdateAction.OVERWRITE, "forced over user customizations"
        return UpdateAction.SKIP, "user customizations detected"
    if status == FileStatus.LEGACY:
        if force:
            return UpdateAction.OVERWRITE, "forced over legacy file"
        return UpdateAction.SKIP, "legacy file, no signature"

    msg = f"Unknown file status: {status}"
    raise ValueError(msg)


DECISIONS = {
    UpdateAction.CREATE: UpdateDecision.CREATED,
    UpdateAction.OVERWRITE: UpdateDecision.UPDATED,
    UpdateAction.SKIP: UpdateDecision.SKIPPED,
}


class Updater:
    """Brings managed files up to date without destroying user edits."""

    def __init__(
        self,
        settings: ProjectSettings | None = None,
        scanner: ProjectScanner | None = None,
        signer: SignatureManager | None = None,
        backup_func: BackupFunc = create_backup,
    ) -> None:
        self.settings = settings or ProjectSettings()
        self.signer = signer or signature_manager
        self.scanner = scanner or ProjectScanner(self.settings, self.signer)
        self.backup_func = backup_func

    async def update(
        self,
        project_root: Path,
        files: dict[str, str],
        force: bool = False,
        dry_run: bool = False,
        backup: bool = True,
    ) -> UpdateReport:
        """Regenerate each target file according to its classification.

        Args:
            project_root: Root of the user's project
            files: Project-relative path to freshly generated, unsigned content
            force: Overwrite modified and legacy files too
            dry_run: Compute and report decisions without touching disk
            backup: Snapshot the managed root before the first write

        Returns:
            Per-file outcomes in input order

        Raises:
            BackupError: If the snapshot fails; nothing has been written
        """
        root = Path(project_root)
        scan_results = await self.scanner.scan(root, list(files))
        plans = [(result, *plan_action(result.status, force)) for result in scan_results]
        report = UpdateReport(dry_run=dry_run)

        if dry_run:
            for result, action, reason in plans:
                logger.debug("[DRY RUN] %s: %s (%s)", result.relative_path, action.value, reason)
                report.outcomes.append(self._outcome(result, action, DECISIONS[action], reason))
            return report

        planned_writes = [
            result.relative_path for result, action, _ in plans if action != UpdateAction.SKIP
        ]
        if planned_writes and backup:
            report.backup_path = await asyncio.to_thread(
                self.backup_func,
                root,
                self.settings,
                planned_writes,
            )

        for result, action, reason in plans:
            if action == UpdateAction.SKIP:
                logger.debug("Skipping %s: %s", result.relative_path, reason)
                report.outcomes.append(
                    self._outcome(result, action, UpdateDecision.SKIPPED, reason),
                )
                continue

            content = files[result.relative_path]
            try:
                await asyncio.to_thread(self._write, root, result.relative_path, content)
            except (OSError, AipimError) as e:
                logger.warning("Failed to write %s: %s", result.relative_path, e)
                report.outcomes.append(
                    self._outcome(result, action, UpdateDecision.ERROR, str(e)),
                )
                continue

            report.outcomes.append(
                self._outcome(result, action, DECISIONS[action], reason),
            )

        return report

    def _write(self, root: Path, relative_path: str, content: str) -> None:
        path = validate_path_safe(relative_path, root)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.signer.sign(content), encoding="utf-8")

    @staticmethod
    def _outcome(
        result: ScanResult,
        action: UpdateAction,
        decision: UpdateDecision,
        reason: str,
    ) -> UpdateOutcome:
        return UpdateOutcome(
            relative_path=result.relative_path,
            status=result.status,
            action=action,
            decision=decision,
            reason=reason,
        )
