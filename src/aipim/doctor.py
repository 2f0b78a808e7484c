"""Project health diagnostics."""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from pathlib import Path

from .config import ProjectSettings
from .exceptions import SecurityViolation
from .models import CheckResult, CheckStatus, FileStatus
from .paths import validate_path
from .scanner import ProjectScanner

logger = logging.getLogger(__name__)


class Doctor:
    """Runs read-only checks against a project's managed directory."""

    def __init__(
        self,
        settings: ProjectSettings | None = None,
        scanner: ProjectScanner | None = None,
    ) -> None:
        self.settings = settings or ProjectSettings()
        self.scanner = scanner or ProjectScanner(self.settings)

    async def diagnose(self, project_root: Path) -> list[CheckResult]:
        """Run every check and return the records in a fixed order.

        Structure first, then one record per maintenance script, then
        integrity. Never raises for a missing or partial project.
        """
        root = Path(project_root)
        results = [await self.check_structure(root)]
        results.extend(await self.check_permissions(root))
        results.append(await self.check_integrity(root))
        return results

    async def check_structure(self, project_root: Path) -> CheckResult:
        """Check the managed root and its required subdirectories exist."""
        managed_dir = self.settings.managed_dir
        try:
            project_dir = validate_path(managed_dir, project_root)
        except SecurityViolation as e:
            return CheckResult(
                id="structure",
                name="Project Structure",
                status=CheckStatus.FAIL,
                message=str(e),
            )

        if not await asyncio.to_thread(project_dir.is_dir):
            logger.error("Project directory not found: %s", project_dir)
            return CheckResult(
                id="structure",
                name="Project Structure",
                status=CheckStatus.FAIL,
                message=f"{managed_dir} directory missing",
            )

        missing = [
            name
            for name in self.settings.required_dirs
            if not await asyncio.to_thread((project_dir / name).is_dir)
        ]
        if missing:
            return CheckResult(
                id="structure",
                name="Project Structure",
                status=CheckStatus.WARN,
                message=f"Missing directories: {', '.join(missing)}",
            )

        return CheckResult(
            id="structure",
            name="Project Structure",
            status=CheckStatus.PASS,
            message="Directory structure is valid",
        )

    async def check_permissions(self, project_root: Path) -> list[CheckResult]:
        """Check that existing maintenance scripts are executable."""
        if os.name == "nt":
            return [
                CheckResult(
                    id="permissions",
                    name="Script Permissions",
                    status=CheckStatus.PASS,
                    message="Skipped execution check on Windows",
                ),
            ]

        results: list[CheckResult] = []
        for relative_path in self.settings.script_paths():
            script = Path(relative_path).name
            try:
                script_path = validate_path(relative_path, project_root)
            except SecurityViolation:
                continue
            try:
                mode = (await asyncio.to_thread(script_path.stat)).st_mode
            except FileNotFoundError:
                continue
            except OSError as e:
                results.append(
                    CheckResult(
                        id=f"perm-{script}",
                        name=f"Permission: {script}",
                        status=CheckStatus.FAIL,
                        message=f"Could not inspect script: {e}",
                    ),
                )
                continue

            if mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH):
                results.append(
                    CheckResult(
                        id=f"perm-{script}",
                        name=f"Permission: {script}",
                        status=CheckStatus.PASS,
                        message="Executable bit set",
                    ),
                )
            else:
                results.append(
                    CheckResult(
                        id=f"perm-{script}",
                        name=f"Permission: {script}",
                        status=CheckStatus.FAIL,
                        message="Script is not executable (run chmod +x)",
                    ),
                )
        return results

    async def check_integrity(self, project_root: Path) -> CheckResult:
        """Summarize signature status of the managed files."""
        scan_results = await self.scanner.scan(project_root)
        legacy = [r for r in scan_results if r.status == FileStatus.LEGACY]
        modified = [r for r in scan_results if r.status == FileStatus.MODIFIED]

        if legacy:
            return CheckResult(
                id="integrity",
                name="Project Integrity",
                status=CheckStatus.WARN,
                message=(
                    f"{len(legacy)} legacy file(s) detected (no signature). "
                    "Run update to migrate."
                ),
            )

        if modified:
            return CheckResult(
                id="integrity",
                name="Project Integrity",
                status=CheckStatus.PASS,
                message=f"Valid structure ({len(modified)} user customizations found)",
            )

        return CheckResult(
            id="integrity",
            name="Project Integrity",
            status=CheckStatus.PASS,
            message="All files match official templates",
        )


def has_failures(results: list[CheckResult]) -> bool:
    """Whether any check failed outright."""
    return any(r.status == CheckStatus.FAIL for r in results)
