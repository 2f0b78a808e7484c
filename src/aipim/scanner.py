"""Integrity scan of managed files."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from .config import ProjectSettings
from .exceptions import SecurityViolation
from .models import FileStatus, ScanResult
from .paths import validate_path
from .signature import SignatureManager, signature_manager

logger = logging.getLogger(__name__)


class ProjectScanner:
    """Classifies managed files as pristine, modified, legacy or missing."""

    def __init__(
        self,
        settings: ProjectSettings | None = None,
        signer: SignatureManager | None = None,
    ) -> None:
        self.settings = settings or ProjectSettings()
        self.signer = signer or signature_manager

    async def scan(
        self,
        project_root: Path,
        files_to_scan: list[str] | None = None,
    ) -> list[ScanResult]:
        """Scan files concurrently and classify each one.

        Scanning is read-only, so a path that escapes the project root is
        reported as ``missing`` rather than raised.

        Args:
            project_root: Root of the user's project
            files_to_scan: Project-relative paths (defaults to instruction
                and index files)

        Returns:
            One result per input path, in input order
        """
        targets = (
            files_to_scan
            if files_to_scan is not None
            else self.settings.default_scan_targets()
        )
        root = Path(project_root)
        return list(
            await asyncio.gather(*(self._scan_one(root, rel) for rel in targets)),
        )

    async def _scan_one(self, root: Path, relative_path: str) -> ScanResult:
        try:
            absolute_path = validate_path(relative_path, root)
        except SecurityViolation:
            logger.warning("Ignoring scan target outside project: %s", relative_path)
            return ScanResult(
                path=root / relative_path,
                relative_path=relative_path,
                status=FileStatus.MISSING,
            )

        status = await asyncio.to_thread(self._classify, absolute_path)
        logger.debug("Scanned %s: %s", relative_path, status.value)
        return ScanResult(path=absolute_path, relative_path=relative_path, status=status)

    def _classify(self, path: Path) -> FileStatus:
        if not path.exists():
            return FileStatus.MISSING
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read %s: %s", path, e)
            return FileStatus.LEGACY
        return self.signer.verify(content)
