"""Install the managed directory skeleton and instruction files."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from .compiler import InstructionCompiler
from .config import ProjectSettings
from .detector import default_guidelines, detect_project
from .exceptions import AipimError, InstallError
from .models import InstallConfig, InstallReport
from .paths import validate_path_safe
from .signature import SignatureManager, signature_manager
from .updater import Updater

logger = logging.getLogger(__name__)


class ProjectInstaller:
    """Creates the managed directory and generates instruction files."""

    def __init__(
        self,
        settings: ProjectSettings | None = None,
        signer: SignatureManager | None = None,
        compiler: InstructionCompiler | None = None,
        updater: Updater | None = None,
    ) -> None:
        self.settings = settings or ProjectSettings()
        self.signer = signer or signature_manager
        self.compiler = compiler or InstructionCompiler(self.settings.managed_dir)
        self.updater = updater or Updater(self.settings, signer=self.signer)

    def instruction_files(
        self,
        project_root: Path,
        config: InstallConfig,
    ) -> dict[str, str]:
        """Unsigned instruction file bodies keyed by project-relative path.

        Raises:
            AipimError: If an unknown assistant is requested
        """
        unknown = [ai for ai in config.ais if ai not in self.settings.instruction_files]
        if unknown:
            msg = f"Unknown assistant(s): {', '.join(unknown)}"
            raise AipimError(
                msg,
                details={"known": sorted(self.settings.instruction_files)},
            )

        project = detect_project(project_root, self.settings)
        guidelines = config.guidelines or default_guidelines(project)
        return {
            self.settings.instruction_files[ai]: self.compiler.compile_instruction_file(
                ai,
                version=config.version,
                guidelines=guidelines,
                project=project,
            )
            for ai in config.ais
        }

    async def install(
        self,
        project_root: Path,
        config: InstallConfig,
        dry_run: bool = False,
    ) -> InstallReport:
        """Install AIPIM into a project. Safe to run repeatedly.

        Existing index files, scripts and context are never touched.
        Instruction files go through the update engine, so customized ones
        are kept unless ``config.force`` is set.

        Raises:
            InstallError: If the skeleton cannot be created
        """
        root = Path(project_root)
        files = self.instruction_files(root, config)
        managed = validate_path_safe(self.settings.managed_dir, root)
        had_project = managed.is_dir()

        report = InstallReport(dry_run=dry_run)
        try:
            await asyncio.to_thread(self._install_skeleton, root, report, dry_run)
        except OSError as e:
            msg = f"Failed to create {self.settings.managed_dir}: {e}"
            raise InstallError(msg, details={"project_root": str(root)}) from e

        report.instructions = await self.updater.update(
            root,
            files,
            force=config.force,
            dry_run=dry_run,
            backup=had_project,
        )
        return report

    def _install_skeleton(self, root: Path, report: InstallReport, dry_run: bool) -> None:
        d = self.settings.managed_dir
        directories = [d, *(f"{d}/{name}" for name in self.settings.required_dirs), f"{d}/scripts"]
        for relative_path in directories:
            path = validate_path_safe(relative_path, root)
            if path.is_dir():
                continue
            report.created.append(f"{relative_path}/")
            if not dry_run:
                path.mkdir(parents=True, exist_ok=True)

        files: list[tuple[str, str, int | None]] = []
        for name in self.settings.scripts:
            files.append((f"{d}/scripts/{name}", self.compiler.compile_script(name), 0o755))
        for name in self.settings.index_files:
            files.append((f"{d}/{name}", self.signer.sign(self.compiler.compile_index(name)), None))
        files.append((f"{d}/context.md", self.compiler.compile_context(), None))

        for relative_path, content, mode in files:
            path = validate_path_safe(relative_path, root)
            if path.exists():
                report.existing.append(relative_path)
                continue
            report.created.append(relative_path)
            if dry_run:
                continue
            path.write_text(content, encoding="utf-8")
            if mode is not None:
                path.chmod(mode)
            logger.debug("Created %s", relative_path)
