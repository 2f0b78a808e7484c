"""Task creation with collision-safe sequential ids."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from .compiler import InstructionCompiler, backlog_row, slugify
from .config import ProjectSettings
from .exceptions import AipimError, TaskAllocationError
from .models import FileStatus, TaskRecord, validate_task_type
from .paths import validate_path, validate_path_safe
from .signature import SignatureManager, marker_lines, signature_manager, strip_markers

logger = logging.getLogger(__name__)


def task_filename_pattern(prefix: str = "TASK") -> re.Pattern[str]:
    """Pattern matching task filenames; group 1 is the numeric id."""
    return re.compile(rf"^{re.escape(prefix)}-(\d+)(?:-.*)?\.md$")


class TaskIdAllocator:
    """Hands out sequential task ids and claims their files atomically.

    The highest id seen on disk and the last id this instance handed out
    both bound the next candidate. A candidate is held through an exclusive
    ``.PREFIX-ID.lock`` file while the task file is written, so only one
    writer at a time can take a given id. The lock is removed once the task
    file exists.
    """

    def __init__(
        self,
        backlog_dir: Path,
        prefix: str = "TASK",
        width: int = 3,
        max_retries: int = 10,
        scan_dirs: list[Path] | None = None,
    ) -> None:
        self.backlog_dir = Path(backlog_dir)
        self.prefix = prefix
        self.width = width
        self.max_retries = max_retries
        self.scan_dirs = list(scan_dirs or [])
        self.last_id = 0
        self._pattern = task_filename_pattern(prefix)

    def format_id(self, number: int) -> str:
        return f"{number:0{self.width}d}"

    def parse_id(self, filename: str) -> int | None:
        """Numeric id of a task filename, or None if it is not a task file."""
        match = self._pattern.match(filename)
        return int(match.group(1)) if match else None

    def observed_max(self) -> int:
        """Highest task id present in the backlog (and any extra scan dirs)."""
        highest = 0
        for directory in [self.backlog_dir, *self.scan_dirs]:
            try:
                names = os.listdir(directory)
            except FileNotFoundError:
                continue
            for name in names:
                number = self.parse_id(name)
                if number is not None and number > highest:
                    highest = number
        return highest

    async def allocate(
        self,
        slug: str,
        render: Callable[[str], str],
    ) -> tuple[str, Path]:
        """Claim the next free id and write its task file.

        Args:
            slug: Filename-safe task title
            render: Builds the file content for a given zero-padded id

        Returns:
            The allocated id and the path written

        Raises:
            TaskAllocationError: If every attempt collided
        """
        for attempt in range(self.max_retries + 1):
            observed = await asyncio.to_thread(self.observed_max)
            candidate = max(observed, self.last_id) + 1
            self.last_id = candidate
            task_id = self.format_id(candidate)
            path = validate_path(f"{self.prefix}-{task_id}-{slug}.md", self.backlog_dir)
            claim = validate_path(f".{self.prefix}-{task_id}.lock", self.backlog_dir)

            try:
                await asyncio.to_thread(self._create_exclusive, claim, "")
            except FileExistsError:
                logger.debug("Task id %s held elsewhere (attempt %d)", task_id, attempt + 1)
                continue

            try:
                if await asyncio.to_thread(self.id_in_use, candidate):
                    logger.debug("Task id %s already used (attempt %d)", task_id, attempt + 1)
                    continue
                try:
                    await asyncio.to_thread(self._create_exclusive, path, render(task_id))
                except FileExistsError:
                    logger.debug("Task file %s exists (attempt %d)", path.name, attempt + 1)
                    continue
                return task_id, path
            finally:
                await asyncio.to_thread(claim.unlink, missing_ok=True)

        msg = (
            f"Could not allocate a unique task id after {self.max_retries} retries"
        )
        raise TaskAllocationError(
            msg,
            details={"backlog_dir": str(self.backlog_dir), "max_retries": self.max_retries},
        )

    @staticmethod
    def _create_exclusive(path: Path, content: str) -> None:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError:
            path.unlink(missing_ok=True)
            raise

    def id_in_use(self, number: int) -> bool:
        """Whether any task file already carries ``number``."""
        for directory in [self.backlog_dir, *self.scan_dirs]:
            try:
                names = os.listdir(directory)
            except FileNotFoundError:
                continue
            if any(self.parse_id(name) == number for name in names):
                return True
        return False


class TaskManager:
    """Creates task files and keeps the backlog index in step."""

    def __init__(
        self,
        settings: ProjectSettings | None = None,
        signer: SignatureManager | None = None,
        compiler: InstructionCompiler | None = None,
    ) -> None:
        self.settings = settings or ProjectSettings()
        self.signer = signer or signature_manager
        self.compiler = compiler or InstructionCompiler(self.settings.managed_dir)
        self._allocators: dict[Path, TaskIdAllocator] = {}
        self._index_lock = asyncio.Lock()

    def allocator_for(self, project_root: Path) -> TaskIdAllocator:
        """Allocator bound to a project's backlog, reused across calls."""
        backlog_dir = validate_path_safe(self.settings.backlog_dir, project_root)
        if backlog_dir not in self._allocators:
            task_settings = self.settings.tasks
            scan_dirs = []
            if task_settings.scan_completed:
                scan_dirs.append(validate_path_safe(self.settings.completed_dir, project_root))
            self._allocators[backlog_dir] = TaskIdAllocator(
                backlog_dir,
                prefix=task_settings.prefix,
                width=task_settings.id_width,
                max_retries=task_settings.max_retries,
                scan_dirs=scan_dirs,
            )
        return self._allocators[backlog_dir]

    async def init_task(self, project_root: Path, task_type: str, name: str) -> TaskRecord:
        """Create a task file and add it to the backlog index.

        Args:
            project_root: Root of the user's project
            task_type: Type tag (feat, fix, chore, ...)
            name: Task title, kept verbatim in the file

        Returns:
            The created task record

        Raises:
            AipimError: If the type is invalid or the task cannot be written
        """
        try:
            validate_task_type(task_type)
        except ValueError as e:
            raise AipimError(str(e), details={"type": task_type}) from e

        root = Path(project_root)
        allocator = self.allocator_for(root)
        slug = slugify(name)
        created = datetime.now().astimezone()

        def render(task_id: str) -> str:
            body = self.compiler.compile_task(
                task_id,
                task_type,
                name,
                created,
                prefix=self.settings.tasks.prefix,
            )
            return self.signer.sign(body)

        try:
            await asyncio.to_thread(allocator.backlog_dir.mkdir, parents=True, exist_ok=True)
            task_id, path = await allocator.allocate(slug, render)
            logger.info("Created task %s at %s", task_id, path)

            row = backlog_row(task_id, task_type, name, path.name)
            async with self._index_lock:
                await asyncio.to_thread(self._append_to_index, root, row)
        except OSError as e:
            msg = f"Failed to create task: {e}"
            raise AipimError(msg, details={"backlog_dir": str(allocator.backlog_dir)}) from e

        return TaskRecord(id=task_id, type=task_type, title=name, slug=slug, path=path)

    def _append_to_index(self, root: Path, row: str) -> None:
        index_path = validate_path_safe(self.settings.backlog_index, root)
        if index_path.exists():
            content = index_path.read_text(encoding="utf-8")
            status = self.signer.verify(content)
        else:
            content = self.compiler.compile_index("backlog.md")
            status = FileStatus.MISSING

        if status in (FileStatus.MISSING, FileStatus.PRISTINE):
            updated = self.signer.sign(f"{strip_markers(content)}\n{row}")
        elif status == FileStatus.MODIFIED:
            # Old markers stay, so the index still verifies as modified.
            markers = "\n".join(marker_lines(content))
            updated = f"{strip_markers(content)}\n{row}\n\n{markers}\n"
        else:
            updated = f"{content.rstrip()}\n{row}\n"

        logger.debug("Appending to %s (%s)", index_path, status.value)
        index_path.parent.mkdir(parents=True, exist_ok=True)
        index_path.write_text(updated, encoding="utf-8")
