"""AIPIM: signed instruction files and task tracking for AI coding assistants."""

__version__ = "0.1.0"
__author__ = "AIPIM Contributors"
__description__ = "Signed instruction files and task tracking for AI coding assistants"

from .doctor import Doctor
from .installer import ProjectInstaller
from .models import FileStatus, ScanResult, UpdateReport
from .scanner import ProjectScanner
from .signature import SignatureManager
from .tasks import TaskIdAllocator, TaskManager
from .updater import Updater

__all__ = [
    "Doctor",
    "FileStatus",
    "ProjectInstaller",
    "ProjectScanner",
    "ScanResult",
    "SignatureManager",
    "TaskIdAllocator",
    "TaskManager",
    "UpdateReport",
    "Updater",
]
