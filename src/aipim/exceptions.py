"""Custom exceptions for AIPIM."""

from typing import Any


class AipimError(Exception):
    """Base exception for all AIPIM errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}


class SecurityViolation(AipimError):
    """Raised when a path resolves outside the project root."""


class ConfigError(AipimError):
    """Raised when project configuration is invalid."""


class BackupError(AipimError):
    """Raised when the pre-update snapshot cannot be written."""


class TaskAllocationError(AipimError):
    """Raised when a unique task id cannot be claimed."""


class InstallError(AipimError):
    """Raised when the project skeleton cannot be created."""
