"""Path traversal guard.

Every path AIPIM reads or writes is resolved here against the project root
first. Paths that escape the root raise ``SecurityViolation``.
"""

from __future__ import annotations

import os
from pathlib import Path

from .exceptions import SecurityViolation


def _escapes(target: str, base: str) -> bool:
    try:
        relative = os.path.relpath(target, base)
    except ValueError:
        # Different drives on Windows
        return True
    if os.path.isabs(relative):
        return True
    first = relative.split(os.sep, 1)[0]
    return first == os.pardir


def validate_path(target_path: str | Path, base_path: str | Path | None = None) -> Path:
    """Resolve a path against a base directory and reject traversal.

    Symlinks are not followed; see ``validate_path_safe``.

    Args:
        target_path: Absolute path, or path relative to ``base_path``
        base_path: Directory the path must stay within (defaults to cwd)

    Returns:
        Absolute, normalized path

    Raises:
        SecurityViolation: If the path resolves outside ``base_path``
    """
    base = os.path.abspath(base_path if base_path is not None else os.getcwd())
    resolved = os.path.normpath(os.path.join(base, os.fspath(target_path)))

    if _escapes(resolved, base):
        msg = f"Path traversal detected: {target_path} escapes {base}"
        raise SecurityViolation(msg, details={"path": str(target_path), "base": base})

    return Path(resolved)


def validate_path_safe(
    target_path: str | Path,
    base_path: str | Path | None = None,
) -> Path:
    """Like ``validate_path``, and also reject links that point outside.

    A path that does not exist yet is fine (it is about to be written) and
    comes back unchanged. An existing symlink comes back as its real path.

    Raises:
        SecurityViolation: If the path or its link target escapes ``base_path``
    """
    resolved = validate_path(target_path, base_path)
    if not os.path.lexists(resolved):
        return resolved

    base = os.path.abspath(base_path if base_path is not None else os.getcwd())
    real = os.path.realpath(resolved)
    if real != str(resolved) and _escapes(real, os.path.realpath(base)):
        msg = f"Symlink {target_path} points outside project: {real}"
        raise SecurityViolation(msg, details={"path": str(target_path), "real_path": real})

    if os.path.islink(resolved):
        return Path(real)
    return resolved
