"""Content signatures for generated files.

A signed file is its markdown body followed by a blank line and two marker
comments::

    <!-- @aipim-signature: <sha256 hex of the trimmed body> -->
    <!-- @aipim-version: <tool version> -->

Verifying re-hashes the body with the markers removed. A file with no
well-formed signature marker is ``legacy``; nothing here ever raises on
malformed input.
"""

from __future__ import annotations

import hashlib
import re

from . import __version__
from .models import FileStatus

SIGNATURE_PREFIX = "<!-- @aipim-signature:"
VERSION_PREFIX = "<!-- @aipim-version:"

_SIGNATURE_RE = re.compile(
    r"^[ \t]*<!-- @aipim-signature: ([0-9a-f]{64}) -->[ \t]*$",
    re.MULTILINE,
)
_MARKER_LINE_RE = re.compile(
    r"^[ \t]*<!-- @aipim-(?:signature|version): [^\n]*-->[ \t]*(?:\r?\n|$)",
    re.MULTILINE,
)


def compute_hash(content: str) -> str:
    """SHA-256 hex digest of content with surrounding whitespace trimmed."""
    return hashlib.sha256(content.strip().encode("utf-8")).hexdigest()


def strip_markers(content: str) -> str:
    """Remove marker lines and trim surrounding whitespace."""
    return _MARKER_LINE_RE.sub("", content).strip()


def marker_lines(content: str) -> list[str]:
    """Marker lines present in content, in order."""
    return [m.group(0).strip() for m in _MARKER_LINE_RE.finditer(content)]


class SignatureManager:
    """Embeds and verifies content signatures."""

    def __init__(self, version: str = __version__) -> None:
        self.version = version

    def sign(self, content: str) -> str:
        """Append signature and version markers to content.

        Existing markers are dropped first, so signing is idempotent.
        """
        body = strip_markers(content)
        return (
            f"{body}\n\n"
            f"{SIGNATURE_PREFIX} {compute_hash(body)} -->\n"
            f"{VERSION_PREFIX} {self.version} -->\n"
        )

    def verify(self, content: str) -> FileStatus:
        """Classify content against its embedded signature."""
        match = _SIGNATURE_RE.search(content)
        if match is None:
            return FileStatus.LEGACY

        if compute_hash(strip_markers(content)) == match.group(1):
            return FileStatus.PRISTINE
        return FileStatus.MODIFIED

    def embedded_version(self, content: str) -> str | None:
        """Tool version recorded in content, if any."""
        match = re.search(r"<!-- @aipim-version: (\S+) -->", content)
        return match.group(1) if match else None


signature_manager = SignatureManager()
