"""Filesystem utilities for temporary media artifacts."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

TEMP_DIR_NAME = "showscribe"


def sanitize_filename(name: str) -> str:
    """Sanitize strings for safe filename usage."""
    cleaned = name.replace("\r", " ").replace("\n", " ").replace("\t", " ")
    cleaned = " ".join(os.path.basename(cleaned.replace("\\", "/")).split())
    safe_chars = []
    for ch in cleaned:
        if ch.isalnum() or ch in {"_", "-", "."}:
            safe_chars.append(ch)
        else:
            safe_chars.append("_")
    safe = "".join(safe_chars).strip(".")
    # If result is empty or only underscores, return "untitled"
    if not safe or safe.replace("_", "").replace("-", "").replace(".", "").strip() == "":
        return "untitled"
    return safe


def resolve_temp_dir(override: Optional[str] = None) -> Path:
    """Return (and create) the directory temporary media artifacts live in."""
    base = Path(override).expanduser() if override else Path(tempfile.gettempdir()) / TEMP_DIR_NAME
    base.mkdir(parents=True, exist_ok=True)
    return base


class TempArtifacts:
    """Scoped owner of temporary files.

    Every path created through (or registered with) this object is deleted when the
    ``with`` block exits, on success and on error. A failed deletion is logged and
    never replaces the exception or result already in flight.

    Example:
        >>> with TempArtifacts(resolve_temp_dir()) as artifacts:
        ...     path = artifacts.create(suffix=".mp3")
        ...     ...  # use path
        >>> os.path.exists(path)
        False
    """

    def __init__(self, directory: Path, prefix: str = "media-") -> None:
        self.directory = directory
        self.prefix = prefix
        self._paths: List[str] = []

    def __enter__(self) -> "TempArtifacts":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    @property
    def paths(self) -> List[str]:
        return list(self._paths)

    def create(self, suffix: str = "") -> str:
        """Create an empty temporary file and take ownership of it."""
        fd, path = tempfile.mkstemp(prefix=self.prefix, suffix=suffix, dir=str(self.directory))
        os.close(fd)
        self._paths.append(path)
        return path

    def track(self, path: str) -> str:
        """Take ownership of a file created elsewhere (e.g. by ffmpeg)."""
        if path not in self._paths:
            self._paths.append(path)
        return path

    def cleanup(self) -> None:
        """Delete every owned file. Failures are logged, not raised."""
        while self._paths:
            path = self._paths.pop()
            try:
                os.remove(path)
                logger.debug("Removed temporary artifact %s", path)
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Failed to remove temporary artifact %s: %s", path, exc)
