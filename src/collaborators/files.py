# src/collaborators/files.py — v1
"""Local filesystem operations with change detection.

Every mutating call reports whether it changed anything so that steps can
restart or reload services only when their configuration actually moved.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

logger = logging.getLogger(__name__)


class FileSystem:
    """Idempotent file helpers used by steps and collaborators."""

    def exists(self, path: Path) -> bool:
        return path.exists()

    def read_text(self, path: Path) -> str | None:
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def mode_of(self, path: Path) -> int | None:
        if not path.exists():
            return None
        return stat.S_IMODE(path.stat().st_mode)

    def matches(self, path: Path, content: str, mode: int | None = None) -> bool:
        """True when path holds exactly content (and mode, if given)."""
        if self.read_text(path) != content:
            return False
        return mode is None or self.mode_of(path) == mode

    def write_if_changed(self, path: Path, content: str, mode: int | None = None) -> bool:
        """Write atomically when content or mode differ. Returns True if written."""
        if self.matches(path, content, mode):
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.tmp")
        tmp.write_text(content, encoding="utf-8")
        if mode is not None:
            os.chmod(tmp, mode)
        os.replace(tmp, path)
        logger.info("Wrote %s", path)
        return True

    def write_if_absent(self, path: Path, content: str, mode: int | None = None) -> bool:
        """Create a file only when nothing is there yet (never clobbers uploads)."""
        if path.exists():
            return False
        return self.write_if_changed(path, content, mode)

    def ensure_dir(self, path: Path, mode: int | None = None) -> bool:
        if path.is_dir():
            return False
        path.mkdir(parents=True, exist_ok=True)
        if mode is not None:
            os.chmod(path, mode)
        logger.info("Created directory %s", path)
        return True

    def is_symlink_to(self, link: Path, target: Path) -> bool:
        return link.is_symlink() and Path(os.readlink(link)) == target

    def symlink(self, target: Path, link: Path) -> bool:
        """Point link at target, replacing whatever was there."""
        if self.is_symlink_to(link, target):
            return False
        if link.is_symlink() or link.exists():
            link.unlink()
        link.parent.mkdir(parents=True, exist_ok=True)
        link.symlink_to(target)
        logger.info("Linked %s -> %s", link, target)
        return True

    def remove(self, path: Path) -> bool:
        if not (path.is_symlink() or path.exists()):
            return False
        path.unlink()
        logger.info("Removed %s", path)
        return True
