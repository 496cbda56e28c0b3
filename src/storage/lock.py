# src/storage/lock.py — v1
"""Run-level lock file refusing a second concurrent provisioning run."""

from __future__ import annotations

import contextlib
import fcntl
import logging
import os
from collections.abc import Iterator
from pathlib import Path
from types import TracebackType

from provisioner.core.errors import RunAlreadyInProgress

logger = logging.getLogger(__name__)


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user.
        return True
    return True


def _read_pid(path: Path) -> int | None:
    try:
        return int(path.read_text(encoding="utf-8").strip())
    except (FileNotFoundError, ValueError):
        return None


def guard_path(lock_path: Path) -> Path:
    """Sibling file whose flock serializes every lock takeover."""
    return lock_path.with_name(lock_path.name + ".guard")


@contextlib.contextmanager
def _guarded(lock_path: Path) -> Iterator[None]:
    fd = os.open(guard_path(lock_path), os.O_CREAT | os.O_RDWR, 0o600)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX)
        yield
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)


class RunLock:
    """Exclusive lock created with O_CREAT|O_EXCL and holding the owner pid.

    A lock left by a process that is no longer alive is stale and replaced.

    Usage:
        with RunLock(layout.lock_path(state_dir)):
            ...
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._held = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """Take the lock.

        The stale check and the replacement run under an exclusive flock on
        the guard file, so two contenders never both replace one stale lock.

        Raises:
            RunAlreadyInProgress: If a live process holds it.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with _guarded(self._path):
            for _ in range(2):
                try:
                    fd = os.open(self._path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
                except FileExistsError:
                    pid = _read_pid(self._path)
                    if pid is not None and _pid_alive(pid):
                        raise RunAlreadyInProgress(str(self._path), pid) from None
                    logger.warning("Removing stale run lock %s (pid %s)", self._path, pid)
                    self._path.unlink(missing_ok=True)
                    continue
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(str(os.getpid()))
                self._held = True
                logger.debug("Acquired run lock %s", self._path)
                return
            raise RunAlreadyInProgress(str(self._path), _read_pid(self._path))

    def release(self) -> None:
        if not self._held:
            return
        with _guarded(self._path):
            if _read_pid(self._path) == os.getpid():
                self._path.unlink(missing_ok=True)
        self._held = False
        logger.debug("Released run lock %s", self._path)

    def __enter__(self) -> RunLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
