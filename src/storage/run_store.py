# src/storage/run_store.py — v1
"""Run lifecycle management: create, persist, resume, finalize, update latest symlink."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from provisioner.core.errors import ProvisionError
from provisioner.core.models import RunSession, RunState, RunStatus, utcnow
from provisioner.storage import layout

logger = logging.getLogger(__name__)

_HOST_UNSAFE = re.compile(r"[^A-Za-z0-9.-]+")


class RunStateError(ProvisionError):
    """A persisted run record is missing or unreadable."""

    kind = "RunStateError"


def generate_run_id(host: str, timestamp: datetime | None = None) -> str:
    """Generate a run_id: {host}_{yyyymmdd_hhmmss}."""
    ts = timestamp or datetime.now(timezone.utc)
    safe_host = _HOST_UNSAFE.sub("-", host).strip("-") or "host"
    return f"{safe_host}_{ts.strftime('%Y%m%d_%H%M%S')}"


class RunStateStore:
    """Persist RunState records as JSON under the state directory.

    Every save is atomic (write to a temp file, then rename), so a crash
    mid-write leaves the previous record intact.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    def create(self, host: str, plan: list[str], run_id: str | None = None) -> RunState:
        """Create and persist a fresh run record, pointing latest at it."""
        layout.ensure_state_directories(self._state_dir)
        if run_id is None:
            run_id = base_id = generate_run_id(host)
            suffix = 1
            while layout.run_dir(self._state_dir, run_id).exists():
                suffix += 1
                run_id = f"{base_id}_{suffix}"
        state = RunState(run_id=run_id, host=host)
        state.align_with_plan(plan)
        layout.run_dir(self._state_dir, run_id).mkdir(parents=True, exist_ok=True, mode=0o700)
        self.save(state)
        self._point_latest(run_id)
        logger.info("Created run %s (%d steps)", run_id, len(plan))
        return state

    def save(self, state: RunState) -> Path:
        """Atomically write the run record."""
        state.touch()
        run_path = layout.run_dir(self._state_dir, state.run_id)
        run_path.mkdir(parents=True, exist_ok=True, mode=0o700)
        target = layout.run_state_path(run_path)

        fd, tmp_name = tempfile.mkstemp(dir=run_path, prefix=".run_state.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(state.model_dump_json(indent=2))
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return target

    def load(self, run_id: str) -> RunState:
        path = layout.run_state_path(layout.run_dir(self._state_dir, run_id))
        return self._read(path)

    def load_latest(self) -> RunState | None:
        """Load the run the latest symlink points to, or None if there is none."""
        latest = layout.latest_link(self._state_dir)
        if not latest.exists():
            return None
        return self._read(layout.run_state_path(latest))

    def begin_session(self, state: RunState, resumed: bool) -> RunSession:
        """Mark the run in progress and open a new audit session."""
        session = RunSession(resumed=resumed)
        state.sessions.append(session)
        state.status = "in_progress"
        self.save(state)
        return session

    def finalize(self, state: RunState, status: RunStatus) -> None:
        """Close the current session, persist the final status, update latest."""
        state.status = status
        if state.sessions:
            state.sessions[-1].finished_at = utcnow()
            state.sessions[-1].outcome = status
        self.save(state)
        self._point_latest(state.run_id)
        logger.info("Run %s finalized: %s", state.run_id, status)

    def _read(self, path: Path) -> RunState:
        try:
            return RunState.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise RunStateError(f"Run record not found: {path}") from exc
        except ValidationError as exc:
            raise RunStateError(f"Run record is corrupt: {path}: {exc}") from exc

    def _point_latest(self, run_id: str) -> None:
        latest = layout.latest_link(self._state_dir)
        target = layout.run_dir(self._state_dir, run_id).relative_to(latest.parent)
        tmp_link = latest.with_name(f".{layout.LATEST_LINK}.tmp")
        tmp_link.unlink(missing_ok=True)
        tmp_link.symlink_to(target)
        os.replace(tmp_link, latest)
