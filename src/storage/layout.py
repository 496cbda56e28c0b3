# src/storage/layout.py — v1
"""State directory structure definition.

Defines path conventions for run records under the provisioner state dir:

    {state_dir}/
        run.lock
        run.lock.guard
        latest -> runs/{run_id}
        runs/{run_id}/run_state.json
"""

from __future__ import annotations

from pathlib import Path

RUNS_DIR = "runs"
LATEST_LINK = "latest"
LOCK_FILE = "run.lock"
RUN_STATE_FILE = "run_state.json"


def runs_dir(state_dir: Path) -> Path:
    """Return runs/ directory."""
    return state_dir / RUNS_DIR


def run_dir(state_dir: Path, run_id: str) -> Path:
    """Return a specific run directory."""
    return runs_dir(state_dir) / run_id


def latest_link(state_dir: Path) -> Path:
    """Return path to the 'latest' symlink."""
    return state_dir / LATEST_LINK


def lock_path(state_dir: Path) -> Path:
    return state_dir / LOCK_FILE


def run_state_path(run_path: Path) -> Path:
    return run_path / RUN_STATE_FILE


def ensure_state_directories(state_dir: Path) -> None:
    """Create the state dir and runs/ with owner-only permissions."""
    state_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
    runs_dir(state_dir).mkdir(exist_ok=True, mode=0o700)
