# src/logging/context.py — v1
"""Contextual logging support — attach run_id, host, step to log records."""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per provisioning run.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_host: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "host", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    host: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        host=_host.get(),
        step=_step.get(),
    )


def set_run_context(run_id: str, host: str) -> None:
    """Set run-level context (called once per run)."""
    _run_id.set(run_id)
    _host.set(host)


@contextmanager
def step_context(step_id: str) -> Iterator[None]:
    """Attach a step id to every record logged inside the block."""
    token = _step.set(step_id)
    try:
        yield
    finally:
        _step.reset(token)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _host.set(None)
    _step.set(None)
