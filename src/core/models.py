# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

Sensitivity = Literal["plain", "secret"]
ValueSource = Literal["interactive", "generated", "environment", "file", "cli"]

StepStatus = Literal["pending", "running", "succeeded", "skipped", "failed"]
RunStatus = Literal["not_started", "in_progress", "completed", "halted"]

# Statuses that count as "effect in place" for dependency resolution.
SATISFIED_STATUSES: frozenset[str] = frozenset({"succeeded", "skipped"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# === CONFIGURATION ===


class ConfigValue(BaseModel):
    """A single named setting for the duration of a run."""

    model_config = {"frozen": True}

    key: str
    value: str
    source: ValueSource = "interactive"
    sensitivity: Sensitivity = "plain"
    reveal_prefix: bool = False

    @property
    def is_secret(self) -> bool:
        return self.sensitivity == "secret"


# === STEP RESULTS ===


class ErrorDetail(BaseModel):
    """Why a step failed and how to fix it."""

    kind: str
    message: str
    output: str = ""
    command: str = ""
    remedy: str | None = None


class StepResult(BaseModel):
    """Outcome of attempting one step within a run."""

    step_id: str
    status: StepStatus = "pending"
    started_at: datetime | None = None
    finished_at: datetime | None = None
    attempts: int = 0
    deferred: bool = False
    reverified: bool = False
    notices: list[str] = Field(default_factory=list)
    next_actions: list[str] = Field(default_factory=list)
    error: ErrorDetail | None = None

    @property
    def is_satisfied(self) -> bool:
        return self.status in SATISFIED_STATUSES

    @property
    def duration_ms(self) -> int:
        if self.started_at is None or self.finished_at is None:
            return 0
        return int((self.finished_at - self.started_at).total_seconds() * 1000)


# === RUN STATE ===


class RunSession(BaseModel):
    """One invocation (initial or resumed) against a run record."""

    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None
    resumed: bool = False
    outcome: RunStatus | None = None


class RunState(BaseModel):
    """Ordered log of step results for one provisioning run."""

    run_id: str
    host: str
    status: RunStatus = "not_started"
    plan: list[str] = Field(default_factory=list)
    results: list[StepResult] = Field(default_factory=list)
    sessions: list[RunSession] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def result_for(self, step_id: str) -> StepResult:
        """Return the result record for a step, creating a pending one if absent."""
        for result in self.results:
            if result.step_id == step_id:
                return result
        result = StepResult(step_id=step_id)
        self.results.append(result)
        return result

    def align_with_plan(self, plan: list[str]) -> None:
        """Order results by plan, adding pending entries for new steps."""
        existing = {r.step_id: r for r in self.results}
        self.plan = list(plan)
        self.results = [existing.get(sid) or StepResult(step_id=sid) for sid in plan]

    def count(self, status: StepStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def failed_steps(self) -> list[str]:
        return [r.step_id for r in self.results if r.status == "failed"]

    def touch(self) -> None:
        self.updated_at = utcnow()


# === SUMMARY ===


class RunSummary(BaseModel):
    """Final report of a run, rendered by the reporter."""

    run_id: str
    status: RunStatus
    succeeded: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    blocked: list[str] = Field(default_factory=list)
    deferred: list[str] = Field(default_factory=list)
    failed_step: str | None = None
    error: ErrorDetail | None = None
    resume_command: str | None = None
    notices: list[str] = Field(default_factory=list)
    next_actions: list[str] = Field(default_factory=list)
    duration_ms: int = 0

    @property
    def is_degraded(self) -> bool:
        return self.status == "completed" and bool(self.deferred)
