# src/pipeline/runner.py — v1
"""Plan runner — execute provisioning steps in dependency order.

Walks the ExecutionPlan one step at a time. For each step:
  - precondition true  -> Skipped (a prior success is thereby re-verified)
  - otherwise apply(), then verify() -> Succeeded, or Failed on violation
  - a deferred outcome from a degradable step -> Succeeded (deferred)

Failures are never retried. Independent branches keep running after a
failure unless continue_independent is off; steps depending on a failed
step stay pending and are reported as blocked. The run record is
persisted after every transition so a later invocation can resume.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from provisioner.core.errors import (
    CollaboratorError,
    CollaboratorTimeout,
    PostconditionViolation,
    ProvisionError,
    RunCancelled,
)
from provisioner.core.models import (
    SATISFIED_STATUSES,
    ErrorDetail,
    RunState,
    RunStatus,
    RunSummary,
    StepResult,
    utcnow,
)
from provisioner.logging.context import set_run_context, step_context
from provisioner.pipeline.dag_builder import ExecutionPlan
from provisioner.pipeline.plugin_kit.base_step import BaseStep
from provisioner.pipeline.plugin_kit.models import StepContext
from provisioner.reporting.reporter import BaseReporter, NullReporter
from provisioner.storage.run_store import RunStateStore

logger = logging.getLogger(__name__)

DEFAULT_STEP_TIMEOUT_S = 1800.0
RESUME_COMMAND = "provisioner deploy --resume"


@dataclass
class PreviewEntry:
    """What a dry run predicts for one step."""

    step_id: str
    label: str
    action: Literal["skip", "apply"]
    note: str = ""


class PlanRunner:
    """Execute an ExecutionPlan against a host.

    Args:
        plan: ExecutionPlan from build_plan().
        ctx: StepContext handed to every step call.
        run_store: Persistence for the RunState record.
        reporter: Receives progress events.
        step_timeout_s: Default per-step timeout.
        continue_independent: Keep running steps unaffected by a failure.
        resume_command: Command shown to the operator when a run halts.
        closing_actions: Produces the manual follow-ups listed after a
            completed run.
    """

    def __init__(
        self,
        plan: ExecutionPlan,
        ctx: StepContext,
        run_store: RunStateStore,
        reporter: BaseReporter | None = None,
        step_timeout_s: float = DEFAULT_STEP_TIMEOUT_S,
        continue_independent: bool = True,
        resume_command: str = RESUME_COMMAND,
        closing_actions: Callable[[], list[str]] | None = None,
    ) -> None:
        self._plan = plan
        self._ctx = ctx
        self._run_store = run_store
        self._reporter = reporter or NullReporter()
        self._step_timeout_s = step_timeout_s
        self._continue_independent = continue_independent
        self._resume_command = resume_command
        self._closing_actions = closing_actions
        self._cancel_requested = False

    def cancel(self) -> None:
        """Request cancellation; honoured before the next step starts."""
        logger.warning("Cancellation requested")
        self._cancel_requested = True

    async def run(self, state: RunState, resumed: bool = False) -> RunSummary:
        """Execute every step of the plan against state.

        Args:
            state: Run record to update (fresh or loaded for resume).
            resumed: Whether this continues an earlier run.

        Returns:
            RunSummary for the session.

        Raises:
            asyncio.CancelledError: If the task is cancelled mid-step; the
                step is recorded failed and the record persisted first.
        """
        start_ns = time.monotonic_ns()
        set_run_context(state.run_id, state.host)
        prior = self._reset_results(state)
        self._run_store.begin_session(state, resumed=resumed)
        self._reporter.on_run_start(state.run_id, self._plan.total_steps, resumed)
        logger.info(
            "%s run %s: %d steps",
            "Resuming" if resumed else "Starting",
            state.run_id,
            self._plan.total_steps,
        )

        total = self._plan.total_steps
        try:
            for index, step in enumerate(self._plan.steps, start=1):
                result = state.result_for(step.id)

                if self._cancel_requested:
                    self._record_cancelled(state, step, result)
                    break

                unmet = [
                    dep for dep in step.dependencies
                    if state.result_for(dep).status not in SATISFIED_STATUSES
                ]
                if unmet:
                    logger.warning("Step '%s' blocked by %s", step.id, unmet)
                    continue

                self._reporter.on_step_start(step, index, total)
                with step_context(step.id):
                    await self._run_step(state, step, result, prior.get(step.id))
                self._reporter.on_step_result(step, result)

                if result.status == "failed" and self._cancel_requested:
                    logger.warning("Run cancelled during '%s'", step.id)
                    break
                if result.status == "failed" and not self._continue_independent:
                    logger.error("Halting after '%s' failure", step.id)
                    break
        except asyncio.CancelledError:
            self._run_store.finalize(state, "halted")
            raise

        status = _final_status(state)
        self._run_store.finalize(state, status)
        summary = self.build_summary(state, (time.monotonic_ns() - start_ns) // 1_000_000)
        self._reporter.on_run_complete(summary)

        logger.info(
            "Run %s %s: %d succeeded, %d skipped, %d failed, %dms",
            state.run_id,
            status,
            state.count("succeeded"),
            state.count("skipped"),
            state.count("failed"),
            summary.duration_ms,
        )
        return summary

    async def preview(self) -> list[PreviewEntry]:
        """Dry run: evaluate preconditions only, mutating nothing."""
        entries: list[PreviewEntry] = []
        for step in self._plan.steps:
            with step_context(step.id):
                try:
                    holds = await step.precondition(self._ctx)
                except ProvisionError as exc:
                    entries.append(
                        PreviewEntry(step.id, step.label, "apply", self._ctx.store.masked(str(exc)))
                    )
                    continue
            entries.append(PreviewEntry(step.id, step.label, "skip" if holds else "apply"))
        return entries

    def build_summary(self, state: RunState, duration_ms: int = 0) -> RunSummary:
        """Collapse a run record into the final report."""
        status = _final_status(state)
        by_status: dict[str, list[str]] = {"succeeded": [], "skipped": [], "failed": [], "pending": []}
        notices: list[str] = []
        next_actions: list[str] = []
        for result in state.results:
            by_status.setdefault(result.status, []).append(result.step_id)
            notices.extend(result.notices)
            for action in result.next_actions:
                if action not in next_actions:
                    next_actions.append(action)
        if status == "completed" and self._closing_actions is not None:
            next_actions.extend(a for a in self._closing_actions() if a not in next_actions)

        first_failure = next((r for r in state.results if r.status == "failed"), None)
        return RunSummary(
            run_id=state.run_id,
            status=status,
            succeeded=by_status["succeeded"],
            skipped=by_status["skipped"],
            failed=by_status["failed"],
            blocked=by_status["pending"] + by_status.get("running", []),
            deferred=[r.step_id for r in state.results if r.deferred],
            failed_step=first_failure.step_id if first_failure else None,
            error=first_failure.error if first_failure else None,
            resume_command=None if status == "completed" else self._resume_command,
            notices=notices,
            next_actions=next_actions,
            duration_ms=duration_ms,
        )

    # --- internals ---

    async def _run_step(
        self,
        state: RunState,
        step: BaseStep,
        result: StepResult,
        prior_status: str | None,
    ) -> None:
        result.status = "running"
        result.started_at = utcnow()
        result.attempts += 1
        self._run_store.save(state)

        timeout_s = step.timeout_s or self._step_timeout_s
        try:
            await asyncio.wait_for(self._attempt(step, result, prior_status), timeout=timeout_s)
        except asyncio.TimeoutError:
            self._fail(
                step,
                result,
                CollaboratorTimeout(
                    f"Step '{step.id}' exceeded {timeout_s:g}s",
                    timeout_s=timeout_s,
                    step_id=step.id,
                ),
            )
        except asyncio.CancelledError:
            self._fail(step, result, RunCancelled(f"Cancelled during step '{step.id}'"))
            self._run_store.save(state)
            raise
        except RunCancelled as exc:
            self._fail(step, result, exc)
            self._cancel_requested = True
        except ProvisionError as exc:
            self._fail(step, result, exc)
        except Exception as exc:
            logger.exception("Unexpected error in step '%s'", step.id)
            self._fail(step, result, exc)

        result.finished_at = utcnow()
        self._run_store.save(state)

    async def _attempt(self, step: BaseStep, result: StepResult, prior_status: str | None) -> None:
        if await step.precondition(self._ctx):
            result.status = "skipped"
            result.reverified = prior_status in SATISFIED_STATUSES
            logger.info("Step '%s' already in place, skipping", step.id)
            return

        logger.info("Applying step '%s'", step.id)
        outcome = await step.apply(self._ctx)
        mask = self._ctx.store.masked
        result.notices = [mask(n) for n in outcome.notices]
        result.next_actions = [mask(a) for a in outcome.next_actions]

        if outcome.deferred:
            if not step.degradable:
                raise PostconditionViolation(step.id)
            result.deferred = True
            logger.warning("Step '%s' deferred: %s", step.id, "; ".join(result.notices))
        elif not await step.verify(self._ctx):
            raise PostconditionViolation(step.id)

        result.status = "succeeded"

    def _fail(self, step: BaseStep, result: StepResult, exc: BaseException) -> None:
        mask = self._ctx.store.masked
        remedy = step.remedy(self._ctx)
        if isinstance(exc, CollaboratorError) and exc.step_id is None:
            exc.step_id = step.id
        result.status = "failed"
        result.finished_at = utcnow()
        result.error = ErrorDetail(
            kind=getattr(exc, "kind", type(exc).__name__),
            message=mask(str(exc)),
            output=mask(getattr(exc, "output", "") or ""),
            command=mask(getattr(exc, "command_line", "") or ""),
            remedy=mask(remedy) if remedy else None,
        )
        logger.error("Step '%s' failed: %s", step.id, result.error.message)

    def _record_cancelled(self, state: RunState, step: BaseStep, result: StepResult) -> None:
        result.started_at = utcnow()
        self._fail(step, result, RunCancelled("Run cancelled before this step started"))
        self._run_store.save(state)
        self._reporter.on_step_result(step, result)

    def _reset_results(self, state: RunState) -> dict[str, str]:
        """Start a session with every step pending; return the prior statuses."""
        state.align_with_plan(self._plan.order)
        prior = {r.step_id: r.status for r in state.results}
        state.results = [
            StepResult(step_id=r.step_id, attempts=r.attempts) for r in state.results
        ]
        return prior


def _final_status(state: RunState) -> RunStatus:
    if all(r.status in SATISFIED_STATUSES for r in state.results):
        return "completed"
    return "halted"
