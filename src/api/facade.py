# src/api/facade.py — v1
"""Public API facade — single entry point for provisioning a host.

Usage:
    from provisioner.api.facade import provision
    result = await provision(ProvisionOptions(domain="example.com", ...))

Orchestrates a full invocation:
  1. Resolve settings and check privileges
  2. Collect, validate and confirm configuration (before any mutation)
  3. Build the plan from the step registry
  4. Take the run lock, create or resume the run record
  5. Execute the plan and return the summary
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import socket
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from provisioner.api.models import PreviewItem, ProvisionOptions, ProvisionResult
from provisioner.collaborators.collaborator_factory import Collaborators, create_collaborators
from provisioner.config.settings import Settings
from provisioner.core.errors import NotRoot
from provisioner.core.models import RunState
from provisioner.logging.logger import install_redaction
from provisioner.pipeline.dag_builder import ExecutionPlan, build_plan
from provisioner.pipeline.plugin_kit.models import StepContext
from provisioner.pipeline.registry import StepRegistry
from provisioner.pipeline.runner import PlanRunner
from provisioner.steps.common import closing_actions, env_file_path
from provisioner.storage import layout
from provisioner.storage.lock import RunLock
from provisioner.storage.run_store import RunStateStore
from provisioner.variables.sources import (
    ConfigSource,
    InteractiveSource,
    MappingSource,
    add_generated_values,
    seed_store,
)
from provisioner.variables.store import VariableStore

if TYPE_CHECKING:
    from provisioner.reporting.reporter import BaseReporter

logger = logging.getLogger(__name__)


async def provision(
    options: ProvisionOptions,
    settings: Settings | None = None,
    source: ConfigSource | None = None,
    reporter: BaseReporter | None = None,
    collaborators: Collaborators | None = None,
    registry: StepRegistry | None = None,
) -> ProvisionResult:
    """Provision this host end-to-end and return the run summary.

    Args:
        options: Operator inputs and invocation flags.
        settings: Global settings. Loaded from .env / PROVISION_* if None.
        source: Configuration source. Chosen from options.interactive if None.
        reporter: Progress reporter. Silent if None.
        collaborators: Host collaborators. Real subprocess-backed ones if None.
        registry: Step registry. The canonical steps if None.

    Returns:
        ProvisionResult with the summary (or the dry-run preview).

    Raises:
        NotRoot: If root is required and the process is not root.
        InvalidConfig: If configuration is missing or malformed.
        ConfigDeclined: If the operator rejects the configuration.
        RunCancelled: If the operator aborts at a prompt.
        PlanError: If the step registry does not form a valid plan.
        RunAlreadyInProgress: If another run holds the lock.
    """
    settings = settings or Settings()
    if options.state_dir is not None:
        settings = settings.model_copy(update={"state_dir": options.state_dir})

    if settings.require_root and not options.dry_run and os.geteuid() != 0:
        raise NotRoot("This command must be run as root (use sudo)")

    # --- Configuration: everything validated before any host mutation ---
    store = VariableStore()
    seed_store(store, settings, options.overrides())
    if source is None:
        source = InteractiveSource() if options.interactive else MappingSource()
    source.collect(store)
    store.validate()
    add_generated_values(store, env_file_path(settings))
    install_redaction(store.masked)
    if not options.dry_run:
        source.confirm(store)

    # --- Plan ---
    plan = build_step_plan(registry)
    host = collaborators or create_collaborators(settings)
    ctx = StepContext(store=store, settings=settings, source=source, host=host)
    run_store = RunStateStore(settings.state_dir)
    domain = store.get("domain")

    runner = PlanRunner(
        plan,
        ctx,
        run_store,
        reporter=reporter,
        step_timeout_s=settings.step_timeout_s,
        continue_independent=settings.continue_independent,
        closing_actions=lambda: closing_actions(
            settings, domain, host.certificates.has_certificate(domain)
        ),
    )

    if options.dry_run:
        entries = await runner.preview()
        logger.info("Dry run: %d of %d steps would apply",
                    sum(1 for e in entries if e.action == "apply"), len(entries))
        return ProvisionResult(
            preview=[
                PreviewItem(step_id=e.step_id, label=e.label, action=e.action, note=e.note)
                for e in entries
            ]
        )

    # --- Execute under the run lock ---
    with RunLock(layout.lock_path(settings.state_dir)):
        state = _load_for_resume(run_store) if options.resume else None
        resumed = state is not None
        if state is None:
            state = run_store.create(socket.gethostname(), plan.order)

        with _cancel_on_sigterm(runner):
            summary = await runner.run(state, resumed=resumed)

    return ProvisionResult(
        run_id=state.run_id,
        summary=summary,
        state_path=layout.run_state_path(layout.run_dir(settings.state_dir, state.run_id)),
    )


def build_step_plan(registry: StepRegistry | None = None) -> ExecutionPlan:
    """Load the canonical steps (unless a registry is given) and build the plan."""
    if registry is None:
        registry = StepRegistry()
        registry.load_all()
    return build_plan(registry)


def latest_run(settings: Settings | None = None) -> RunState | None:
    """Return the most recent run record, if any."""
    settings = settings or Settings()
    return RunStateStore(settings.state_dir).load_latest()


def _load_for_resume(run_store: RunStateStore) -> RunState | None:
    state = run_store.load_latest()
    if state is None:
        logger.warning("No previous run found in %s; starting a new run", run_store.state_dir)
    elif state.status == "completed":
        logger.info("Previous run %s completed; re-verifying every step", state.run_id)
    return state


@contextmanager
def _cancel_on_sigterm(runner: PlanRunner) -> Iterator[None]:
    """Route SIGTERM to runner.cancel() for the duration of a run."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, runner.cancel)
    except (NotImplementedError, RuntimeError) as exc:
        logger.debug("SIGTERM handler not installed: %s", exc)
        yield
        return
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGTERM)
