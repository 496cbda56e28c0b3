# src/core/errors.py — v1
"""Error taxonomy shared by the variable store, plan builder and runner.

Configuration errors are raised before any host mutation. Collaborator
errors halt the run at the failing step. Plan errors are programming
mistakes surfaced at startup.
"""

from __future__ import annotations

from collections.abc import Sequence


class ProvisionError(Exception):
    """Base class for all provisioning errors."""

    kind = "ProvisionError"


# === CONFIGURATION ===


class InvalidConfig(ProvisionError):
    """Bad or missing input; fatal before any mutation."""

    kind = "InvalidConfig"

    def __init__(self, message: str, problems: Sequence[str] | None = None) -> None:
        super().__init__(message)
        self.problems = list(problems or [message])


class MissingConfig(InvalidConfig):
    """A required configuration key has no value."""

    kind = "MissingConfig"

    def __init__(self, key: str) -> None:
        super().__init__(f"Missing configuration value: {key}")
        self.key = key


class ConfigDeclined(ProvisionError):
    """The operator declined the configuration confirmation."""

    kind = "ConfigDeclined"


# === COLLABORATORS ===


class CollaboratorError(ProvisionError):
    """An external tool exited non-zero (or could not be started)."""

    kind = "CollaboratorError"

    def __init__(
        self,
        message: str,
        command: Sequence[str] | None = None,
        returncode: int | None = None,
        output: str = "",
        step_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.command = list(command or [])
        self.returncode = returncode
        self.output = output
        self.step_id = step_id

    @property
    def command_line(self) -> str:
        return " ".join(self.command)


class CollaboratorTimeout(CollaboratorError):
    """A command or step exceeded its allotted time."""

    kind = "CollaboratorTimeout"

    def __init__(
        self,
        message: str,
        timeout_s: float | None = None,
        command: Sequence[str] | None = None,
        step_id: str | None = None,
    ) -> None:
        super().__init__(message, command=command, step_id=step_id)
        self.timeout_s = timeout_s


class PostconditionViolation(ProvisionError):
    """apply() finished cleanly but verify() still reports the effect missing."""

    kind = "PostconditionViolation"

    def __init__(self, step_id: str) -> None:
        super().__init__(
            f"Step '{step_id}' applied without error but its postcondition "
            "does not hold; inspect the host manually"
        )
        self.step_id = step_id


# === PLAN ===


class PlanError(ProvisionError):
    """Raised when the step registry cannot produce a valid plan."""

    kind = "PlanError"


class DuplicateStepId(PlanError):
    kind = "DuplicateStepId"

    def __init__(self, step_id: str) -> None:
        super().__init__(f"Step id '{step_id}' is already registered")
        self.step_id = step_id


class CyclicDependency(PlanError):
    kind = "CyclicDependency"

    def __init__(self, cycle: Sequence[str]) -> None:
        super().__init__(f"Cycle detected between steps: {' -> '.join(cycle)}")
        self.cycle = list(cycle)


class UnknownDependency(PlanError):
    kind = "UnknownDependency"

    def __init__(self, step_id: str, dependency: str) -> None:
        super().__init__(
            f"Step '{step_id}' depends on '{dependency}' which is not registered"
        )
        self.step_id = step_id
        self.dependency = dependency


# === RUN ===


class RunAlreadyInProgress(ProvisionError):
    """Another process holds the run lock for this state directory."""

    kind = "RunAlreadyInProgress"

    def __init__(self, lock_path: str, pid: int | None = None) -> None:
        owner = f" (pid {pid})" if pid else ""
        super().__init__(f"A provisioning run is already in progress{owner}: {lock_path}")
        self.lock_path = lock_path
        self.pid = pid


class RunCancelled(ProvisionError):
    """The run was cancelled by the operator."""

    kind = "Cancelled"


class NotRoot(ProvisionError):
    """Provisioning must run as root."""

    kind = "NotRoot"
