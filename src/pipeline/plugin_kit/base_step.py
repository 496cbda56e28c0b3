# src/pipeline/plugin_kit/base_step.py — v1
"""Standard step interface for provisioning plugins.

A step is idempotent by construction:
  - precondition() reports whether the effect is already in place and must
    not mutate anything.
  - apply() produces the effect and is harmless when the effect already exists.
  - verify() re-checks the effect after apply(); by default it is the
    precondition itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from provisioner.pipeline.plugin_kit.models import StepContext, StepOutcome


class BaseStep(ABC):
    """Standard interface for all provisioning steps."""

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique step identifier (e.g., 'install-deps')."""

    @property
    @abstractmethod
    def label(self) -> str:
        """Human-readable label shown by the reporter."""

    @property
    def dependencies(self) -> list[str]:
        """Step ids that must be satisfied before this one runs."""
        return []

    @property
    def degradable(self) -> bool:
        """Whether apply() may return a deferred outcome instead of failing."""
        return False

    @property
    def timeout_s(self) -> float | None:
        """Per-step timeout override; None uses the runner default."""
        return None

    def remedy(self, ctx: StepContext) -> str | None:
        """Suggested command for an operator after a failure."""
        return None

    @abstractmethod
    async def precondition(self, ctx: StepContext) -> bool:
        """Return True if the step's effect is already in place."""

    @abstractmethod
    async def apply(self, ctx: StepContext) -> StepOutcome:
        """Produce the step's effect."""

    async def verify(self, ctx: StepContext) -> bool:
        """Re-check the effect after apply()."""
        return await self.precondition(ctx)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r}>"
