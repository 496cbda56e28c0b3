# src/pipeline/plugin_kit/models.py — v1
"""Step plugin models: StepOutcome, StepContext."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from provisioner.collaborators.collaborator_factory import Collaborators
    from provisioner.config.settings import Settings
    from provisioner.variables.sources import ConfigSource
    from provisioner.variables.store import VariableStore


class StepOutcome(BaseModel):
    """Standard return type for all BaseStep.apply() calls.

    A deferred outcome means the step finished in degraded mode: the effect
    is intentionally not in place yet and verify() is not consulted.
    """

    changed: bool = True
    deferred: bool = False
    notices: list[str] = Field(default_factory=list)
    next_actions: list[str] = Field(default_factory=list)


@dataclass
class StepContext:
    """Everything a step may read or call during a run."""

    store: VariableStore
    settings: Settings
    source: ConfigSource
    host: Collaborators
