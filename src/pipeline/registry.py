# src/pipeline/registry.py — v1
"""Step registry — dynamic loading and management of provisioning steps.

Loads step classes from the STEP_REGISTRY config, enforces unique ids and
remembers registration order, which the plan builder uses to break ties.
"""

from __future__ import annotations

import importlib
import logging

from provisioner.config.steps import STEP_REGISTRY
from provisioner.core.errors import DuplicateStepId, PlanError
from provisioner.pipeline.plugin_kit.base_step import BaseStep

logger = logging.getLogger(__name__)


class RegistryError(PlanError):
    """Raised when step loading fails."""

    kind = "RegistryError"


class StepRegistry:
    """Ordered registry of all provisioning steps."""

    def __init__(self) -> None:
        self._steps: dict[str, BaseStep] = {}

    def __contains__(self, step_id: str) -> bool:
        return step_id in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def load_all(self, class_paths: list[str] | None = None) -> None:
        """Load steps from dotted class paths (STEP_REGISTRY by default).

        Args:
            class_paths: Override the configured list of step classes.

        Raises:
            RegistryError: If a class cannot be imported.
            DuplicateStepId: If two classes declare the same id.
        """
        for class_path in class_paths if class_paths is not None else STEP_REGISTRY:
            self.register(_import_step(class_path))

        logger.info("Registry loaded %d steps", len(self._steps))

    def register(self, step: BaseStep) -> None:
        """Register a step instance.

        Raises:
            DuplicateStepId: If a step with the same id is already registered.
        """
        if step.id in self._steps:
            raise DuplicateStepId(step.id)
        self._steps[step.id] = step
        logger.debug("Registered step: %s", step.id)

    def get(self, step_id: str) -> BaseStep | None:
        return self._steps.get(step_id)

    def get_or_raise(self, step_id: str) -> BaseStep:
        step = self.get(step_id)
        if step is None:
            raise RegistryError(f"Step '{step_id}' not found in registry")
        return step

    def dependency_map(self) -> dict[str, list[str]]:
        """Return step_id -> list of dependency ids, in registration order."""
        return {step_id: list(step.dependencies) for step_id, step in self._steps.items()}


def _import_step(class_path: str) -> BaseStep:
    """Import and instantiate a step from a dotted class path.

    Args:
        class_path: e.g. 'provisioner.steps.system.UpdateSystemStep'
    """
    parts = class_path.rsplit(".", 1)
    if len(parts) != 2:
        raise RegistryError(f"Invalid class path: {class_path}")
    module_path, class_name = parts

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise RegistryError(f"Cannot import module {module_path}: {exc}") from exc

    cls = getattr(module, class_name, None)
    if cls is None:
        raise RegistryError(f"Class {class_name} not found in {module_path}")

    if not isinstance(cls, type) or not issubclass(cls, BaseStep):
        raise RegistryError(f"{class_path} is not a BaseStep subclass")

    return cls()
