# src/steps/frontend.py — v1
"""Frontend step: static site directory with a placeholder landing page."""

from __future__ import annotations

from pathlib import Path

from provisioner.pipeline.plugin_kit.base_step import BaseStep
from provisioner.pipeline.plugin_kit.models import StepContext, StepOutcome
from provisioner.templates.files import LANDING_PAGE, render

INDEX_FILE = "index.html"


class DeployFrontendStep(BaseStep):
    """Create the static root; an uploaded index.html is never overwritten."""

    @property
    def id(self) -> str:
        return "deploy-frontend"

    @property
    def label(self) -> str:
        return "Deploy frontend placeholder"

    @property
    def dependencies(self) -> list[str]:
        return ["install-runtime"]

    async def precondition(self, ctx: StepContext) -> bool:
        return ctx.host.files.exists(_index(ctx))

    async def apply(self, ctx: StepContext) -> StepOutcome:
        files = ctx.host.files
        files.ensure_dir(ctx.settings.frontend_root, mode=0o755)
        written = files.write_if_absent(
            _index(ctx), render(LANDING_PAGE, app_name=ctx.settings.app_name), mode=0o644
        )
        next_actions = []
        if written:
            next_actions.append(
                f"Build your frontend (npm run build) and copy the output to "
                f"{ctx.settings.frontend_root}/"
            )
        return StepOutcome(changed=written, next_actions=next_actions)


def _index(ctx: StepContext) -> Path:
    return ctx.settings.frontend_root / INDEX_FILE
