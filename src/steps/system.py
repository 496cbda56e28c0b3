# src/steps/system.py — v1
"""Base system steps: package upgrades, dependencies and the Node.js runtime."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

from provisioner.pipeline.plugin_kit.base_step import BaseStep
from provisioner.pipeline.plugin_kit.models import StepContext, StepOutcome

logger = logging.getLogger(__name__)


class UpdateSystemStep(BaseStep):
    """Refresh package indexes and apply pending upgrades."""

    @property
    def id(self) -> str:
        return "update-system"

    @property
    def label(self) -> str:
        return "Update system packages"

    def remedy(self, ctx: StepContext) -> str | None:
        return "apt-get update && apt-get upgrade -y"

    async def precondition(self, ctx: StepContext) -> bool:
        return await ctx.host.packages.pending_upgrades() == 0

    async def apply(self, ctx: StepContext) -> StepOutcome:
        await ctx.host.packages.update()
        await ctx.host.packages.upgrade()
        return StepOutcome()


class InstallDependenciesStep(BaseStep):
    """Install the web server, database, certificate and firewall packages."""

    @property
    def id(self) -> str:
        return "install-deps"

    @property
    def label(self) -> str:
        return "Install system dependencies"

    @property
    def dependencies(self) -> list[str]:
        return ["update-system"]

    def remedy(self, ctx: StepContext) -> str | None:
        return "apt-get install -y " + " ".join(ctx.settings.base_packages_list)

    async def precondition(self, ctx: StepContext) -> bool:
        return not await ctx.host.packages.missing(ctx.settings.base_packages_list)

    async def apply(self, ctx: StepContext) -> StepOutcome:
        missing = await ctx.host.packages.missing(ctx.settings.base_packages_list)
        await ctx.host.packages.install(missing)
        return StepOutcome(notices=[f"Installed {len(missing)} package(s)"] if missing else [])


class InstallRuntimeStep(BaseStep):
    """Install Node.js from the NodeSource repository."""

    @property
    def id(self) -> str:
        return "install-runtime"

    @property
    def label(self) -> str:
        return "Install Node.js runtime"

    @property
    def dependencies(self) -> list[str]:
        return ["install-deps"]

    def remedy(self, ctx: StepContext) -> str | None:
        return f"curl -fsSL {ctx.settings.nodesource_setup_url} | bash - && apt-get install -y nodejs"

    async def precondition(self, ctx: StepContext) -> bool:
        result = await ctx.host.executor.run(["node", "--version"], check=False)
        return result.ok and result.stdout.strip().startswith(f"v{ctx.settings.node_major}.")

    async def apply(self, ctx: StepContext) -> StepOutcome:
        executor = ctx.host.executor
        workdir = Path(tempfile.mkdtemp(prefix="nodesource-"))
        script = workdir / "setup.sh"
        try:
            await executor.run(
                ["curl", "-fsSL", ctx.settings.nodesource_setup_url, "-o", str(script)]
            )
            await executor.run(["bash", str(script)])
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

        await ctx.host.packages.install(["nodejs"])
        version = await executor.run(["node", "--version"], check=False)
        logger.info("Node.js version: %s", version.stdout.strip() or "unknown")
        return StepOutcome()
