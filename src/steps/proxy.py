# src/steps/proxy.py — v1
"""Reverse proxy step: nginx site for the frontend and the /api/ upstream."""

from __future__ import annotations

from provisioner.pipeline.plugin_kit.base_step import BaseStep
from provisioner.pipeline.plugin_kit.models import StepContext, StepOutcome
from provisioner.steps.common import site_config, site_name


class ConfigureProxyStep(BaseStep):
    """Install and enable the site, syntax-check it, then reload nginx.

    Once a certificate exists the TLS variant is rendered, so a later run
    leaves the certificate step's configuration in place.
    """

    @property
    def id(self) -> str:
        return "configure-proxy"

    @property
    def label(self) -> str:
        return "Configure nginx reverse proxy"

    @property
    def dependencies(self) -> list[str]:
        return ["deploy-backend", "deploy-frontend"]

    def remedy(self, ctx: StepContext) -> str | None:
        return "nginx -t && systemctl status nginx"

    async def precondition(self, ctx: StepContext) -> bool:
        proxy = ctx.host.proxy
        if not proxy.site_installed(site_name(ctx.settings), site_config(ctx)):
            return False
        return await proxy.is_running()

    async def apply(self, ctx: StepContext) -> StepOutcome:
        changed = await ctx.host.proxy.activate_site(site_name(ctx.settings), site_config(ctx))
        return StepOutcome(changed=changed)
