# src/steps/firewall.py — v1
"""Firewall step: deny inbound by default, allow ssh and web traffic."""

from __future__ import annotations

from provisioner.pipeline.plugin_kit.base_step import BaseStep
from provisioner.pipeline.plugin_kit.models import StepContext, StepOutcome

ALLOWED_RULES: tuple[str, ...] = ("ssh", "Nginx Full")


class ConfigureFirewallStep(BaseStep):
    @property
    def id(self) -> str:
        return "configure-firewall"

    @property
    def label(self) -> str:
        return "Configure firewall"

    @property
    def dependencies(self) -> list[str]:
        return ["install-deps"]

    def remedy(self, ctx: StepContext) -> str | None:
        return "ufw status verbose"

    async def precondition(self, ctx: StepContext) -> bool:
        return await ctx.host.firewall.is_configured(ALLOWED_RULES)

    async def apply(self, ctx: StepContext) -> StepOutcome:
        firewall = ctx.host.firewall
        await firewall.set_defaults()
        for rule in ALLOWED_RULES:
            await firewall.allow(rule)
        # ssh must be allowed before the firewall goes up.
        await firewall.enable()
        return StepOutcome()
