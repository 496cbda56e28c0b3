# src/steps/certificates.py — v1
"""TLS step: DNS readiness gate, certificate issuance and the HTTPS site."""

from __future__ import annotations

import logging

from provisioner.collaborators.certificates import domain_names
from provisioner.pipeline.plugin_kit.base_step import BaseStep
from provisioner.pipeline.plugin_kit.models import StepContext, StepOutcome
from provisioner.steps.common import site_config, site_name

logger = logging.getLogger(__name__)

RESUME_WITH_DNS = "provisioner deploy --resume --dns-ready"


class IssueCertificateStep(BaseStep):
    """Obtain a certificate over the ACME webroot challenge.

    When the operator reports that DNS does not point at this host yet, the
    step completes deferred and hands back the manual certbot command.
    """

    @property
    def id(self) -> str:
        return "issue-certificate"

    @property
    def label(self) -> str:
        return "Issue TLS certificate"

    @property
    def dependencies(self) -> list[str]:
        return ["configure-proxy", "configure-firewall"]

    @property
    def degradable(self) -> bool:
        return True

    def remedy(self, ctx: StepContext) -> str | None:
        return self._manual_command(ctx)

    async def precondition(self, ctx: StepContext) -> bool:
        domain = ctx.store.get("domain")
        if not ctx.host.certificates.has_certificate(domain):
            return False
        return ctx.host.proxy.site_installed(site_name(ctx.settings), site_config(ctx, tls=True))

    async def apply(self, ctx: StepContext) -> StepOutcome:
        certificates = ctx.host.certificates
        domain = ctx.store.get("domain")

        if not certificates.has_certificate(domain):
            public_ip = await certificates.detect_public_ip()
            if not ctx.source.confirm_dns(ctx.store, public_ip):
                logger.warning("DNS for %s not confirmed; certificate deferred", domain)
                return StepOutcome(
                    changed=False,
                    deferred=True,
                    notices=[
                        f"TLS certificate for {domain} was not issued: DNS is not "
                        "pointing at this server yet. The site is served over HTTP."
                    ],
                    next_actions=[
                        f"Point A records for {domain} and www.{domain} to "
                        f"{public_ip or 'this server'}",
                        f"Then run: {self._manual_command(ctx)}",
                        f"Or re-run: {RESUME_WITH_DNS}",
                    ],
                )
            await certificates.issue(
                domain_names(domain), ctx.store.get("contact_email"), ctx.settings.frontend_root
            )

        await ctx.host.proxy.activate_site(site_name(ctx.settings), site_config(ctx, tls=True))
        return StepOutcome(notices=[f"HTTPS enabled for {domain}"])

    def _manual_command(self, ctx: StepContext) -> str:
        domain = ctx.store.get("domain")
        return ctx.host.certificates.manual_command(
            domain_names(domain), ctx.store.get("contact_email"), ctx.settings.frontend_root
        )
