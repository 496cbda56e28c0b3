# src/steps/common.py — v1
"""Values and renderings shared by several steps."""

from __future__ import annotations

from pathlib import Path

from provisioner.config.settings import Settings
from provisioner.pipeline.plugin_kit.models import StepContext
from provisioner.templates.files import NGINX_SITE, NGINX_SITE_TLS, render


def env_file_path(settings: Settings) -> Path:
    return settings.app_root / ".env"


def site_name(settings: Settings) -> str:
    return settings.resolved_service_name


def site_config(ctx: StepContext, tls: bool | None = None) -> str:
    """Render the nginx site; the TLS variant once a certificate exists."""
    domain = ctx.store.get("domain")
    if tls is None:
        tls = ctx.host.certificates.has_certificate(domain)
    values = {
        "upstream": f"{site_name(ctx.settings).replace('-', '_')}_backend",
        "backend_port": ctx.settings.backend_port,
        "domain": domain,
        "frontend_root": ctx.settings.frontend_root,
    }
    if tls:
        return render(
            NGINX_SITE_TLS,
            cert_dir=ctx.host.certificates.cert_dir(domain),
            **values,
        )
    return render(NGINX_SITE, **values)


def closing_actions(settings: Settings, domain: str, tls: bool) -> list[str]:
    """Manual follow-ups printed at the end of every completed run."""
    service = settings.resolved_service_name
    scheme = "https" if tls else "http"
    return [
        f"Upload your full backend code to {settings.app_root}/",
        f"Upload your frontend build to {settings.frontend_root}/",
        f"Restart services: systemctl restart {service} && systemctl restart nginx",
        f"Test: curl {scheme}://{domain} && curl {scheme}://{domain}/api/v1/health",
        f"Backend logs: journalctl -u {service} -f",
        f"Service status: systemctl status {service}; systemctl status nginx",
        f"Manual backup: {settings.backup_script}",
    ]
