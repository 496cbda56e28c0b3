# src/collaborators/certificates.py — v1
"""Certificate authority client collaborator (certbot, webroot mode)."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from provisioner.collaborators.executor import CommandExecutor

logger = logging.getLogger(__name__)

PUBLIC_IP_URL = "https://ifconfig.me"


def domain_names(domain: str) -> list[str]:
    """The apex domain and its www alias."""
    return [domain, f"www.{domain}"]


class CertbotClient:
    """Issue and renew certificates non-interactively."""

    def __init__(self, executor: CommandExecutor, live_dir: Path) -> None:
        self._executor = executor
        self._live_dir = live_dir

    def cert_dir(self, domain: str) -> Path:
        return self._live_dir / domain

    def has_certificate(self, domain: str) -> bool:
        cert_dir = self.cert_dir(domain)
        return (cert_dir / "fullchain.pem").exists() and (cert_dir / "privkey.pem").exists()

    def issue_command(self, domains: Sequence[str], email: str, webroot: Path) -> list[str]:
        cmd = ["certbot", "certonly", "--webroot", "-w", str(webroot)]
        for name in domains:
            cmd += ["-d", name]
        cmd += [
            "--non-interactive",
            "--agree-tos",
            "--email", email,
            "--keep-until-expiring",
            "--deploy-hook", "systemctl reload nginx",
        ]
        return cmd

    def manual_command(self, domains: Sequence[str], email: str, webroot: Path) -> str:
        """Command an operator can run later once DNS is in place."""
        return " ".join(
            arg if " " not in arg else f'"{arg}"'
            for arg in self.issue_command(domains, email, webroot)
        )

    async def issue(self, domains: Sequence[str], email: str, webroot: Path) -> None:
        logger.info("Requesting certificate for %s", ", ".join(domains))
        await self._executor.run(self.issue_command(domains, email, webroot))

    async def renew_dry_run(self) -> bool:
        return await self._executor.probe(["certbot", "renew", "--dry-run", "--quiet"])

    async def detect_public_ip(self) -> str | None:
        """Best-effort public address lookup for the DNS prompt."""
        result = await self._executor.run(
            ["curl", "-s", "--max-time", "5", PUBLIC_IP_URL], check=False, timeout_s=10
        )
        address = result.stdout.strip()
        return address if result.ok and address else None
