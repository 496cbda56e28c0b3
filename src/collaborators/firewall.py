# src/collaborators/firewall.py — v1
"""Firewall collaborator (ufw)."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from provisioner.collaborators.executor import CommandExecutor

logger = logging.getLogger(__name__)

# Rule name as given to `ufw allow` -> label shown by `ufw status`.
RULE_LABELS: dict[str, str] = {
    "ssh": "22/tcp",
    "OpenSSH": "OpenSSH",
    "Nginx Full": "Nginx Full",
    "http": "80/tcp",
    "https": "443/tcp",
}


class UfwFirewall:
    """Default policies and allow rules by port or application profile."""

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    async def status(self) -> str:
        result = await self._executor.run(["ufw", "status", "verbose"], check=False)
        return result.stdout if result.ok else ""

    async def is_configured(self, allowed: Sequence[str]) -> bool:
        """Active, deny-in/allow-out defaults, and every rule present."""
        text = await self.status()
        if "Status: active" not in text:
            return False
        if not re.search(r"Default:\s*deny \(incoming\),\s*allow \(outgoing\)", text):
            return False
        return all(_has_rule(text, RULE_LABELS.get(rule, rule)) for rule in allowed)

    async def set_defaults(self) -> None:
        await self._executor.run(["ufw", "default", "deny", "incoming"])
        await self._executor.run(["ufw", "default", "allow", "outgoing"])

    async def allow(self, rule: str) -> None:
        await self._executor.run(["ufw", "allow", rule])

    async def enable(self) -> None:
        await self._executor.run(["ufw", "--force", "enable"])
        logger.info("Firewall enabled")


def _has_rule(status_text: str, label: str) -> bool:
    pattern = rf"^{re.escape(label)}\s+ALLOW"
    return re.search(pattern, status_text, re.MULTILINE) is not None
