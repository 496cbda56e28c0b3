# src/collaborators/scheduler.py — v1
"""Task scheduler collaborator (root crontab)."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from provisioner.collaborators.executor import CommandExecutor
from provisioner.collaborators.services import SystemdSupervisor

logger = logging.getLogger(__name__)

CRON_SERVICE = "cron"


class CronScheduler:
    """Register periodic jobs by cron expression."""

    def __init__(self, executor: CommandExecutor, services: SystemdSupervisor) -> None:
        self._executor = executor
        self._services = services

    async def is_available(self) -> bool:
        if self._executor.which("crontab") is None:
            return False
        return await self._services.is_active(CRON_SERVICE)

    async def entries(self) -> list[str]:
        """Current crontab lines; an empty crontab is not an error."""
        result = await self._executor.run(["crontab", "-l"], check=False)
        if not result.ok:
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]

    async def has_entries(self, lines: Sequence[str]) -> bool:
        current = set(await self.entries())
        return all(line in current for line in lines)

    async def ensure_entries(self, lines: Sequence[str]) -> bool:
        """Append missing lines, keeping existing ones. Returns True if changed."""
        current = await self.entries()
        missing = [line for line in lines if line not in current]
        if not missing:
            return False
        content = "\n".join([*current, *missing]) + "\n"
        await self._executor.run(["crontab", "-"], input=content)
        logger.info("Registered %d cron job(s)", len(missing))
        return True


def cron_line(schedule: str, command: str) -> str:
    return f"{schedule} {command}"
