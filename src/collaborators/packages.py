# src/collaborators/packages.py — v1
"""Package manager collaborator (apt / dpkg)."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from provisioner.collaborators.executor import CommandExecutor

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
_UPGRADED_RE = re.compile(r"^(\d+) upgraded", re.MULTILINE)


class AptPackageManager:
    """Install and upgrade Debian packages."""

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    async def is_installed(self, package: str) -> bool:
        result = await self._executor.run(
            ["dpkg-query", "-W", "-f=${Status}", package], check=False
        )
        return result.ok and "install ok installed" in result.stdout

    async def missing(self, packages: Sequence[str]) -> list[str]:
        """Return the subset of packages not currently installed."""
        return [p for p in packages if not await self.is_installed(p)]

    async def pending_upgrades(self) -> int:
        """Count upgradable packages with a simulated (read-only) upgrade."""
        result = await self._executor.run(["apt-get", "-s", "upgrade"], env=APT_ENV)
        match = _UPGRADED_RE.search(result.stdout)
        if match is None:
            logger.warning("Could not parse apt-get -s upgrade output")
            return -1
        return int(match.group(1))

    async def update(self) -> None:
        await self._executor.run(["apt-get", "update"], env=APT_ENV)

    async def upgrade(self) -> None:
        await self._executor.run(
            [
                "apt-get",
                "-o", "Dpkg::Options::=--force-confdef",
                "-o", "Dpkg::Options::=--force-confold",
                "upgrade", "-y",
            ],
            env=APT_ENV,
        )

    async def install(self, packages: Sequence[str]) -> None:
        if not packages:
            return
        logger.info("Installing packages: %s", ", ".join(packages))
        await self._executor.run(["apt-get", "install", "-y", *packages], env=APT_ENV)
