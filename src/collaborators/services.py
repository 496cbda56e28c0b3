# src/collaborators/services.py — v1
"""Process supervisor collaborator (systemd)."""

from __future__ import annotations

from provisioner.collaborators.executor import CommandExecutor


class SystemdSupervisor:
    """Register, start, enable and reload systemd units by service name."""

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    async def is_active(self, service: str) -> bool:
        return await self._executor.probe(["systemctl", "is-active", "--quiet", service])

    async def is_enabled(self, service: str) -> bool:
        return await self._executor.probe(["systemctl", "is-enabled", "--quiet", service])

    async def daemon_reload(self) -> None:
        await self._executor.run(["systemctl", "daemon-reload"])

    async def start(self, service: str) -> None:
        await self._executor.run(["systemctl", "start", service])

    async def enable(self, service: str) -> None:
        await self._executor.run(["systemctl", "enable", service])

    async def restart(self, service: str) -> None:
        await self._executor.run(["systemctl", "restart", service])

    async def reload(self, service: str) -> None:
        await self._executor.run(["systemctl", "reload", service])
