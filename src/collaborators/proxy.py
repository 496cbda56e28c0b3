# src/collaborators/proxy.py — v1
"""Reverse proxy collaborator (nginx sites-available / sites-enabled)."""

from __future__ import annotations

import logging
from pathlib import Path

from provisioner.collaborators.executor import CommandExecutor
from provisioner.collaborators.files import FileSystem
from provisioner.collaborators.services import SystemdSupervisor
from provisioner.core.errors import CollaboratorError

logger = logging.getLogger(__name__)

DEFAULT_SITE = "default"


class NginxProxy:
    """Write, enable, syntax-check and reload nginx site configurations."""

    def __init__(
        self,
        executor: CommandExecutor,
        files: FileSystem,
        services: SystemdSupervisor,
        sites_available: Path,
        sites_enabled: Path,
    ) -> None:
        self._executor = executor
        self._files = files
        self._services = services
        self._available = sites_available
        self._enabled = sites_enabled

    def site_path(self, name: str) -> Path:
        return self._available / name

    def enabled_path(self, name: str) -> Path:
        return self._enabled / name

    def site_installed(self, name: str, content: str) -> bool:
        """Config matches, is enabled, and the distribution default is gone."""
        return (
            self._files.matches(self.site_path(name), content)
            and self._files.is_symlink_to(self.enabled_path(name), self.site_path(name))
            and not self._files.exists(self.enabled_path(DEFAULT_SITE))
            and not self.enabled_path(DEFAULT_SITE).is_symlink()
        )

    def install_site(self, name: str, content: str) -> bool:
        """Write and enable a site, dropping the default one. Returns True if changed."""
        changed = self._files.write_if_changed(self.site_path(name), content, mode=0o644)
        changed |= self._files.symlink(self.site_path(name), self.enabled_path(name))
        changed |= self._files.remove(self.enabled_path(DEFAULT_SITE))
        return changed

    async def test_config(self) -> None:
        """Run `nginx -t`; raises CollaboratorError with nginx's output on failure."""
        await self._executor.run(["nginx", "-t"])

    async def activate_site(self, name: str, content: str) -> bool:
        """Install a site, syntax-check it and reload nginx.

        A site that fails the check is disabled again so that nginx never
        loads it and a later run does not mistake it for a working one.
        """
        changed = self.install_site(name, content)
        try:
            await self.test_config()
        except CollaboratorError:
            self._files.remove(self.enabled_path(name))
            logger.error("nginx rejected site %s; disabled it", name)
            raise
        await self.reload()
        return changed

    async def reload(self) -> None:
        if await self._services.is_active("nginx"):
            await self._services.reload("nginx")
        else:
            await self._services.restart("nginx")
        logger.info("nginx reloaded")

    async def is_running(self) -> bool:
        return await self._services.is_active("nginx")
