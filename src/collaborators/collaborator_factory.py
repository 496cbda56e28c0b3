# src/collaborators/collaborator_factory.py — v1
"""Factory wiring every host collaborator onto one CommandExecutor."""

from __future__ import annotations

from dataclasses import dataclass

from provisioner.collaborators.certificates import CertbotClient
from provisioner.collaborators.database import PostgresDatabase
from provisioner.collaborators.executor import CommandExecutor
from provisioner.collaborators.files import FileSystem
from provisioner.collaborators.firewall import UfwFirewall
from provisioner.collaborators.packages import AptPackageManager
from provisioner.collaborators.proxy import NginxProxy
from provisioner.collaborators.scheduler import CronScheduler
from provisioner.collaborators.services import SystemdSupervisor
from provisioner.config.settings import Settings


@dataclass
class Collaborators:
    """Bundle of external systems a step may delegate to."""

    executor: CommandExecutor
    files: FileSystem
    packages: AptPackageManager
    services: SystemdSupervisor
    proxy: NginxProxy
    certificates: CertbotClient
    firewall: UfwFirewall
    scheduler: CronScheduler
    database: PostgresDatabase


def create_collaborators(
    settings: Settings,
    executor: CommandExecutor | None = None,
    files: FileSystem | None = None,
) -> Collaborators:
    """Instantiate collaborators for the configured host layout.

    Args:
        settings: Provisioner settings (paths, timeouts).
        executor: Command executor; a real subprocess executor if None.
        files: Filesystem helper; the local filesystem if None.
    """
    executor = executor or CommandExecutor(timeout_s=settings.command_timeout_s)
    files = files or FileSystem()
    services = SystemdSupervisor(executor)
    return Collaborators(
        executor=executor,
        files=files,
        packages=AptPackageManager(executor),
        services=services,
        proxy=NginxProxy(
            executor,
            files,
            services,
            sites_available=settings.nginx_sites_available,
            sites_enabled=settings.nginx_sites_enabled,
        ),
        certificates=CertbotClient(executor, live_dir=settings.letsencrypt_live_dir),
        firewall=UfwFirewall(executor),
        scheduler=CronScheduler(executor, services),
        database=PostgresDatabase(executor),
    )
