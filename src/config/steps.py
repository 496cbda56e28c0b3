# src/config/steps.py — v1
"""Declarative step registry configuration.

Registration order is significant: the plan builder breaks ties between
independent steps by the position in this list.
"""

from __future__ import annotations

# Fully qualified class paths for dynamic import by pipeline/registry.py.
STEP_REGISTRY: list[str] = [
    "provisioner.steps.system.UpdateSystemStep",
    "provisioner.steps.system.InstallDependenciesStep",
    "provisioner.steps.system.InstallRuntimeStep",
    "provisioner.steps.database.ProvisionDatabaseStep",
    "provisioner.steps.backend.DeployBackendStep",
    "provisioner.steps.frontend.DeployFrontendStep",
    "provisioner.steps.proxy.ConfigureProxyStep",
    "provisioner.steps.firewall.ConfigureFirewallStep",
    "provisioner.steps.certificates.IssueCertificateStep",
    "provisioner.steps.backups.ScheduleBackupsStep",
]
