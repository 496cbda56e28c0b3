# src/steps/backend.py — v1
"""Backend step: virtualenv, environment file, starter app and systemd unit."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import quote

from provisioner.pipeline.plugin_kit.base_step import BaseStep
from provisioner.pipeline.plugin_kit.models import StepContext, StepOutcome
from provisioner.steps.common import env_file_path
from provisioner.templates.files import BACKEND_APP, ENV_FILE, SYSTEMD_UNIT, render

logger = logging.getLogger(__name__)

ENV_FILE_MODE = 0o600
# Written after a successful pip install; marks the installed package set.
REQUIREMENTS_FILE = "requirements.txt"


class DeployBackendStep(BaseStep):
    """Run the API under systemd from a dedicated virtualenv."""

    @property
    def id(self) -> str:
        return "deploy-backend"

    @property
    def label(self) -> str:
        return "Deploy backend service"

    @property
    def dependencies(self) -> list[str]:
        return ["install-deps", "provision-database"]

    def remedy(self, ctx: StepContext) -> str | None:
        return f"journalctl -u {ctx.settings.resolved_service_name} -n 50 --no-pager"

    async def precondition(self, ctx: StepContext) -> bool:
        files = ctx.host.files
        settings = ctx.settings
        service = settings.resolved_service_name
        if not files.exists(_venv_python(settings.app_root)):
            return False
        if not files.matches(settings.app_root / REQUIREMENTS_FILE, _requirements(ctx)):
            return False
        if not files.matches(env_file_path(settings), _env_file(ctx), ENV_FILE_MODE):
            return False
        if not files.exists(_app_module(ctx)):
            return False
        if not files.matches(_unit_path(ctx), _unit(ctx)):
            return False
        return await ctx.host.services.is_enabled(service) and await ctx.host.services.is_active(service)

    async def apply(self, ctx: StepContext) -> StepOutcome:
        files = ctx.host.files
        services = ctx.host.services
        executor = ctx.host.executor
        settings = ctx.settings
        app_root = settings.app_root
        service = settings.resolved_service_name
        next_actions: list[str] = []

        files.ensure_dir(app_root)

        venv_dir = app_root / "venv"
        if not files.exists(_venv_python(app_root)):
            await executor.run(["python3", "-m", "venv", str(venv_dir)])

        changed = False
        requirements = _requirements(ctx)
        if not files.matches(app_root / REQUIREMENTS_FILE, requirements):
            pip = str(venv_dir / "bin" / "pip")
            await executor.run([pip, "install", "--upgrade", "pip"])
            await executor.run([pip, "install", *settings.backend_packages_list])
            files.write_if_changed(app_root / REQUIREMENTS_FILE, requirements, mode=0o644)
            changed = True

        changed |= files.write_if_changed(env_file_path(settings), _env_file(ctx), mode=ENV_FILE_MODE)

        module = _app_module(ctx)
        if files.write_if_absent(module, render(BACKEND_APP, app_name=settings.app_name), mode=0o644):
            changed = True
            next_actions.append(
                f"Replace the starter app {module} with your backend code, "
                f"then run: systemctl restart {service}"
            )

        if files.write_if_changed(_unit_path(ctx), _unit(ctx), mode=0o644):
            await services.daemon_reload()
            changed = True

        if not await services.is_enabled(service):
            await services.enable(service)

        if not await services.is_active(service):
            await services.start(service)
        elif changed:
            await services.restart(service)

        logger.info("Backend service %s is running on port %d", service, settings.backend_port)
        return StepOutcome(changed=changed, next_actions=next_actions)


def _venv_python(app_root: Path) -> Path:
    return app_root / "venv" / "bin" / "python"


def _app_module(ctx: StepContext) -> Path:
    return ctx.settings.app_root / f"{ctx.settings.backend_module}.py"


def _unit_path(ctx: StepContext) -> Path:
    return ctx.settings.systemd_unit_dir / f"{ctx.settings.resolved_service_name}.service"


def _requirements(ctx: StepContext) -> str:
    return "\n".join(ctx.settings.backend_packages_list) + "\n"


def _env_file(ctx: StepContext) -> str:
    settings = ctx.settings
    return render(
        ENV_FILE,
        api_key_env_var=settings.api_key_env_var,
        api_key=ctx.store.get("api_key"),
        db_user=settings.resolved_db_user,
        db_password_url=quote(ctx.store.get("database_password"), safe=""),
        db_name=settings.resolved_db_name,
        secret_key=ctx.store.get("secret_key"),
        domain=ctx.store.get("domain"),
        s3_bucket=settings.resolved_s3_bucket,
        aws_region=settings.aws_region,
    )


def _unit(ctx: StepContext) -> str:
    settings = ctx.settings
    return render(
        SYSTEMD_UNIT,
        app_name=settings.app_name,
        app_root=settings.app_root,
        backend_module=settings.backend_module,
        backend_port=settings.backend_port,
    )
