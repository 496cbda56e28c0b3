# src/steps/backups.py — v1
"""Backup step: dump script plus backup and certificate-renewal cron jobs."""

from __future__ import annotations

import logging

from provisioner.collaborators.scheduler import cron_line
from provisioner.pipeline.plugin_kit.base_step import BaseStep
from provisioner.pipeline.plugin_kit.models import StepContext, StepOutcome
from provisioner.templates.files import BACKUP_SCRIPT, render

logger = logging.getLogger(__name__)

SCRIPT_MODE = 0o755


class ScheduleBackupsStep(BaseStep):
    """Install the backup script and register it with cron.

    Without a running cron daemon the script is still installed and the step
    completes deferred with the crontab lines to add by hand.
    """

    @property
    def id(self) -> str:
        return "schedule-backups"

    @property
    def label(self) -> str:
        return "Schedule backups"

    @property
    def dependencies(self) -> list[str]:
        return ["provision-database", "deploy-backend"]

    @property
    def degradable(self) -> bool:
        return True

    def remedy(self, ctx: StepContext) -> str | None:
        return "crontab -l"

    async def precondition(self, ctx: StepContext) -> bool:
        if not ctx.host.files.matches(ctx.settings.backup_script, _script(ctx), SCRIPT_MODE):
            return False
        scheduler = ctx.host.scheduler
        return await scheduler.is_available() and await scheduler.has_entries(cron_lines(ctx))

    async def apply(self, ctx: StepContext) -> StepOutcome:
        files = ctx.host.files
        files.ensure_dir(ctx.settings.backup_dir, mode=0o700)
        changed = files.write_if_changed(ctx.settings.backup_script, _script(ctx), mode=SCRIPT_MODE)

        lines = cron_lines(ctx)
        scheduler = ctx.host.scheduler
        if not await scheduler.is_available():
            logger.warning("cron is not available; backups are not scheduled")
            return StepOutcome(
                changed=changed,
                deferred=True,
                notices=["Backups are NOT scheduled: the cron service is not available."],
                next_actions=[
                    "Install and start cron: apt-get install -y cron && systemctl enable --now cron",
                    *[f"Then add to root's crontab: {line}" for line in lines],
                ],
            )

        changed |= await scheduler.ensure_entries(lines)
        return StepOutcome(changed=changed)


def cron_lines(ctx: StepContext) -> list[str]:
    settings = ctx.settings
    return [
        cron_line(
            settings.backup_schedule,
            f"{settings.backup_script} >> {settings.backup_log} 2>&1",
        ),
        cron_line(settings.renew_schedule, "certbot renew --quiet"),
    ]


def _script(ctx: StepContext) -> str:
    settings = ctx.settings
    return render(
        BACKUP_SCRIPT,
        backup_dir=settings.backup_dir,
        db_name=settings.resolved_db_name,
        app_root=settings.app_root,
        retention_days=settings.backup_retention_days,
    )
