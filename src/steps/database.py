# src/steps/database.py — v1
"""Database step: application role, database and grants."""

from __future__ import annotations

from provisioner.collaborators.database import sql_literal
from provisioner.pipeline.plugin_kit.base_step import BaseStep
from provisioner.pipeline.plugin_kit.models import StepContext, StepOutcome
from provisioner.templates.files import DATABASE_SQL, render

POSTGRES_SERVICE = "postgresql"


class ProvisionDatabaseStep(BaseStep):
    """Create the role and database in one idempotent psql script.

    The password travels on psql's stdin; the precondition logs in with the
    application credentials, so a changed password is re-applied.
    """

    @property
    def id(self) -> str:
        return "provision-database"

    @property
    def label(self) -> str:
        return "Provision PostgreSQL database"

    @property
    def dependencies(self) -> list[str]:
        return ["install-deps"]

    def remedy(self, ctx: StepContext) -> str | None:
        return f"systemctl status {POSTGRES_SERVICE} && sudo -u postgres psql -c '\\l'"

    async def precondition(self, ctx: StepContext) -> bool:
        db = ctx.host.database
        name = ctx.settings.resolved_db_name
        if not await db.database_exists(name):
            return False
        return await db.can_connect(
            name,
            ctx.settings.resolved_db_user,
            ctx.store.get("database_password"),
        )

    async def apply(self, ctx: StepContext) -> StepOutcome:
        services = ctx.host.services
        if not await services.is_active(POSTGRES_SERVICE):
            await services.start(POSTGRES_SERVICE)
        if not await services.is_enabled(POSTGRES_SERVICE):
            await services.enable(POSTGRES_SERVICE)

        script = render(
            DATABASE_SQL,
            db_user=ctx.settings.resolved_db_user,
            db_password_sql=sql_literal(ctx.store.get("database_password")),
            db_name=ctx.settings.resolved_db_name,
        )
        await ctx.host.database.run_script(script)
        return StepOutcome()
