# src/collaborators/database.py — v1
"""Database server collaborator (PostgreSQL through psql)."""

from __future__ import annotations

import logging

from provisioner.collaborators.executor import CommandExecutor

logger = logging.getLogger(__name__)


def sql_literal(value: str) -> str:
    """Escape a value for use inside a single-quoted SQL string."""
    return value.replace("'", "''")


class PostgresDatabase:
    """Create databases, roles and grants as the postgres superuser."""

    def __init__(self, executor: CommandExecutor, host: str = "127.0.0.1") -> None:
        self._executor = executor
        self._host = host

    async def run_script(self, sql: str) -> None:
        """Execute a script as postgres. SQL travels on stdin, never argv."""
        await self._executor.run(
            ["sudo", "-u", "postgres", "psql", "-v", "ON_ERROR_STOP=1", "-q", "-X"],
            input=sql,
        )

    async def database_exists(self, name: str) -> bool:
        result = await self._executor.run(
            [
                "sudo", "-u", "postgres", "psql", "-tAX", "-c",
                f"SELECT 1 FROM pg_database WHERE datname = '{sql_literal(name)}'",
            ],
            check=False,
        )
        return result.ok and result.stdout.strip() == "1"

    async def can_connect(self, database: str, user: str, password: str) -> bool:
        """Log in over TCP with the application credentials."""
        return await self._executor.probe(
            ["psql", "-h", self._host, "-U", user, "-d", database, "-tAX", "-c", "SELECT 1"],
            env={"PGPASSWORD": password, "PGCONNECT_TIMEOUT": "5"},
        )
