# src/collaborators/executor.py — v1
"""Async command execution for every external collaborator.

All host tools (apt, systemctl, nginx, certbot, ufw, crontab, psql) are
invoked through CommandExecutor.run(), which enforces a timeout, kills the
child process on timeout or cancellation, and raises CollaboratorError on a
non-zero exit when check=True.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from provisioner.core.errors import CollaboratorError, CollaboratorTimeout

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 900.0
OUTPUT_TAIL_CHARS = 4000


@dataclass(frozen=True)
class CommandResult:
    """Completed command with decoded output."""

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined output tail, for error reports."""
        combined = "\n".join(part for part in (self.stdout, self.stderr) if part)
        return combined[-OUTPUT_TAIL_CHARS:]


class CommandExecutor:
    """Run host commands as subprocesses.

    Args:
        timeout_s: Default per-command timeout.
        env: Extra environment merged into os.environ for every command.
    """

    def __init__(
        self,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._timeout_s = timeout_s
        self._env = dict(env or {})

    async def run(
        self,
        cmd: Sequence[str],
        *,
        input: str | None = None,
        check: bool = True,
        timeout_s: float | None = None,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run a command and capture its output.

        Raises:
            CollaboratorError: Non-zero exit (check=True) or missing binary.
            CollaboratorTimeout: The command exceeded its timeout.
        """
        args = tuple(str(a) for a in cmd)
        timeout = timeout_s or self._timeout_s
        logger.debug("Running command: %s", " ".join(args))

        merged_env = {**os.environ, **self._env, **(env or {})}
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=merged_env,
                cwd=str(cwd) if cwd else None,
            )
        except FileNotFoundError as exc:
            if not check:
                return CommandResult(args=args, returncode=127, stderr=str(exc))
            raise CollaboratorError(
                f"Command not found: {args[0]}", command=args, returncode=127
            ) from exc

        try:
            stdout_data, stderr_data = await asyncio.wait_for(
                proc.communicate(input.encode("utf-8") if input is not None else None),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            await _kill(proc)
            raise CollaboratorTimeout(
                f"Command timed out after {timeout:.0f}s: {' '.join(args)}",
                timeout_s=timeout,
                command=args,
            ) from exc
        except asyncio.CancelledError:
            await _kill(proc)
            raise

        result = CommandResult(
            args=args,
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout_data.decode("utf-8", errors="replace"),
            stderr=stderr_data.decode("utf-8", errors="replace"),
        )

        if check and not result.ok:
            raise CollaboratorError(
                f"Command failed with exit code {result.returncode}: {' '.join(args)}",
                command=args,
                returncode=result.returncode,
                output=result.output,
            )
        return result

    async def probe(self, cmd: Sequence[str], **kwargs: object) -> bool:
        """Run a read-only check; True when it exits 0."""
        result = await self.run(cmd, check=False, **kwargs)  # type: ignore[arg-type]
        return result.ok

    def which(self, name: str) -> str | None:
        return shutil.which(name)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        return
    await proc.wait()
