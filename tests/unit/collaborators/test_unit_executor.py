# tests/unit/collaborators/test_unit_executor.py — v1
"""Tests for collaborators/executor.py — subprocess execution."""

from __future__ import annotations

import pytest

from provisioner.collaborators.executor import CommandExecutor, CommandResult
from provisioner.core.errors import CollaboratorError, CollaboratorTimeout


class TestCommandResult:
    def test_ok(self):
        assert CommandResult(("x",), 0).ok
        assert not CommandResult(("x",), 1).ok

    def test_output_combines_and_truncates(self):
        result = CommandResult(("x",), 1, stdout="out", stderr="err")
        assert result.output == "out\nerr"
        long = CommandResult(("x",), 1, stdout="a" * 5000)
        assert len(long.output) == 4000


class TestCommandExecutor:
    @pytest.mark.asyncio
    async def test_captures_stdout(self):
        result = await CommandExecutor().run(["echo", "hello"])
        assert result.ok
        assert result.stdout.strip() == "hello"
        assert result.args == ("echo", "hello")

    @pytest.mark.asyncio
    async def test_stdin_input(self):
        result = await CommandExecutor().run(["cat"], input="from stdin")
        assert result.stdout == "from stdin"

    @pytest.mark.asyncio
    async def test_env_merged(self):
        executor = CommandExecutor(env={"BASE_VAR": "base"})
        result = await executor.run(
            ["sh", "-c", "echo $BASE_VAR $CALL_VAR"], env={"CALL_VAR": "call"}
        )
        assert result.stdout.strip() == "base call"

    @pytest.mark.asyncio
    async def test_nonzero_raises_with_output(self):
        with pytest.raises(CollaboratorError) as exc_info:
            await CommandExecutor().run(["sh", "-c", "echo broken >&2; exit 3"])
        assert exc_info.value.returncode == 3
        assert "broken" in exc_info.value.output
        assert exc_info.value.command == ["sh", "-c", "echo broken >&2; exit 3"]

    @pytest.mark.asyncio
    async def test_nonzero_without_check(self):
        result = await CommandExecutor().run(["sh", "-c", "exit 2"], check=False)
        assert result.returncode == 2

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        with pytest.raises(CollaboratorError, match="Command not found"):
            await CommandExecutor().run(["definitely-not-a-real-binary-xyz"])

    @pytest.mark.asyncio
    async def test_missing_binary_without_check(self):
        result = await CommandExecutor().run(["definitely-not-a-real-binary-xyz"], check=False)
        assert result.returncode == 127

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(CollaboratorTimeout) as exc_info:
            await CommandExecutor().run(["sleep", "5"], timeout_s=0.2)
        assert exc_info.value.timeout_s == 0.2

    @pytest.mark.asyncio
    async def test_probe(self):
        executor = CommandExecutor()
        assert await executor.probe(["true"])
        assert not await executor.probe(["false"])

    def test_which(self):
        assert CommandExecutor().which("sh") is not None
        assert CommandExecutor().which("definitely-not-a-real-binary-xyz") is None
