"""Tests for ShellCapability."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

from agentfork.core.domain.cancellation import CancellationToken
from agentfork.infrastructure.capabilities.output_summarizer import OutputSummarizer
from agentfork.infrastructure.capabilities.shell_capability import (
    ShellCapability,
    is_command_blocked,
)

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell commands")


class TestBlockList:
    @pytest.mark.parametrize("command", ["rm -rf /", "sudo RM -RF /*", "mkfs.ext4 /dev/sdb"])
    def test_dangerous_commands_are_blocked(self, command: str) -> None:
        assert is_command_blocked(command)

    def test_regular_commands_pass(self) -> None:
        assert not is_command_blocked("ls -la")

    async def test_blocked_command_is_not_executed(self, tmp_path: Path) -> None:
        result = await ShellCapability(tmp_path).execute({"command": "rm -rf /"}, CancellationToken())
        assert result == {"success": False, "error": "Command blocked for safety reasons"}


class TestValidation:
    def test_empty_command(self) -> None:
        assert ShellCapability().validate_params(command="   ") == (
            False,
            "Parameter 'command' must not be empty",
        )

    def test_non_positive_timeout(self) -> None:
        valid, error = ShellCapability().validate_params(command="ls", timeout=0)
        assert not valid
        assert error == "Parameter 'timeout' must be positive"


class TestExecution:
    async def test_runs_in_work_dir(self, tmp_path: Path) -> None:
        (tmp_path / "marker.txt").write_text("", encoding="utf-8")

        result = await ShellCapability(tmp_path).execute({"command": "ls"}, CancellationToken())

        assert result["success"] is True
        assert result["returncode"] == 0
        assert "marker.txt" in result["output"]
        assert result["command"] == "ls"

    async def test_nonzero_exit_reports_stderr(self, tmp_path: Path) -> None:
        result = await ShellCapability(tmp_path).execute(
            {"command": "echo broken >&2; exit 3"}, CancellationToken()
        )

        assert result["success"] is False
        assert result["returncode"] == 3
        assert result["error"].strip() == "broken"

    async def test_silent_failure_names_exit_code(self, tmp_path: Path) -> None:
        result = await ShellCapability(tmp_path).execute({"command": "exit 4"}, CancellationToken())
        assert result["error"] == "Command failed with code 4"

    async def test_timeout_kills_command(self, tmp_path: Path) -> None:
        result = await ShellCapability(tmp_path).execute(
            {"command": "sleep 5", "timeout": 1}, CancellationToken()
        )
        assert result == {"success": False, "error": "Command timed out after 1s"}

    async def test_cancellation_token_stops_command(self, tmp_path: Path) -> None:
        token = CancellationToken()
        task = asyncio.create_task(
            ShellCapability(tmp_path).execute({"command": "sleep 5"}, token)
        )
        await asyncio.sleep(0.2)
        await token.cancel("deadline")

        result = await asyncio.wait_for(task, timeout=3)

        assert result == {"success": False, "error": "Command cancelled"}

    async def test_large_output_is_summarized(self, tmp_path: Path) -> None:
        capability = ShellCapability(tmp_path, summarizer=OutputSummarizer(max_characters=50))

        result = await capability.execute({"command": "seq 1 100"}, CancellationToken())

        assert result["summarized"] is True
        assert result["original_length"] > 50
        assert result["output"].startswith("shell output too large to display fully")
