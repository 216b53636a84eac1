"""
Shell Capability

Runs shell commands inside the work directory with a timeout and a block
list of destructive patterns. The subprocess is killed when the command
times out or the session's cancellation token fires. Large output is
condensed by the output summarizer.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from agentfork.core.capabilities.base_capability import BaseCapability
from agentfork.core.domain.cancellation import CancellationToken
from agentfork.infrastructure.capabilities.output_summarizer import OutputSummarizer

DANGEROUS_PATTERNS = (
    "rm -rf /",
    "rm -rf /*",
    "dd if=/dev/zero",
    "dd if=/dev/random",
    "format c:",
    "del /f /s /q",
    ":(){ :|:& };:",
    "> /dev/sda",
    "mkfs.",
)


def is_command_blocked(command: str) -> bool:
    lowered = command.lower()
    return any(pattern in lowered for pattern in DANGEROUS_PATTERNS)


class ShellCapability(BaseCapability):
    """Execute shell commands with safety limits and timeout."""

    capability_name = "shell"
    capability_description = (
        "Execute a shell command in the work directory. Returns stdout, "
        "stderr and the exit code. Long output is summarized."
    )
    capability_parameters_schema = {
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "Shell command to execute"},
            "timeout": {
                "type": "integer",
                "description": "Command timeout in seconds (default: 30)",
            },
        },
        "required": ["command"],
    }

    def __init__(
        self,
        work_dir: str | Path = ".",
        *,
        default_timeout: int = 30,
        summarizer: OutputSummarizer | None = None,
    ) -> None:
        self._work_dir = Path(work_dir).resolve()
        self._default_timeout = default_timeout
        self._summarizer = summarizer or OutputSummarizer()

    def validate_params(self, **kwargs: Any) -> tuple[bool, str | None]:
        is_valid, error = super().validate_params(**kwargs)
        if not is_valid:
            return is_valid, error
        if not kwargs["command"].strip():
            return False, "Parameter 'command' must not be empty"
        timeout = kwargs.get("timeout")
        if timeout is not None and timeout <= 0:
            return False, "Parameter 'timeout' must be positive"
        return True, None

    async def _execute(
        self,
        cancellation: CancellationToken,
        *,
        command: str,
        timeout: int | None = None,
        **_: Any,
    ) -> dict[str, Any]:
        if is_command_blocked(command):
            return {"success": False, "error": "Command blocked for safety reasons"}

        timeout = timeout or self._default_timeout
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(self._work_dir),
        )

        communicate = asyncio.ensure_future(process.communicate())
        cancelled = asyncio.ensure_future(cancellation.wait())
        try:
            done, _pending = await asyncio.wait(
                {communicate, cancelled},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            _kill(process)
            communicate.cancel()
            raise
        finally:
            cancelled.cancel()

        if communicate not in done:
            _kill(process)
            communicate.cancel()
            await process.wait()
            if cancelled in done:
                return {"success": False, "error": "Command cancelled"}
            return {"success": False, "error": f"Command timed out after {timeout}s"}

        stdout, stderr = communicate.result()
        stdout_text = stdout.decode(errors="replace") if stdout else ""
        stderr_text = stderr.decode(errors="replace") if stderr else ""

        summary = await self._summarizer.summarize_if_needed(stdout_text, self.name)
        success = process.returncode == 0
        result: dict[str, Any] = {
            "success": success,
            "output": summary.content,
            "stderr": stderr_text,
            "returncode": process.returncode,
            "command": command,
        }
        if summary.is_summarized:
            result["summarized"] = True
            result["original_length"] = summary.original_length
        if not success:
            result["error"] = stderr_text or f"Command failed with code {process.returncode}"
        return result


def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass
