"""
File System Capabilities

Reading, writing, line-editing and listing files below a configured work
directory. Paths that resolve outside the work directory are rejected. The
primary agent only receives the read-only capabilities; writes and edits
happen in task agents.

The capabilities of one agent share a ``FileMemory``: reads record the
content hash the agent saw, ``edit_file`` refuses to apply line edits to a
file that changed since then, and summary reads are cached per prompt.
"""

from __future__ import annotations

import difflib
from pathlib import Path
from typing import Any

import aiofiles

from agentfork.core.capabilities.base_capability import BaseCapability
from agentfork.core.domain.cancellation import CancellationToken
from agentfork.infrastructure.capabilities.file_memory import FileMemory, hash_content
from agentfork.infrastructure.capabilities.output_summarizer import OutputSummarizer

READ_ONLY_CAPABILITY_NAMES = frozenset({"read_file", "list_directory"})

READ_MODES = ("full", "summary")
EDIT_OPERATIONS = ("replace", "insert", "delete")
DEFAULT_SUMMARY_PROMPT = "Provide a structural overview of this file"


class _WorkDirCapability(BaseCapability):
    def __init__(self, work_dir: str | Path = ".", memory: FileMemory | None = None) -> None:
        self._work_dir = Path(work_dir).resolve()
        self._memory = memory if memory is not None else FileMemory()

    def _resolve(self, path: str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self._work_dir / candidate
        resolved = candidate.resolve()
        if resolved != self._work_dir and self._work_dir not in resolved.parents:
            raise PermissionError(f"Path is outside the work directory: {path}")
        return resolved

    def _relative(self, path: Path) -> str:
        return str(path.relative_to(self._work_dir)) if path != self._work_dir else "."


async def _read_text(path: Path) -> str:
    async with aiofiles.open(path, encoding="utf-8", errors="replace") as handle:
        return await handle.read()


async def _write_text(path: Path, content: str) -> None:
    async with aiofiles.open(path, mode="w", encoding="utf-8") as handle:
        await handle.write(content)


class ReadFileCapability(_WorkDirCapability):
    """Read a text file, a window of its lines, or an LLM summary of it."""

    capability_name = "read_file"
    capability_description = (
        "Read the contents of a text file. Use offset and limit to read a "
        "window of lines from large files, line_numbers to prefix each line "
        "with its 1-based number (needed for edit_file), or mode 'summary' "
        "with a prompt to get a short answer about the file instead of its content."
    )
    capability_parameters_schema = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path of the file to read"},
            "offset": {
                "type": "integer",
                "description": "First line to return (0-based, default: 0)",
            },
            "limit": {
                "type": "integer",
                "description": "Maximum number of lines to return (default: all)",
            },
            "line_numbers": {
                "type": "boolean",
                "description": "Prefix every line with its 1-based line number (default: false)",
            },
            "mode": {
                "type": "string",
                "enum": list(READ_MODES),
                "description": "'full' returns content, 'summary' answers the prompt about the file",
            },
            "prompt": {
                "type": "string",
                "description": "Question for summary mode (default: a structural overview)",
            },
        },
        "required": ["path"],
    }
    capability_supports_parallelism = True

    def __init__(
        self,
        work_dir: str | Path = ".",
        max_size_mb: int = 10,
        *,
        memory: FileMemory | None = None,
        summarizer: OutputSummarizer | None = None,
    ) -> None:
        super().__init__(work_dir, memory)
        self._max_size_bytes = max_size_mb * 1024 * 1024
        self._summarizer = summarizer

    async def _execute(
        self,
        cancellation: CancellationToken,
        *,
        path: str,
        offset: int = 0,
        limit: int | None = None,
        line_numbers: bool = False,
        mode: str = "full",
        prompt: str | None = None,
        **_: Any,
    ) -> dict[str, Any]:
        file_path = self._resolve(path)
        if not file_path.is_file():
            return {"success": False, "error": f"File not found: {path}"}
        size = file_path.stat().st_size
        if size > self._max_size_bytes:
            return {
                "success": False,
                "error": f"File too large: {size} bytes (max {self._max_size_bytes})",
            }

        content = await _read_text(file_path)
        relative = self._relative(file_path)
        content_hash = hash_content(content)
        self._memory.record(relative, content_hash)

        if mode == "summary":
            return await self._summary(relative, content, content_hash, prompt or DEFAULT_SUMMARY_PROMPT)

        lines = content.splitlines(keepends=True)
        start = max(0, offset)
        end = len(lines) if limit is None else start + max(0, limit)
        window = lines[start:end]
        if line_numbers:
            window = [f"{start + index + 1}: {line}" for index, line in enumerate(window)]
        return {
            "success": True,
            "output": "".join(window),
            "path": relative,
            "total_lines": len(lines),
        }

    async def _summary(self, relative: str, content: str, content_hash: str, prompt: str) -> dict[str, Any]:
        cached = self._memory.cached_summary(relative, prompt, content_hash)
        if cached is not None:
            return {"success": True, "output": cached, "path": relative, "cached": True}
        if self._summarizer is None:
            return {"success": False, "error": "Summary mode is not available: no summarizer configured"}

        try:
            summary = await self._summarizer.summarize(
                f"File: {relative}\n\n{content}", self.name, prompt
            )
        except Exception as exc:
            return {"success": False, "error": f"Failed to generate summary: {str(exc) or type(exc).__name__}"}

        self._memory.cache_summary(relative, prompt, content_hash, summary)
        return {
            "success": True,
            "output": summary,
            "path": relative,
            "cached": False,
            "display": f"Summary of {relative}",
        }


class WriteFileCapability(_WorkDirCapability):
    """Write a text file, creating parent directories."""

    capability_name = "write_file"
    capability_description = (
        "Write content to a file, replacing it if it exists. Parent "
        "directories are created as needed."
    )
    capability_parameters_schema = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path of the file to write"},
            "content": {"type": "string", "description": "Full content of the file"},
        },
        "required": ["path", "content"],
    }

    async def _execute(
        self,
        cancellation: CancellationToken,
        *,
        path: str,
        content: str,
        **_: Any,
    ) -> dict[str, Any]:
        file_path = self._resolve(path)
        if file_path.is_dir():
            return {"success": False, "error": f"Path is a directory: {path}"}
        file_path.parent.mkdir(parents=True, exist_ok=True)
        await _write_text(file_path, content)
        relative = self._relative(file_path)
        self._memory.record(relative, hash_content(content))
        return {
            "success": True,
            "output": f"Wrote {len(content)} characters to {relative}",
            "path": relative,
        }


def _split_lines(content: str) -> tuple[list[str], bool]:
    """Lines without terminators, and whether the text ended with a newline."""
    if not content:
        return [], False
    lines = content.split("\n")
    trailing = lines[-1] == ""
    if trailing:
        lines.pop()
    return lines, trailing


def _join_lines(lines: list[str], trailing_newline: bool) -> str:
    text = "\n".join(lines)
    return text + "\n" if trailing_newline and lines else text


def apply_line_edits(lines: list[str], changes: list[dict[str, Any]]) -> list[str]:
    """
    Apply line edits and return the new lines.

    Line numbers refer to the file as it was before any edit. Edits are
    applied from the bottom up, so earlier edits never shift later ones;
    inserts at the same line keep their given order.

    Raises:
        ValueError: A line is out of range for its operation.
    """
    result = list(lines)
    ordered = sorted(enumerate(changes), key=lambda item: (item[1]["line"], item[0]), reverse=True)
    for _, change in ordered:
        line = change["line"]
        operation = change["operation"]
        upper = len(result) + 1 if operation == "insert" else len(result)
        if not 1 <= line <= upper:
            raise ValueError(f"Line {line} out of range (file has {len(result)} lines)")
        index = line - 1
        if operation == "replace":
            result[index] = change.get("content", "")
        elif operation == "insert":
            result.insert(index, change.get("content", ""))
        else:
            del result[index]
    return result


class EditFileCapability(_WorkDirCapability):
    """Apply line-based edits to an existing file and return a unified diff."""

    capability_name = "edit_file"
    capability_description = (
        "Edit an existing text file by line number. Each change replaces, "
        "inserts before, or deletes one line; line numbers refer to the file "
        "as last read (use read_file with line_numbers). Returns a unified diff."
    )
    capability_parameters_schema = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path of the file to edit"},
            "changes": {
                "type": "array",
                "description": "Line edits to apply",
                "items": {
                    "type": "object",
                    "properties": {
                        "line": {"type": "integer", "description": "1-based line number"},
                        "operation": {"type": "string", "enum": list(EDIT_OPERATIONS)},
                        "content": {
                            "type": "string",
                            "description": "New line text for replace and insert",
                        },
                    },
                    "required": ["line", "operation"],
                },
            },
        },
        "required": ["path", "changes"],
    }

    def validate_params(self, **kwargs: Any) -> tuple[bool, str | None]:
        is_valid, error = super().validate_params(**kwargs)
        if not is_valid:
            return is_valid, error
        changes = kwargs["changes"]
        if not changes:
            return False, "Parameter 'changes' must not be empty"
        for number, change in enumerate(changes, start=1):
            if not isinstance(change, dict):
                return False, f"Change {number} must be an object"
            line = change.get("line")
            if isinstance(line, bool) or not isinstance(line, int) or line < 1:
                return False, f"Change {number}: 'line' must be a positive integer"
            if change.get("operation") not in EDIT_OPERATIONS:
                return False, f"Change {number}: 'operation' must be one of {list(EDIT_OPERATIONS)}"
            if not isinstance(change.get("content", ""), str):
                return False, f"Change {number}: 'content' must be a string"
        return True, None

    async def _execute(
        self,
        cancellation: CancellationToken,
        *,
        path: str,
        changes: list[dict[str, Any]],
        **_: Any,
    ) -> dict[str, Any]:
        file_path = self._resolve(path)
        if not file_path.is_file():
            return {"success": False, "error": f"File not found: {path}"}

        relative = self._relative(file_path)
        original = await _read_text(file_path)
        if self._memory.has_changed(relative, hash_content(original)):
            return {
                "success": False,
                "error": f"File changed since it was last read: {relative}. Read it again before editing.",
            }

        lines, trailing_newline = _split_lines(original)
        try:
            edited = apply_line_edits(lines, changes)
        except ValueError as exc:
            return {"success": False, "error": str(exc)}

        updated = _join_lines(edited, trailing_newline)
        await _write_text(file_path, updated)
        self._memory.record(relative, hash_content(updated))

        diff = "\n".join(
            difflib.unified_diff(
                lines, edited, fromfile=f"a/{relative}", tofile=f"b/{relative}", lineterm=""
            )
        )
        return {
            "success": True,
            "output": diff or "No changes",
            "path": relative,
            "changes": len(changes),
            "display": f"Edited {relative} ({len(changes)} changes)",
        }


class ListDirectoryCapability(_WorkDirCapability):
    """List the entries of a directory."""

    capability_name = "list_directory"
    capability_description = (
        "List files and directories in a directory. Directories are marked "
        "with a trailing slash."
    )
    capability_parameters_schema = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Directory to list (default: the work directory)",
            },
        },
        "required": [],
    }
    capability_supports_parallelism = True

    async def _execute(
        self,
        cancellation: CancellationToken,
        *,
        path: str = ".",
        **_: Any,
    ) -> dict[str, Any]:
        dir_path = self._resolve(path)
        if not dir_path.is_dir():
            return {"success": False, "error": f"Directory not found: {path}"}
        entries = sorted(
            f"{entry.name}/" if entry.is_dir() else entry.name
            for entry in dir_path.iterdir()
        )
        listing = "\n".join(entries) if entries else "(empty directory)"
        return {"success": True, "output": listing, "count": len(entries)}


def build_file_capabilities(
    work_dir: str | Path = ".",
    *,
    summarizer: OutputSummarizer | None = None,
    read_only: bool = False,
) -> list[BaseCapability]:
    """File capabilities for one agent, sharing a fresh ``FileMemory``."""
    memory = FileMemory()
    capabilities: list[BaseCapability] = [
        ReadFileCapability(work_dir, memory=memory, summarizer=summarizer),
        WriteFileCapability(work_dir, memory=memory),
        EditFileCapability(work_dir, memory=memory),
        ListDirectoryCapability(work_dir, memory=memory),
    ]
    if read_only:
        return [cap for cap in capabilities if cap.name in READ_ONLY_CAPABILITY_NAMES]
    return capabilities
