"""
Task Tracker Capability

Session-scoped ordered task list. The first pending task is the active
one. Each instance owns its own list and id counter, so every agent session
gets an independent tracker.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from agentfork.core.capabilities.base_capability import BaseCapability
from agentfork.core.domain.cancellation import CancellationToken
from agentfork.core.domain.enums import TaskTrackerOperation

MAX_COMPLETED_TASKS = 5


@dataclass
class TrackedTask:
    id: str
    description: str


class TaskTrackerCapability(BaseCapability):
    """Add, list, complete and update tasks of the current session."""

    capability_name = "task_tracker"
    capability_description = (
        "Manage a task list for tracking work during the session. Tasks are "
        "ordered and the first pending task is the active one. Supports "
        "adding tasks, listing them, marking them complete and updating "
        "descriptions."
    )
    capability_parameters_schema = {
        "type": "object",
        "properties": {
            "operation": {
                "type": "string",
                "description": "The operation to perform",
                "enum": [op.value for op in TaskTrackerOperation],
            },
            "description": {
                "type": "string",
                "description": "Task description (required for add/update)",
            },
            "id": {
                "type": "string",
                "description": "Task id like task-1 (optional for complete, required for update)",
            },
            "position": {
                "type": "integer",
                "description": "0-based position to insert at (optional for add)",
            },
        },
        "required": ["operation"],
    }

    def __init__(self) -> None:
        self._pending: list[TrackedTask] = []
        self._completed: list[TrackedTask] = []
        self._counter = 0

    @property
    def pending(self) -> list[TrackedTask]:
        return list(self._pending)

    @property
    def completed(self) -> list[TrackedTask]:
        return list(self._completed)

    def validate_params(self, **kwargs: Any) -> tuple[bool, str | None]:
        is_valid, error = super().validate_params(**kwargs)
        if not is_valid:
            return is_valid, error

        operation = kwargs["operation"]
        description = kwargs.get("description")
        task_id = kwargs.get("id")
        position = kwargs.get("position")

        if operation == TaskTrackerOperation.ADD.value:
            if not description or not description.strip():
                return False, "Description is required for add operation"
            if position is not None and not 0 <= position <= len(self._pending):
                return False, f"Position {position} is out of range (max: {len(self._pending)})"
        elif operation == TaskTrackerOperation.UPDATE.value:
            if not task_id:
                return False, "ID is required for update operation"
            if not description or not description.strip():
                return False, "Description is required for update operation"
            if self._find(task_id) is None:
                return False, f"Task {task_id} not found in pending tasks"
        elif operation == TaskTrackerOperation.COMPLETE.value:
            if task_id and self._find(task_id) is None:
                return False, f"Task {task_id} not found in pending tasks"
            if not task_id and not self._pending:
                return False, "No pending tasks to complete"
        return True, None

    async def _execute(
        self,
        cancellation: CancellationToken,
        *,
        operation: str,
        description: str | None = None,
        id: str | None = None,  # noqa: A002
        position: int | None = None,
        **_: Any,
    ) -> dict[str, Any]:
        # The dispatcher validates first; direct callers get the same checks.
        is_valid, error = self.validate_params(
            operation=operation, description=description, id=id, position=position
        )
        if not is_valid:
            return {"success": False, "error": error}

        op = TaskTrackerOperation(operation)
        if op == TaskTrackerOperation.ADD:
            return self._add(description or "", position)
        if op == TaskTrackerOperation.COMPLETE:
            return self._complete(id)
        if op == TaskTrackerOperation.UPDATE:
            return self._update(id or "", description or "")
        return {"success": True, "output": self.format_task_list()}

    def _add(self, description: str, position: int | None) -> dict[str, Any]:
        self._counter += 1
        task = TrackedTask(id=f"task-{self._counter}", description=description.strip())
        if position is None:
            self._pending.append(task)
            where = ""
        else:
            self._pending.insert(position, task)
            where = f" at position {position}"
        return {
            "success": True,
            "output": f'Added task {task.id}: "{task.description}"{where}\n\n{self.format_task_list()}',
            "task_id": task.id,
        }

    def _complete(self, task_id: str | None) -> dict[str, Any]:
        task = self._find(task_id) if task_id else self._pending[0]
        assert task is not None
        self._pending.remove(task)
        self._completed.insert(0, task)
        del self._completed[MAX_COMPLETED_TASKS:]
        return {
            "success": True,
            "output": f'Completed task {task.id}: "{task.description}"\n\n{self.format_task_list()}',
            "task_id": task.id,
        }

    def _update(self, task_id: str, description: str) -> dict[str, Any]:
        task = self._find(task_id)
        assert task is not None
        old_description = task.description
        task.description = description.strip()
        return {
            "success": True,
            "output": (
                f'Updated task {task_id} from "{old_description}" to "{task.description}"'
                f"\n\n{self.format_task_list()}"
            ),
            "task_id": task_id,
        }

    def _find(self, task_id: str) -> TrackedTask | None:
        return next((task for task in self._pending if task.id == task_id), None)

    def format_task_list(self) -> str:
        lines = ["=== Task List ==="]

        if self._pending:
            current = self._pending[0]
            lines.append(f"Current: [{current.id}] {current.description}")
        else:
            lines.append("Current: No active task")
        lines.append("")

        if len(self._pending) > 1:
            lines.append("Pending:")
            lines.extend(f"  [{task.id}] {task.description}" for task in self._pending[1:])
            lines.append("")
        elif not self._pending:
            lines.append("No pending tasks")
            lines.append("")

        if self._completed:
            lines.append("Completed (recent):")
            lines.extend(f"  ✓ [{task.id}] {task.description}" for task in self._completed)

        return "\n".join(lines)
