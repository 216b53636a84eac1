"""Capability call dispatch for agent sessions."""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Sequence
from typing import Any

import structlog

from agentfork.core.domain.cancellation import CancellationToken
from agentfork.core.domain.capability_registry import CapabilityRegistry
from agentfork.core.domain.enums import StatusKind
from agentfork.core.domain.errors import CapabilityNotFoundError
from agentfork.core.domain.models import CapabilityCallRequest, CapabilityOutcome
from agentfork.core.domain.session_components.status_reporter import (
    StatusReporter,
    truncate_preview,
)
from agentfork.core.interfaces.capabilities import CapabilityProtocol
from agentfork.core.interfaces.logging import LoggerProtocol

ARGUMENT_PREVIEW_CHARS = 100
RESULT_PREVIEW_CHARS = 150


class CapabilityDispatcher:
    """
    Execute the capability calls of one turn and report one outcome per call.

    Failures of a single call (unknown name, invalid arguments, a raised
    exception, a ``success: False`` result) become failed outcomes; they
    never abort the batch. Outcomes are returned in request order.
    """

    def __init__(
        self,
        *,
        reporter: StatusReporter | None = None,
        max_parallel: int = 1,
        logger: LoggerProtocol | None = None,
    ) -> None:
        self._reporter = reporter or StatusReporter()
        self._max_parallel = max(1, max_parallel)
        self._logger = logger or structlog.get_logger(__name__).bind(component="CapabilityDispatcher")

    async def dispatch(
        self,
        registry: CapabilityRegistry,
        requests: Sequence[CapabilityCallRequest],
        cancellation: CancellationToken,
    ) -> list[CapabilityOutcome]:
        """Execute calls with optional parallelism."""
        if not requests:
            return []

        sem = asyncio.Semaphore(self._max_parallel)
        outcomes: dict[int, CapabilityOutcome] = {}
        tasks: list[tuple[int, asyncio.Task[CapabilityOutcome]]] = []

        async def run(request: CapabilityCallRequest) -> CapabilityOutcome:
            async with sem:
                return await self.dispatch_one(registry, request, cancellation)

        try:
            for index, request in enumerate(requests):
                capability = registry.get(request.name)
                can_parallel = capability is not None and getattr(
                    capability, "supports_parallelism", False
                )
                if can_parallel and self._max_parallel > 1:
                    tasks.append((index, asyncio.create_task(run(request))))
                else:
                    outcomes[index] = await self.dispatch_one(registry, request, cancellation)

            if tasks:
                gathered = await asyncio.gather(*(task for _, task in tasks))
                for (index, _), outcome in zip(tasks, gathered):
                    outcomes[index] = outcome
        finally:
            pending = [task for _, task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        return [outcomes[index] for index in range(len(requests))]

    async def dispatch_one(
        self,
        registry: CapabilityRegistry,
        request: CapabilityCallRequest,
        cancellation: CancellationToken,
    ) -> CapabilityOutcome:
        self._reporter.emit(
            StatusKind.CAPABILITY_CALL,
            f"Agent calling {request.name}: {_argument_preview(request.arguments)}",
        )

        capability = registry.get(request.name)
        if capability is None:
            error = CapabilityNotFoundError(request.name)
            self._logger.warning("capability_not_found", capability=request.name)
            self._reporter.emit(StatusKind.ERROR, f"Error: {error.message}")
            return CapabilityOutcome(request=request, ok=False, error=error.message)

        outcome = await self._invoke(capability, request, cancellation)
        self._report_outcome(outcome)
        return outcome

    async def _invoke(
        self,
        capability: CapabilityProtocol,
        request: CapabilityCallRequest,
        cancellation: CancellationToken,
    ) -> CapabilityOutcome:
        try:
            if hasattr(capability, "validate_params"):
                is_valid, error_msg = capability.validate_params(**request.arguments)
                if not is_valid:
                    self._logger.warning(
                        "capability_validation_failed",
                        capability=request.name,
                        error=error_msg,
                        args_keys=list(request.arguments.keys()),
                    )
                    return CapabilityOutcome(
                        request=request,
                        ok=False,
                        error=f"Parameter validation failed: {error_msg}",
                    )

            self._logger.info(
                "capability_execute",
                capability=request.name,
                args_keys=list(request.arguments.keys()),
            )
            start_time = time.time()
            result = await capability.execute(dict(request.arguments), cancellation)
            latency_ms = int((time.time() - start_time) * 1000)
        except asyncio.CancelledError as error:
            if _task_is_cancelling():
                raise
            self._logger.error(
                "capability_cancelled_itself",
                capability=request.name,
                error=str(error),
            )
            reason = f": {error}" if str(error) else ""
            return CapabilityOutcome(
                request=request, ok=False, error=f"{request.name} was cancelled{reason}"
            )
        except Exception as error:
            self._logger.error(
                "capability_exception",
                capability=request.name,
                error=str(error),
                error_type=type(error).__name__,
            )
            return CapabilityOutcome(request=request, ok=False, error=str(error) or type(error).__name__)

        success = not isinstance(result, dict) or bool(result.get("success", True))
        self._logger.info(
            "capability_complete",
            capability=request.name,
            success=success,
            latency_ms=latency_ms,
        )
        if not success:
            error_text = str(result.get("error") or f"{request.name} failed")
            return CapabilityOutcome(request=request, ok=False, output=result, error=error_text)
        return CapabilityOutcome(request=request, ok=True, output=result)

    def _report_outcome(self, outcome: CapabilityOutcome) -> None:
        name = outcome.request.name
        if not outcome.ok:
            self._reporter.emit(StatusKind.ERROR, f"{name} failed: {outcome.error}")
            return
        display = _display_text(outcome)
        if display:
            self._reporter.emit(
                StatusKind.CAPABILITY_RESULT,
                f"{name} result: {truncate_preview(display, RESULT_PREVIEW_CHARS)}",
            )
        else:
            self._reporter.emit(StatusKind.CAPABILITY_RESULT, f"{name} completed successfully")


def _task_is_cancelling() -> bool:
    """True when the running task itself has a pending cancellation request."""
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


def _argument_preview(arguments: dict[str, Any]) -> str:
    rendered = json.dumps(arguments, ensure_ascii=False, default=str)
    return truncate_preview(rendered, ARGUMENT_PREVIEW_CHARS)


def _display_text(outcome: CapabilityOutcome) -> str:
    if isinstance(outcome.output, dict):
        display = outcome.output.get("display")
        if isinstance(display, str) and display:
            return display
    return outcome.text
