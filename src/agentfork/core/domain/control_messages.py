"""
Control messages embedded in capability results.

Two messages travel inside otherwise free-form capability output:

- ``spawn_agent``: emitted by the ``task_agent`` capability, asks the host to
  run a task agent.
- ``agent_return``: emitted by the ``return_from_task`` capability, ends a
  task agent session with a result.

Decoding is a strict tagged-union parse. Anything that is not exactly one of
the two shapes decodes to :class:`UnrecognizedMessage`, so the typed decoders
return ``None`` instead of raising.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from agentfork.core.domain.models import AgentReturnSignal, AgentTaskRequest

SPAWN_AGENT_TYPE = "spawn_agent"
AGENT_RETURN_TYPE = "agent_return"


class SpawnAgentMessage(BaseModel):
    """Wire shape of a spawn request."""

    model_config = ConfigDict(strict=True, frozen=True, populate_by_name=True, extra="forbid")

    type: Literal["spawn_agent"] = SPAWN_AGENT_TYPE
    task: str
    instructions: str
    max_turns: int = Field(..., alias="maxTurns", gt=0)
    timeout_ms: int = Field(..., alias="timeoutMs", gt=0)

    def to_request(self) -> AgentTaskRequest:
        return AgentTaskRequest(
            task=self.task,
            instructions=self.instructions,
            max_turns=self.max_turns,
            timeout_ms=self.timeout_ms,
        )


class AgentReturnMessage(BaseModel):
    """Wire shape of a return signal."""

    model_config = ConfigDict(strict=True, frozen=True, extra="forbid")

    type: Literal["agent_return"] = AGENT_RETURN_TYPE
    success: bool
    description: str
    result: str

    def to_signal(self) -> AgentReturnSignal:
        return AgentReturnSignal(
            success=self.success,
            description=self.description,
            result=self.result,
        )


class UnrecognizedMessage(BaseModel):
    """Anything that is not a control message."""

    model_config = ConfigDict(frozen=True)

    reason: str


ControlMessage = Annotated[
    Union[SpawnAgentMessage, AgentReturnMessage],
    Field(discriminator="type"),
]

_control_message_adapter: TypeAdapter[SpawnAgentMessage | AgentReturnMessage] = TypeAdapter(
    ControlMessage
)


def decode_control_message(
    payload: Any,
) -> SpawnAgentMessage | AgentReturnMessage | UnrecognizedMessage:
    """Parse a payload into one of the control message arms. Never raises."""
    if not isinstance(payload, str):
        return UnrecognizedMessage(reason=f"payload is {type(payload).__name__}, not str")
    try:
        return _control_message_adapter.validate_json(payload, strict=True)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.error_count() else {}
        return UnrecognizedMessage(reason=str(first.get("type", "invalid")))


def encode_spawn_request(request: AgentTaskRequest) -> str:
    message = SpawnAgentMessage(
        task=request.task,
        instructions=request.instructions,
        max_turns=request.max_turns,
        timeout_ms=request.timeout_ms,
    )
    return message.model_dump_json(by_alias=True)


def decode_spawn_request(payload: Any) -> AgentTaskRequest | None:
    message = decode_control_message(payload)
    if isinstance(message, SpawnAgentMessage):
        return message.to_request()
    return None


def encode_return_signal(signal: AgentReturnSignal) -> str:
    message = AgentReturnMessage(
        success=signal.success,
        description=signal.description,
        result=signal.result,
    )
    return message.model_dump_json()


def decode_return_signal(payload: Any) -> AgentReturnSignal | None:
    message = decode_control_message(payload)
    if isinstance(message, AgentReturnMessage):
        return message.to_signal()
    return None
