"""Application Layer - Agent Factory.

Builds the orchestrator, the agent host and their capability registries
from validated profile settings.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from agentfork.application.agent_host import AgentHost
from agentfork.application.orchestrator import OrchestratorAgent
from agentfork.application.profile_loader import ProfileLoader
from agentfork.core.capabilities.task_agent import TaskAgentCapability
from agentfork.core.domain.capability_registry import CapabilityRegistry
from agentfork.core.domain.config_schema import AgentforkSettings
from agentfork.core.interfaces.capabilities import CapabilityProtocol
from agentfork.core.interfaces.llm import LLMProviderProtocol
from agentfork.core.interfaces.status import StatusObserverProtocol
from agentfork.infrastructure.capabilities.file_capabilities import build_file_capabilities
from agentfork.infrastructure.capabilities.output_summarizer import OutputSummarizer
from agentfork.infrastructure.capabilities.shell_capability import ShellCapability
from agentfork.infrastructure.capabilities.task_tracker import TaskTrackerCapability
from agentfork.infrastructure.llm.conversation import LLMConversationFactory

# Capabilities the orchestrator must not use directly; it delegates them.
PRIMARY_EXCLUDED_CAPABILITIES = frozenset({"write_file", "edit_file", "shell"})


def session_capabilities() -> list[CapabilityProtocol]:
    """Capabilities with per-session state, built fresh for every agent."""
    return [TaskTrackerCapability()]


class AgentFactory:
    """
    Dependency injection factory for the orchestrator and task agents.

    Args:
        settings: Validated profile settings.
        llm: LLM provider; a ``LiteLLMService`` is built from
            ``settings.llm.config_path`` when omitted.
    """

    def __init__(
        self,
        settings: AgentforkSettings | None = None,
        *,
        llm: LLMProviderProtocol | None = None,
    ) -> None:
        self.settings = settings or AgentforkSettings()
        self._llm = llm
        self._logger = structlog.get_logger().bind(component="AgentFactory")

    @classmethod
    def from_profile(
        cls,
        profile: str = "dev",
        *,
        config_dir: Path | None = None,
        llm: LLMProviderProtocol | None = None,
    ) -> "AgentFactory":
        """Create a factory from a YAML profile (defaults when it does not exist)."""
        settings = ProfileLoader(config_dir).load_safe(profile)
        return cls(settings, llm=llm)

    @property
    def llm(self) -> LLMProviderProtocol:
        if self._llm is None:
            from agentfork.infrastructure.llm.litellm_service import LiteLLMService

            self._llm = LiteLLMService(config_path=self.settings.llm.config_path)
        return self._llm

    def create_conversation_factory(self) -> LLMConversationFactory:
        return LLMConversationFactory(self.llm, model=self.settings.llm.model)

    def create_summarizer(self) -> OutputSummarizer:
        return OutputSummarizer(
            self.llm,
            model=self.settings.llm.model,
            max_characters=self.settings.capabilities.summarize_threshold_chars,
        )

    def create_file_capabilities(self, *, read_only: bool = False) -> list[CapabilityProtocol]:
        """File capabilities for one agent, with their own file memory."""
        return build_file_capabilities(
            self.settings.capabilities.work_dir,
            summarizer=self.create_summarizer(),
            read_only=read_only,
        )

    def task_session_capabilities(self) -> list[CapabilityProtocol]:
        """Per-session capabilities of a task agent: tracker and file capabilities."""
        return [*session_capabilities(), *self.create_file_capabilities()]

    def create_catalog(self) -> CapabilityRegistry:
        """Registry with every shared capability: what task agents may use."""
        cap_settings = self.settings.capabilities
        task_settings = self.settings.task_agent
        registry = CapabilityRegistry()
        registry.register(
            TaskAgentCapability(
                default_max_turns=task_settings.default_max_turns,
                default_timeout_ms=task_settings.default_timeout_ms,
            )
        )
        for capability in self.create_file_capabilities():
            registry.register(capability)
        registry.register(
            ShellCapability(
                cap_settings.work_dir,
                default_timeout=cap_settings.shell_timeout_seconds,
                summarizer=self.create_summarizer(),
            )
        )
        return registry

    def create_host(self, catalog: CapabilityRegistry | None = None) -> AgentHost:
        return AgentHost(
            conversation_factory=self.create_conversation_factory(),
            base_registry=catalog or self.create_catalog(),
            settings=self.settings.task_agent,
            session_capabilities=self.task_session_capabilities,
        )

    def create_orchestrator(
        self,
        status_observer: StatusObserverProtocol | None = None,
    ) -> OrchestratorAgent:
        """Orchestrator with the read-only view of the catalog plus its own task tracker."""
        catalog = self.create_catalog()
        registry = catalog.derive(
            exclude=PRIMARY_EXCLUDED_CAPABILITIES,
            add=[*session_capabilities(), *self.create_file_capabilities(read_only=True)],
        )
        self._logger.debug(
            "orchestrator_created",
            capabilities=registry.names(),
            max_steps=self.settings.orchestrator.max_steps,
        )
        return OrchestratorAgent(
            conversation_factory=self.create_conversation_factory(),
            registry=registry,
            host=self.create_host(catalog),
            max_steps=self.settings.orchestrator.max_steps,
            max_parallel=self.settings.task_agent.max_parallel_calls,
            status_observer=status_observer,
        )
