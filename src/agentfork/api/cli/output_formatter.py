"""Rich output formatting for the Agentfork CLI.

Status events of the orchestrator and its task agents are printed as one
line each, indented by nesting depth of the emitting session.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text
from rich.theme import Theme

from agentfork.core.domain.enums import StatusKind
from agentfork.core.domain.models import StatusEvent

AGENTFORK_THEME = Theme(
    {
        "agent": "bold cyan",
        "system": "bold blue",
        "error": "bold red",
        "success": "bold green",
        "thought": "italic magenta",
        "action": "bold yellow",
        "observation": "cyan",
        "debug": "dim white",
    }
)

_KIND_STYLES = {
    StatusKind.START: ("system", ">"),
    StatusKind.THINKING: ("thought", "~"),
    StatusKind.CAPABILITY_CALL: ("action", "*"),
    StatusKind.CAPABILITY_RESULT: ("observation", "="),
    StatusKind.COMPLETION: ("success", "<"),
    StatusKind.ERROR: ("error", "!"),
}


def session_depth(session_id: str) -> int:
    """Nesting depth of a session id (``primary-x:task-y`` is depth 1)."""
    return session_id.count(":") if session_id else 0


class AgentforkConsole:
    """Console with Agentfork formatting."""

    def __init__(self, debug: bool = False, console: Optional[Console] = None):
        self.console = console or Console(theme=AGENTFORK_THEME)
        self.debug_mode = debug

    def print_banner(self) -> None:
        banner = Text()
        banner.append("=" * 60 + "\n", style="bold blue")
        banner.append("        ", style="bold blue")
        banner.append("AGENTFORK", style="bold cyan")
        banner.append(" - Task Agent Orchestration\n", style="bold blue")
        banner.append("=" * 60, style="bold blue")
        self.console.print(banner)
        self.console.print()

    def print_status(self, event: StatusEvent) -> None:
        """Print one status event; thinking previews only in debug mode."""
        if event.kind == StatusKind.THINKING and not self.debug_mode:
            return
        style, marker = _KIND_STYLES.get(event.kind, ("system", "-"))
        indent = "  " * session_depth(event.session_id)
        self.console.print(f"{indent}[{style}]{marker} {escape(event.message)}[/{style}]")

    def print_agent_message(self, message: str, title: str = "[Agent]") -> None:
        self.console.print(
            Panel(message, title=title, title_align="left", border_style="cyan", padding=(0, 1))
        )
        self.console.print()

    def print_error(self, message: str, exception: Optional[Exception] = None) -> None:
        self.console.print(
            Panel(
                f"[X] {escape(message)}",
                title="[Error]",
                title_align="left",
                border_style="red",
                padding=(0, 1),
            )
        )
        if exception is not None and self.debug_mode:
            self.console.print(f"[debug]{type(exception).__name__}: {escape(str(exception))}[/debug]")


class ConsoleStatusObserver:
    """Status observer printing events through an ``AgentforkConsole``."""

    def __init__(self, console: AgentforkConsole) -> None:
        self._console = console
        self.events: list[StatusEvent] = []

    def observe(self, event: StatusEvent) -> None:
        self.events.append(event)
        self._console.print_status(event)
