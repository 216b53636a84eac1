"""Run command - Execute missions and single task agents."""

import asyncio
import json
from dataclasses import asdict
from typing import Any

import typer

from agentfork.api.cli.output_formatter import AgentforkConsole, ConsoleStatusObserver
from agentfork.application.factory import AgentFactory
from agentfork.core.domain.errors import AgentforkError
from agentfork.core.domain.models import AgentTaskRequest, ExecutionResult
from agentfork.core.domain.spawn import format_result
from agentfork.infrastructure.logging_setup import configure_logging

app = typer.Typer(help="Execute missions and task agents")


def _serialize_result_to_json(result: ExecutionResult) -> str:
    result_dict = asdict(result)
    result_dict["status"] = result.status_value
    return json.dumps(result_dict, indent=None, ensure_ascii=False)


def _resolve_options(ctx: typer.Context, profile: str | None, debug: bool | None) -> tuple[str, bool]:
    global_opts: dict[str, Any] = ctx.obj or {}
    profile = profile or global_opts.get("profile", "dev")
    debug = debug if debug is not None else global_opts.get("debug", False)
    return profile, debug


def _load_factory(profile: str, debug: bool, console: AgentforkConsole | None) -> AgentFactory:
    try:
        factory = AgentFactory.from_profile(profile)
    except AgentforkError as exc:
        if console is not None:
            console.print_error(f"Invalid profile '{profile}': {exc.message}", exc)
        raise typer.Exit(2) from exc
    configure_logging(factory.settings.logging.level, debug=debug)
    return factory


@app.command("mission")
def run_mission(
    ctx: typer.Context,
    mission: str = typer.Argument(..., help="Mission description"),
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Configuration profile (overrides global --profile)"
    ),
    debug: bool | None = typer.Option(
        None, "--debug", help="Enable debug output (overrides global --debug)"
    ),
    output_format: str = typer.Option(
        "text",
        "--output-format",
        "-f",
        help="Output format: 'text' (default, human-readable) or 'json' (machine-parseable)",
    ),
):
    """Execute a mission with the orchestrator and its task agents.

    Examples:
        agentfork run mission "Create hello.txt containing a greeting"

        agentfork --profile quick run mission "Summarize README.md" -f json
    """
    if output_format not in ("text", "json"):
        raise typer.BadParameter(
            f"Invalid output format: {output_format}. Must be 'text' or 'json'"
        )
    profile, debug = _resolve_options(ctx, profile, debug)

    af_console = AgentforkConsole(debug=debug)
    text_mode = output_format == "text"
    factory = _load_factory(profile, debug, af_console)

    observer = ConsoleStatusObserver(af_console) if text_mode else None
    if text_mode:
        af_console.print_banner()
        af_console.console.print(f"[system]Mission:[/system] {mission}")
        af_console.console.print(f"[system]Profile:[/system] {profile}")
        af_console.console.print()

    orchestrator = factory.create_orchestrator(status_observer=observer)
    result = asyncio.run(orchestrator.execute(mission))

    if not text_mode:
        print(_serialize_result_to_json(result))
    elif result.status_value == "completed":
        af_console.print_agent_message(result.final_message)
        af_console.console.print(
            f"[debug]steps={result.steps} task_agents={result.spawned_agents}[/debug]"
        )
    else:
        af_console.print_error(result.final_message)

    if result.status_value != "completed":
        raise typer.Exit(1)


@app.command("task")
def run_task(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Short task label"),
    prompt: str = typer.Option(..., "--prompt", help="Detailed instructions for the task agent"),
    max_turns: int | None = typer.Option(None, "--max-turns", help="Turn budget of the task agent"),
    timeout_ms: int | None = typer.Option(
        None, "--timeout-ms", help="Wall-clock budget of the task agent in milliseconds"
    ),
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Configuration profile (overrides global --profile)"
    ),
    debug: bool | None = typer.Option(
        None, "--debug", help="Enable debug output (overrides global --debug)"
    ),
):
    """Run a single task agent directly, without an orchestrator.

    Example:
        agentfork run task "count lines" --prompt "Count the lines of README.md" --max-turns 5
    """
    profile, debug = _resolve_options(ctx, profile, debug)
    af_console = AgentforkConsole(debug=debug)
    factory = _load_factory(profile, debug, af_console)
    settings = factory.settings.task_agent

    try:
        request = AgentTaskRequest(
            task=task,
            instructions=prompt,
            max_turns=max_turns or settings.default_max_turns,
            timeout_ms=timeout_ms or settings.default_timeout_ms,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    host = factory.create_host()
    signal = asyncio.run(
        host.handle_spawn(request, [], ConsoleStatusObserver(af_console))
    )
    af_console.print_agent_message(format_result(task, signal), title="[Task Agent]")
    if not signal.success:
        raise typer.Exit(1)
