"""Agentfork CLI entry point."""

import typer
from rich.console import Console

from agentfork.api.cli.commands import run

app = typer.Typer(
    name="agentfork",
    help="Agentfork - orchestrator and task agent runner",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.add_typer(run.app, name="run", help="Execute missions and task agents")


@app.callback()
def main(
    ctx: typer.Context,
    profile: str = typer.Option("dev", "--profile", "-p", help="Configuration profile"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output (shows agent thinking)"),
):
    """Agentfork Agent CLI."""
    ctx.obj = {"profile": profile, "debug": debug}


@app.command()
def version():
    """Show Agentfork version."""
    from agentfork import __version__

    console.print(f"[bold blue]Agentfork version:[/bold blue] [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
