"""Jubilee CLI entry point."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from jubilee.api.cli.commands import ask, chat, config, dispatch, roles
from jubilee.api.cli.runtime import configure_logging
from jubilee.application.settings import JubileeSettings
from jubilee.core.domain.errors import ConfigurationError

app = typer.Typer(
    name="jubilee",
    help="Jubilee - Triune agent runtime with angel dispatch",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.command("ask")(ask.ask)
app.command("chat")(chat.chat)
app.command("dispatch")(dispatch.dispatch)
app.command("roles")(roles.list_roles)
app.add_typer(config.app, name="config", help="Configuration management")


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Settings file (default: ~/.jubilee/config.yaml)"
    ),
):
    """Jubilee Agent CLI."""
    try:
        settings = JubileeSettings.load_from_file(config_path)
    except (ConfigurationError, ValueError) as e:
        console.print(f"[red]Error: invalid settings: {e}[/red]")
        raise typer.Exit(1)

    configure_logging(debug, settings.log_level)
    ctx.obj = {"debug": debug, "config_path": config_path, "settings": settings}


@app.command()
def version():
    """Show Jubilee version."""
    from jubilee import __version__

    console.print(f"[bold blue]Jubilee[/bold blue] version [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
