"""
Config command group for managing settings.
"""

import typing

import typer
from rich.console import Console
from rich.table import Table

from jubilee.api.cli.runtime import get_config_path, get_settings
from jubilee.core.domain.errors import ConfigurationError
from jubilee.core.domain.models import FeatureMode

console = Console()
app = typer.Typer(help="Manage configuration")

SENSITIVE_KEYS = ("api_key", "password", "secret", "token")
TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


def _convert_value(annotation: typing.Any, value: str) -> typing.Any:
    """Turn a command-line string into the field's shape."""
    if typing.get_origin(annotation) in (list, typing.List):
        return [item.strip() for item in value.split(",") if item.strip()]
    if value.lower() in ("none", "null") and type(None) in typing.get_args(annotation):
        return None
    return value


@app.command("show")
def show_config(
    ctx: typer.Context,
    show_sensitive: bool = typer.Option(False, "--show-sensitive", help="Show sensitive values"),
):
    """
    Show current configuration.

    Examples:
        jubilee config show
    """
    settings = get_settings(ctx)
    config_data = settings.model_dump()

    table = Table(title="Jubilee Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_column("Description", style="dim")

    for field_name, field_info in type(settings).model_fields.items():
        value = config_data.get(field_name, "")
        if isinstance(value, list):
            value = ", ".join(str(item) for item in value)
        if value and not show_sensitive and any(s in field_name.lower() for s in SENSITIVE_KEYS):
            value = "*" * min(len(str(value)), 8)
        table.add_row(field_name, str(value), field_info.description or "")

    console.print(table)


@app.command("set")
def set_config(
    ctx: typer.Context,
    key: str = typer.Argument(help="Configuration key"),
    value: str = typer.Argument(help="Configuration value (comma-separated for lists)"),
):
    """
    Set a configuration value.

    Examples:
        jubilee config set max_iterations 12
        jubilee config set mind_tools web_search,browser
    """
    settings = get_settings(ctx)
    field_info = type(settings).model_fields.get(key)
    if field_info is None:
        console.print(f"[red]Error: Unknown configuration key '{key}'[/red]")
        console.print("Available keys:")
        for field_name in type(settings).model_fields:
            console.print(f"  - {field_name}")
        raise typer.Exit(1)

    try:
        settings.update_setting(key, _convert_value(field_info.annotation, value), get_config_path(ctx))
    except ConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Set {key} = {getattr(settings, key)}[/green]")


@app.command("mode")
def set_mode(
    ctx: typer.Context,
    mode: str = typer.Argument(help="Feature mode: stewardship or builder"),
    state: str = typer.Argument(help="on or off"),
):
    """
    Enable or disable a feature mode.

    Examples:
        jubilee config mode builder on
    """
    try:
        feature = FeatureMode(mode.lower())
    except ValueError:
        console.print(f"[red]Error: Unknown mode '{mode}'. Use stewardship or builder.[/red]")
        raise typer.Exit(1)

    lowered = state.lower()
    if lowered not in TRUE_VALUES + FALSE_VALUES:
        console.print(f"[red]Error: State must be on or off, got '{state}'[/red]")
        raise typer.Exit(1)

    settings = get_settings(ctx)
    try:
        settings.set_mode(feature, lowered in TRUE_VALUES, get_config_path(ctx))
    except ConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    label = "enabled" if lowered in TRUE_VALUES else "disabled"
    console.print(f"[green]✓ {feature.value} mode {label}[/green]")
