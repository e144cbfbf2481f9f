"""
Console output for the Jubilee CLI.
"""

import json
from typing import Iterable, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from jubilee.core.domain.events import (
    AbortedEvent,
    AgentEvent,
    DoneEvent,
    ErrorEvent,
    ThinkingEvent,
    ToolEndEvent,
    ToolErrorEvent,
    ToolStartEvent,
)
from jubilee.core.domain.models import RoleTemplate

RESULT_PREVIEW_CHARS = 300


class JubileeConsole:
    """Rich rendering of agent events and CLI messages."""

    def __init__(self, debug: bool = False, console: Optional[Console] = None):
        self.debug = debug
        self.console = console or Console()

    def print_banner(self) -> None:
        self.console.print("[bold blue]✝ Jubilee[/bold blue] [dim]Mind · Prophet · Will[/dim]")

    def print_divider(self) -> None:
        self.console.rule(style="dim")

    def print_system_message(self, message: str, style: str = "info") -> None:
        colors = {"info": "cyan", "success": "green", "system": "magenta"}
        self.console.print(f"[{colors.get(style, 'white')}]{message}[/]")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠ {message}[/yellow]")

    def print_error(self, message: str) -> None:
        self.console.print(f"[bold red]✗ {message}[/bold red]")

    def print_debug(self, message: str) -> None:
        if self.debug:
            self.console.print(f"[dim]{message}[/dim]")

    def print_user_message(self, message: str) -> None:
        self.console.print(Panel(message, title="You", border_style="blue"))

    def print_agent_message(self, message: str, title: str = "Jubilee") -> None:
        self.console.print(Panel(Markdown(message), title=title, border_style="green"))

    def print_event(self, event: AgentEvent) -> None:
        if isinstance(event, ThinkingEvent):
            self.console.print(f"[dim]… {event.message}[/dim]")
        elif isinstance(event, ToolStartEvent):
            args = json.dumps(event.input, ensure_ascii=False)
            self.console.print(f"[yellow]→ {event.tool}[/yellow] [dim]{args}[/dim]")
        elif isinstance(event, ToolEndEvent):
            preview = event.result if self.debug else event.result[:RESULT_PREVIEW_CHARS]
            self.console.print(f"[green]✓ {event.tool}[/green] [dim]{preview}[/dim]")
        elif isinstance(event, ToolErrorEvent):
            self.console.print(f"[red]✗ {event.tool}: {event.error}[/red]")
        elif isinstance(event, DoneEvent):
            self.print_agent_message(event.answer)
            self.print_debug(
                f"iterations={event.iterations} time={event.total_time_ms}ms forced={event.forced}"
            )
        elif isinstance(event, ErrorEvent):
            self.print_error(event.message)
        elif isinstance(event, AbortedEvent):
            self.print_warning(f"Aborted: {event.reason}")

    def print_roles(self, roles: Iterable[RoleTemplate], enabled: dict[str, bool]) -> None:
        table = Table(title="Angel Roles")
        table.add_column("Role", style="cyan", no_wrap=True)
        table.add_column("Domain", style="white")
        table.add_column("Mode", style="magenta")
        table.add_column("Capabilities", style="yellow")
        table.add_column("Iterations", justify="right")
        for role in roles:
            mode = role.required_mode.value
            if not enabled.get(role.key, True):
                mode = f"{mode} [red](off)[/red]"
            table.add_row(
                f"{role.emoji} {role.key}",
                role.domain,
                mode,
                ", ".join(role.default_capabilities),
                str(role.default_iterations),
            )
        self.console.print(table)
