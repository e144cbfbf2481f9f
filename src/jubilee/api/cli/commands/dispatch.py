"""Dispatch command - run one angel mission directly."""

import asyncio
from typing import List, Optional

import typer

from jubilee.api.cli.output_formatter import JubileeConsole
from jubilee.api.cli.runtime import create_service, get_settings, is_debug
from jubilee.core.domain.models import Mission


def dispatch(
    ctx: typer.Context,
    mission: str = typer.Argument(..., help="Mission for the angel"),
    role: Optional[str] = typer.Option(None, "--role", "-r", help="Role template, e.g. ResearchAngel"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Angel name"),
    capabilities: Optional[List[str]] = typer.Option(
        None, "--capability", help="Tool the angel may use (repeatable)"
    ),
    skill: Optional[str] = typer.Option(None, "--skill", help="Skill to focus on"),
    iterations: Optional[int] = typer.Option(None, "--iterations", "-i", min=1, help="Iteration budget"),
    task_id: Optional[int] = typer.Option(None, "--task-id", "-t", help="Resumable task id"),
):
    """Dispatch an angel for a single mission.

    Examples:
        jubilee dispatch "Audit the vesting contract" --role ContractAngel

        jubilee dispatch "Find grant programs" --capability web_search --task-id 7
    """
    tf_console = JubileeConsole(debug=is_debug(ctx))
    service = create_service(get_settings(ctx))

    report = asyncio.run(
        service.dispatch(
            Mission(
                mission=mission,
                name=name,
                role=role,
                capabilities=capabilities or None,
                skill_focus=skill,
                iterations=iterations,
                task_id=task_id,
            )
        )
    )

    if report.startswith("👼"):
        tf_console.print_agent_message(report, title="Angel")
    else:
        tf_console.print_error(report)
        raise typer.Exit(1)
