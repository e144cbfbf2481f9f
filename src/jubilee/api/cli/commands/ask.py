"""Ask command - answer one query through the Triune."""

import asyncio

import typer

from jubilee.api.cli.output_formatter import JubileeConsole
from jubilee.api.cli.runtime import create_service, get_settings, is_debug
from jubilee.core.domain.cancellation import CancellationToken
from jubilee.core.domain.events import EventType


def ask(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Question or task for Jubilee"),
):
    """Answer one query with The Mind, The Prophet and The Will.

    Examples:
        jubilee ask "Summarize this week's governance proposals"

        jubilee --debug ask "Research stablecoin custody options"
    """
    tf_console = JubileeConsole(debug=is_debug(ctx))
    service = create_service(get_settings(ctx))
    token = CancellationToken()

    async def run() -> bool:
        ok = False
        async for event in service.chat_stream(query, cancel_token=token):
            tf_console.print_event(event)
            ok = event.type is EventType.DONE
        return ok

    try:
        ok = asyncio.run(run())
    except KeyboardInterrupt:
        token.cancel("interrupted by user")
        tf_console.print_warning("Interrupted")
        raise typer.Exit(130)

    if not ok:
        raise typer.Exit(1)
