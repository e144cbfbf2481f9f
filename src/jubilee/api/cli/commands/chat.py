"""Chat command - Interactive chat mode with Jubilee."""

import asyncio

import typer

from jubilee.api.cli.output_formatter import JubileeConsole
from jubilee.api.cli.runtime import create_service, get_settings, is_debug
from jubilee.core.domain.cancellation import CancellationToken

EXIT_COMMANDS = ("exit", "quit", "bye")


def chat(ctx: typer.Context):
    """Start an interactive chat session.

    The conversation history is kept for the whole session. Type '/reset'
    to forget it, 'exit' to leave.
    """
    tf_console = JubileeConsole(debug=is_debug(ctx))
    service = create_service(get_settings(ctx))

    tf_console.print_banner()
    tf_console.print_system_message("Type 'exit', 'quit', or press Ctrl+C to end session", "info")
    tf_console.print_divider()

    async def answer(query: str, token: CancellationToken) -> None:
        async for event in service.chat_stream(query, cancel_token=token):
            tf_console.print_event(event)

    while True:
        try:
            user_input = tf_console.console.input("[bold blue]You ›[/bold blue] ")
        except (KeyboardInterrupt, EOFError):
            tf_console.print_divider()
            tf_console.print_system_message("Goodbye! 👋", "info")
            break

        if user_input.strip().lower() in EXIT_COMMANDS:
            tf_console.print_system_message("Goodbye! 👋", "info")
            break
        if not user_input.strip():
            continue
        if user_input.strip() == "/reset":
            service.reset()
            tf_console.print_system_message("Conversation cleared", "success")
            continue

        token = CancellationToken()
        try:
            asyncio.run(answer(user_input, token))
        except KeyboardInterrupt:
            token.cancel("interrupted by user")
            tf_console.print_warning("Interrupted")
        tf_console.print_divider()
