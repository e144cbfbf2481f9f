"""
LLM Provider Protocol

Interface the agent loop and the safety guard use to talk to a chat model.
Implementations never raise for provider errors; they report them in the
result dict so callers decide what is fatal.
"""

from typing import Any, Optional, Protocol


class LLMProviderProtocol(Protocol):
    """
    Chat-completion provider with native tool calling.

    ``complete()`` returns a dict with:
        - success: bool
        - content: str | None (assistant text)
        - tool_calls: list of OpenAI-format tool calls, or None
        - error / error_type: set when success is False
    """

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: Optional[str] = None,
        tools: Optional[list[dict[str, Any]]] = None,
        tool_choice: Optional[str] = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        ...
