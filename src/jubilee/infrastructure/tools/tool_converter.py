"""
Tool Converter - OpenAI function calling format conversion.

Converts tool definitions to the format required by native function calling,
parses tool calls returned by the model, and formats tool results as the text
blocks the agent loop accumulates into its context.
"""

import json
from typing import Any, Iterable

from jubilee.core.interfaces.tools import ToolProtocol

TRUNCATION_NOTICE = "\n\n[... TRUNCATED - {overflow} more chars ...]"


def tools_to_openai_format(tools: Iterable[ToolProtocol]) -> list[dict[str, Any]]:
    """
    Convert tools to OpenAI function calling format.

    Returns:
        List of tool definitions:
        [
            {
                "type": "function",
                "function": {
                    "name": "tool_name",
                    "description": "Tool description",
                    "parameters": { JSON Schema }
                }
            },
            ...
        ]
    """
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters_schema,
            },
        }
        for tool in tools
    ]


def parse_tool_call(tool_call: dict[str, Any]) -> tuple[str, str, dict[str, Any]]:
    """
    Extract (id, name, arguments) from an OpenAI-format tool call.

    Raises:
        ValueError: Arguments are not a JSON object
    """
    function = tool_call.get("function") or {}
    name = function.get("name") or ""
    call_id = tool_call.get("id") or ""
    raw_args = function.get("arguments")

    if raw_args in (None, ""):
        return call_id, name, {}
    if isinstance(raw_args, dict):
        return call_id, name, raw_args

    try:
        args = json.loads(raw_args)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON arguments for {name}: {e.msg}") from e

    if not isinstance(args, dict):
        raise ValueError(f"Arguments for {name} must be a JSON object")
    return call_id, name, args


def truncate_output(output: str, max_chars: int = 20000) -> str:
    """Truncate large outputs to prevent token overflow."""
    if len(output) <= max_chars:
        return output
    overflow = len(output) - max_chars
    return output[:max_chars] + TRUNCATION_NOTICE.format(overflow=overflow)


def format_tool_result_block(
    tool_name: str,
    args: dict[str, Any],
    output: str,
    max_output_chars: int = 20000,
) -> str:
    """
    Format one tool result for the accumulated context.

    Example:
        >>> format_tool_result_block("web_search", {"query": "x"}, "result")
        '### web_search({"query": "x"})\\nresult'
    """
    args_text = json.dumps(args, ensure_ascii=False, default=str)
    return f"### {tool_name}({args_text})\n{truncate_output(output, max_output_chars)}"
