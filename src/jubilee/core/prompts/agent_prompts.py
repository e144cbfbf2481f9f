"""
Agent Loop Prompts

User-side prompts for the reasoning/acting loop. Each model call is built from
the original query plus every tool result gathered so far; the conversation
history sits between the system prompt and this prompt.

Usage:
    from jubilee.core.prompts.agent_prompts import build_iteration_prompt

    prompt = build_iteration_prompt(query, state.context_text, status)
"""

from datetime import date
from typing import Optional

DEFAULT_SYSTEM_PROMPT = """You are Jubilee, a helpful assistant with access to research tools.

Current date: {current_date}

Your output is displayed on a command line interface. Keep responses short and concise.

## Behavior

- Prioritize accuracy over validation
- Use a professional, objective tone
- Be thorough but efficient
- If data is incomplete, answer with what you have without exposing implementation details
"""

CONTINUE_INSTRUCTION = (
    "Continue working toward answering the query. If you have gathered actual "
    "content (not just links or titles), you may respond. Never guess at URLs; "
    "use only URLs that appeared in tool results."
)

FINAL_ANSWER_INSTRUCTION = (
    "Answer the user's query using this data. Do not call any more tools. Do not "
    "ask the user to provide additional data or reference JSON/API internals. "
    "If data is incomplete, answer with what you have."
)

EMPTY_RESPONSE_NUDGE = "[System: Your previous response was empty. Provide an answer or use a tool.]"


def current_date() -> str:
    """Current date formatted for prompts, e.g. 'Saturday, October 17, 2026'."""
    today = date.today()
    return f"{today.strftime('%A, %B')} {today.day}, {today.year}"


def build_default_system_prompt() -> str:
    return DEFAULT_SYSTEM_PROMPT.format(current_date=current_date())


def build_tool_usage_status(iteration: int, max_iterations: int, tool_calls: int) -> Optional[str]:
    """
    Status line for graceful exit. Returns None until the budget runs low.
    """
    remaining = max_iterations - iteration
    if remaining > 2:
        return None
    if remaining <= 0:
        return (
            f"## Tool Usage Status\n\nYou have used all {max_iterations} iterations "
            f"({tool_calls} tool calls). Respond now with your final answer."
        )
    return (
        f"## Tool Usage Status\n\n{tool_calls} tool calls made; {remaining} of "
        f"{max_iterations} iterations remaining. Wrap up and prepare your final answer."
    )


def build_iteration_prompt(
    query: str,
    tool_results: str,
    tool_usage_status: Optional[str] = None,
    nudge: Optional[str] = None,
) -> str:
    prompt = f"Query: {query}"

    if tool_results.strip():
        prompt += f"\n\nData retrieved from tool calls:\n{tool_results}"

    if tool_usage_status:
        prompt += f"\n\n{tool_usage_status}"

    if nudge:
        prompt += f"\n\n{nudge}"

    return f"{prompt}\n\n{CONTINUE_INSTRUCTION}"


def build_final_answer_prompt(query: str, tool_results: str) -> str:
    """Prompt for the forced final-answer pass after the budget is spent."""
    data = tool_results.strip() or "(no data was retrieved)"
    return f"Query: {query}\n\nData retrieved from your tool calls:\n{data}\n\n{FINAL_ANSWER_INSTRUCTION}"
