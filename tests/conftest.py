"""
Shared fixtures: scripted chat-model fakes and simple tools.

``ScriptedLLM`` returns queued responses in order (exceptions are raised);
``RoutingLLM`` picks a queue by a marker found in the system prompt, which is
how Triune tests tell The Mind, The Prophet, The Will and the guard apart.
"""

import asyncio
import json
from typing import Any, Optional

import pytest

from jubilee.core.tools.base import Tool


def text_response(content: str) -> dict[str, Any]:
    return {"success": True, "content": content, "tool_calls": None}


def tool_call_response(*calls: tuple[str, Any], content: Optional[str] = None) -> dict[str, Any]:
    """Build a response requesting tool calls; args may be a dict or a raw JSON string."""
    tool_calls = []
    for index, (name, args) in enumerate(calls):
        arguments = args if isinstance(args, str) else json.dumps(args)
        tool_calls.append({
            "id": f"call_{index}",
            "type": "function",
            "function": {"name": name, "arguments": arguments},
        })
    return {"success": True, "content": content, "tool_calls": tool_calls}


def failure_response(error: str, error_type: str = "APIError") -> dict[str, Any]:
    return {"success": False, "error": error, "error_type": error_type}


class ScriptedLLM:
    """LLM provider fake returning queued responses."""

    def __init__(self, responses: Optional[list[Any]] = None, default: Optional[dict[str, Any]] = None):
        self.responses = list(responses or [])
        self.default = default or text_response("Default answer.")
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: Optional[str] = None,
        tools: Optional[list[dict[str, Any]]] = None,
        tool_choice: Optional[Any] = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        self.calls.append({"messages": messages, "model": model, "tools": tools, "kwargs": kwargs})
        item = self.responses.pop(0) if self.responses else self.default
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return await item(messages)
        return item


class RoutingLLM:
    """LLM provider fake choosing a ScriptedLLM by system prompt marker."""

    def __init__(self, routes: dict[str, ScriptedLLM]):
        self.routes = routes
        self.calls: list[tuple[str, list[dict[str, Any]]]] = []

    async def complete(self, messages: list[dict[str, Any]], model: Optional[str] = None, **kwargs: Any):
        system = messages[0]["content"] if messages else ""
        for marker, llm in self.routes.items():
            if marker in system:
                self.calls.append((marker, messages))
                return await llm.complete(messages, model=model, **kwargs)
        raise AssertionError(f"No route for system prompt: {system[:80]}")

    def calls_for(self, marker: str) -> int:
        return sum(1 for m, _ in self.calls if m == marker)


class EchoTool(Tool):
    """Returns its input text; records calls."""

    def __init__(self, name: str = "echo", delay: float = 0):
        self._name = name
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"Echo tool {self._name}"

    async def execute(self, text: str = "", **kwargs) -> dict[str, Any]:
        self.calls.append({"text": text, **kwargs})
        if self.delay:
            await asyncio.sleep(self.delay)
        return {"success": True, "output": f"{self._name}:{text}"}


class FailingTool(Tool):
    def __init__(self, name: str = "broken"):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "Always raises"

    async def execute(self, **kwargs) -> dict[str, Any]:
        raise RuntimeError("tool exploded")


async def collect(stream) -> list[Any]:
    return [event async for event in stream]


@pytest.fixture
def echo_tool():
    return EchoTool()


@pytest.fixture
def scripted_llm():
    return ScriptedLLM()
