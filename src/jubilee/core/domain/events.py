"""
Agent Events

Events are immutable facts emitted while an agent runs. A consumer reads them
progressively from ``Agent.run()``:

- thinking: the agent is reasoning (or about to call tools)
- tool_start / tool_end / tool_error: one tool invocation
- done / error / aborted: terminal events, exactly one per run, always last
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Union


class EventType(str, Enum):
    """Tag of an agent event."""

    THINKING = "thinking"
    TOOL_START = "tool_start"
    TOOL_END = "tool_end"
    TOOL_ERROR = "tool_error"
    DONE = "done"
    ERROR = "error"
    ABORTED = "aborted"


TERMINAL_EVENT_TYPES = frozenset({EventType.DONE, EventType.ERROR, EventType.ABORTED})


@dataclass(frozen=True)
class ThinkingEvent:
    message: str
    type: EventType = field(default=EventType.THINKING, init=False)


@dataclass(frozen=True)
class ToolStartEvent:
    tool: str
    input: dict[str, Any]
    type: EventType = field(default=EventType.TOOL_START, init=False)


@dataclass(frozen=True)
class ToolEndEvent:
    tool: str
    result: str
    type: EventType = field(default=EventType.TOOL_END, init=False)


@dataclass(frozen=True)
class ToolErrorEvent:
    tool: str
    error: str
    type: EventType = field(default=EventType.TOOL_ERROR, init=False)


@dataclass(frozen=True)
class DoneEvent:
    """
    Successful termination.

    Attributes:
        answer: Final answer text
        iterations: Tool iterations consumed (never above the configured max)
        total_time_ms: Wall time of the run in milliseconds
        forced: True when the answer came from the forced final-answer pass
    """

    answer: str
    iterations: int
    total_time_ms: int
    forced: bool = False
    type: EventType = field(default=EventType.DONE, init=False)


@dataclass(frozen=True)
class ErrorEvent:
    """
    Fatal termination (chat model failure or orchestration failure).

    ``kind`` is ``"auth"`` for credential problems so front-ends can ask the
    user to reconfigure instead of showing a raw error.
    """

    message: str
    kind: str = "error"
    type: EventType = field(default=EventType.ERROR, init=False)


@dataclass(frozen=True)
class AbortedEvent:
    """Cooperative cancellation or total-run timeout."""

    reason: str
    type: EventType = field(default=EventType.ABORTED, init=False)


AgentEvent = Union[
    ThinkingEvent,
    ToolStartEvent,
    ToolEndEvent,
    ToolErrorEvent,
    DoneEvent,
    ErrorEvent,
    AbortedEvent,
]

# Side-channel for sub-agent events: (source name, event)
EventSink = Callable[[str, AgentEvent], None]


def is_terminal(event: AgentEvent) -> bool:
    """Return True for done, error and aborted events."""
    return event.type in TERMINAL_EVENT_TYPES


def event_to_dict(event: AgentEvent) -> dict[str, Any]:
    """Serialize an event for JSON transports (SSE, logs)."""
    data = asdict(event)
    data["type"] = event.type.value
    return data
