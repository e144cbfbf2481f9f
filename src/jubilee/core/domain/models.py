"""
Core Domain Models

Data carried through a run: the agent configuration, the caller-owned chat
history, per-run iteration state, and the inputs and outputs of angel
dispatch (missions, guard verdicts, role templates, task summaries).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from jubilee.core.domain.errors import IterationBudgetExceeded


@dataclass
class ChatMessage:
    role: str
    content: str


class ChatHistory:
    """
    Ordered conversation turns owned by the caller across runs.

    Agents only read the history while they run. A successful run appends
    the user query and final answer exactly once, after it has produced its
    answer.
    """

    def __init__(self, messages: Optional[list[ChatMessage]] = None):
        self._messages: list[ChatMessage] = list(messages or [])

    def save_user_query(self, query: str) -> None:
        self._messages.append(ChatMessage(role="user", content=query))

    def save_answer(self, answer: str) -> None:
        self._messages.append(ChatMessage(role="assistant", content=answer))

    def record_exchange(self, query: str, answer: str) -> None:
        self.save_user_query(query)
        self.save_answer(answer)

    def as_messages(self) -> list[dict[str, str]]:
        """Return turns in chat-completion message format."""
        return [{"role": m.role, "content": m.content} for m in self._messages]

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)


@dataclass
class AgentConfig:
    """
    Configuration of one agent run.

    Attributes:
        system_prompt: System prompt for every model call
        tools: Tools bound to this agent (capability set)
        model: Model alias or name (None uses the provider default)
        api_keys: Optional per-provider credentials
        max_iterations: Maximum tool iterations before the forced answer
        policies: Pre-execution policies keyed by tool name
        model_timeout: Seconds allowed per model call (None disables)
        tool_timeout: Seconds allowed per tool call (None disables)
        run_timeout: Seconds allowed for the whole run (None disables)
        parallel_tool_calls: Run calls requested in one turn concurrently
        temperature: Sampling temperature for loop calls
    """

    system_prompt: str
    tools: list[Any] = field(default_factory=list)
    model: Optional[str] = None
    api_keys: dict[str, str] = field(default_factory=dict)
    max_iterations: int = 10
    policies: dict[str, list[Any]] = field(default_factory=dict)
    model_timeout: Optional[float] = None
    tool_timeout: Optional[float] = None
    run_timeout: Optional[float] = None
    parallel_tool_calls: bool = False
    temperature: float = 0.2


@dataclass
class IterationState:
    """Per-run loop state. Discarded when the run terminates."""

    max_iterations: int
    iteration: int = 0
    tool_results: list[str] = field(default_factory=list)

    def advance(self) -> None:
        if self.iteration >= self.max_iterations:
            raise IterationBudgetExceeded(self.max_iterations)
        self.iteration += 1

    def add_result(self, block: str) -> None:
        self.tool_results.append(block)

    @property
    def exhausted(self) -> bool:
        return self.iteration >= self.max_iterations

    @property
    def remaining(self) -> int:
        return max(self.max_iterations - self.iteration, 0)

    @property
    def context_text(self) -> str:
        return "\n\n".join(self.tool_results)


class FeatureMode(str, Enum):
    """Feature modes that gate role templates."""

    STEWARDSHIP = "stewardship"
    BUILDER = "builder"
    ANY = "any"


@dataclass(frozen=True)
class RoleTemplate:
    """Named archetype for recurring angel missions. Read-only after load."""

    key: str
    name: str
    domain: str
    default_capabilities: tuple[str, ...]
    default_iterations: int
    prompt_fragment: str
    required_mode: FeatureMode = FeatureMode.ANY
    emoji: str = "👼"


@dataclass
class Mission:
    """Input of one angel dispatch."""

    mission: str
    name: Optional[str] = None
    role: Optional[str] = None
    capabilities: Optional[list[str]] = None
    skill_focus: Optional[str] = None
    iterations: Optional[int] = None
    task_id: Optional[int] = None


@dataclass(frozen=True)
class GuardVerdict:
    """Result of a safety guard check. Computed once per mission."""

    approved: bool
    reason: Optional[str] = None

    @classmethod
    def approve(cls) -> "GuardVerdict":
        return cls(approved=True)

    @classmethod
    def reject(cls, reason: str) -> "GuardVerdict":
        return cls(approved=False, reason=reason)

    def __str__(self) -> str:
        if self.approved:
            return "APPROVE"
        return f"REJECT: {self.reason or 'No reason given'}"


@dataclass(frozen=True)
class SessionSummary:
    """One entry of a task's resumable context."""

    summary: str
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, str]:
        return {"timestamp": self.timestamp, "summary": self.summary}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionSummary":
        return cls(summary=str(data.get("summary", "")), timestamp=str(data.get("timestamp", "")))
