"""
Tool Registry

Closed set of tools available to this process, constructed once by the
factory and passed explicitly to the orchestrator and the dispatcher. Besides
lookup it:

- resolves capability names requested by a mission,
- returns the tool subset for each Triune role,
- keeps the pre-execution policies attached to each tool,
- renders the tool descriptions section for system prompts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

import structlog

from jubilee.core.interfaces.tools import ToolProtocol
from jubilee.core.tools.policies import ToolPolicy


class TriuneRole(str, Enum):
    MIND = "mind"
    PROPHET = "prophet"
    WILL = "will"


# Research and analysis only; no state-changing actions.
DEFAULT_MIND_TOOLS = (
    "financial_search",
    "financial_metrics",
    "read_filings",
    "browser",
    "web_search",
    "skill",
    "remember_fact",
    "recall_memories",
)

# Sentiment, reputation and mission alignment.
DEFAULT_PROPHET_TOOLS = (
    "financial_search",
    "financial_metrics",
    "web_search",
    "browser",
    "skill",
    "remember_fact",
    "recall_memories",
)


@dataclass
class RegisteredTool:
    tool: ToolProtocol
    description: str
    policies: list[ToolPolicy] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.tool.name


@dataclass(frozen=True)
class CapabilityResolution:
    """Result of matching requested capability names against the registry."""

    tools: list[ToolProtocol]
    unknown: list[str]

    @property
    def names(self) -> list[str]:
        return [t.name for t in self.tools]


class ToolRegistry:
    """Registry of tools, their prompt descriptions and their policies."""

    def __init__(
        self,
        mind_tools: Sequence[str] = DEFAULT_MIND_TOOLS,
        prophet_tools: Sequence[str] = DEFAULT_PROPHET_TOOLS,
    ):
        self._entries: dict[str, RegisteredTool] = {}
        self._role_tools = {
            TriuneRole.MIND: tuple(mind_tools),
            TriuneRole.PROPHET: tuple(prophet_tools),
        }
        self.logger = structlog.get_logger().bind(component="tool_registry")

    def register(
        self,
        tool: ToolProtocol,
        description: Optional[str] = None,
        policies: Optional[Iterable[ToolPolicy]] = None,
    ) -> None:
        if tool.name in self._entries:
            self.logger.warning("tool_replaced", tool=tool.name)
        self._entries[tool.name] = RegisteredTool(
            tool=tool,
            description=description or tool.description,
            policies=list(policies or []),
        )
        self.logger.debug("tool_registered", tool=tool.name, policies=len(self._entries[tool.name].policies))

    def get(self, name: str) -> Optional[ToolProtocol]:
        entry = self._entries.get(name)
        return entry.tool if entry else None

    def names(self) -> list[str]:
        return list(self._entries.keys())

    def all_tools(self) -> list[ToolProtocol]:
        return [entry.tool for entry in self._entries.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def resolve(self, capabilities: Sequence[str]) -> CapabilityResolution:
        """Match names in request order, dropping duplicates."""
        tools: list[ToolProtocol] = []
        unknown: list[str] = []
        seen: set[str] = set()
        for name in capabilities:
            if name in seen:
                continue
            seen.add(name)
            entry = self._entries.get(name)
            if entry is None:
                unknown.append(name)
            else:
                tools.append(entry.tool)
        return CapabilityResolution(tools=tools, unknown=unknown)

    def get_tools_for_role(self, role: TriuneRole | str) -> list[ToolProtocol]:
        """Mind and Prophet get fixed subsets; Will gets every tool."""
        role = TriuneRole(role)
        if role is TriuneRole.WILL:
            return self.all_tools()
        allowed = self._role_tools[role]
        return [entry.tool for name, entry in self._entries.items() if name in allowed]

    def policies_for(self, names: Iterable[str]) -> dict[str, list[ToolPolicy]]:
        policies: dict[str, list[ToolPolicy]] = {}
        for name in names:
            entry = self._entries.get(name)
            if entry and entry.policies:
                policies[name] = list(entry.policies)
        return policies

    def build_tool_descriptions(self, names: Optional[Iterable[str]] = None) -> str:
        """Format rich descriptions as a markdown section body."""
        selected = self._entries.keys() if names is None else names
        blocks = []
        for name in selected:
            entry = self._entries.get(name)
            if entry:
                blocks.append(f"### {name}\n\n{entry.description}")
        return "\n\n".join(blocks)
