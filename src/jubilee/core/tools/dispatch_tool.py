"""
Dispatch Angel Tool

Model-facing entry point of the AngelDispatcher. The model calls
``dispatch_angel`` with a mission; the tool validates the arguments and hands
them to the dispatcher, returning the angel's report (or a refusal) as text.

A bound tool also carries the message of the user who started the run, so
confirmation policies inside the angel see what the user typed and never the
mission text the calling model wrote.
"""

from typing import Any, Optional, Protocol, Sequence

import structlog
from pydantic import BaseModel, Field, ValidationError

from jubilee.core.domain.models import Mission
from jubilee.core.interfaces.tools import ToolProtocol
from jubilee.core.tools.base import Tool


class AngelDispatcherProtocol(Protocol):
    async def dispatch(self, mission: Mission, depth: int = 1, user_message: str = "", **kwargs: Any) -> str:
        ...


class DispatchArgs(BaseModel):
    """Arguments accepted from the model."""

    mission: str = Field(..., min_length=1, description="Detailed mission description.")
    role: Optional[str] = Field(None, description="Role template key, e.g. ResearchAngel.")
    name: Optional[str] = Field(None, description="Name of the angel, e.g. 'Research Angel'.")
    capabilities: Optional[list[str]] = Field(None, description="Tools the angel needs access to.")
    skill_focus: Optional[str] = Field(None, description="Skill whose instructions guide the angel.")
    iterations: Optional[int] = Field(None, ge=1, description="Max iterations for the angel.")
    task_id: Optional[int] = Field(None, description="Task whose prior session summaries should be resumed.")

    def to_mission(self) -> Mission:
        return Mission(
            mission=self.mission,
            name=self.name,
            role=self.role,
            capabilities=self.capabilities,
            skill_focus=self.skill_focus,
            iterations=self.iterations,
            task_id=self.task_id,
        )


class DispatchAngelTool(Tool):
    """Dispatch a capability-scoped sub-agent for a focused mission."""

    def __init__(
        self,
        dispatcher: AngelDispatcherProtocol,
        depth: int = 1,
        role_names: Optional[list[str]] = None,
        user_message: str = "",
    ):
        self.dispatcher = dispatcher
        self.depth = depth
        self.user_message = user_message
        self.role_names = list(role_names or [])
        self.logger = structlog.get_logger().bind(component="dispatch_angel_tool")

    @property
    def name(self) -> str:
        return "dispatch_angel"

    @property
    def description(self) -> str:
        return (
            "Dispatch a specialized Angel (sub-agent) to perform a focused task. "
            "Use this for parallel research, deep-dive coding, or verification steps "
            "that require focus. Pick a role template or give a name and capabilities."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        schema = DispatchArgs.model_json_schema()
        schema.pop("title", None)
        schema.pop("description", None)
        if self.role_names:
            schema["properties"]["role"] = {
                "type": "string",
                "enum": self.role_names,
                "description": "Role template key.",
            }
        return schema

    def bind(self, depth: int, user_message: str = "") -> "DispatchAngelTool":
        """Return a copy that dispatches at ``depth`` on behalf of ``user_message``."""
        return DispatchAngelTool(
            self.dispatcher, depth=depth, role_names=self.role_names, user_message=user_message
        )

    async def execute(self, **kwargs: Any) -> str:
        try:
            args = DispatchArgs(**kwargs)
        except ValidationError as e:
            self.logger.warning("dispatch_args_invalid", errors=e.error_count())
            return f"Error: invalid dispatch_angel arguments: {e}"

        return await self.dispatcher.dispatch(
            args.to_mission(), depth=self.depth, user_message=self.user_message
        )


def bind_dispatch_tools(
    tools: Sequence[ToolProtocol], depth: int, user_message: str
) -> list[ToolProtocol]:
    """Re-bind every ``dispatch_angel`` tool in ``tools`` to a depth and user message."""
    return [
        tool.bind(depth, user_message) if isinstance(tool, DispatchAngelTool) else tool
        for tool in tools
    ]
