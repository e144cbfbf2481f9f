"""
Application Layer - Agent Service

Conversation front door shared by the CLI and the HTTP API. The service owns
the conversation history, allows one run at a time and turns the event stream
of the Triune orchestrator into logged progress.
"""

from collections.abc import AsyncIterator
from typing import Optional

import structlog

from jubilee.application.factory import JubileeRuntime
from jubilee.core.domain.agent import AUTH_ERROR_MESSAGE, is_auth_error
from jubilee.core.domain.cancellation import CancellationToken
from jubilee.core.domain.events import (
    AgentEvent,
    DoneEvent,
    ErrorEvent,
    EventType,
    ToolErrorEvent,
    ToolStartEvent,
)
from jubilee.core.domain.models import ChatHistory, Mission

BUSY_MESSAGE = "⚠️ Agent is busy with another task. Please wait."


class AgentService:
    """
    Serialized access to the Triune orchestrator and the angel dispatcher.

    Args:
        runtime: Wired services from ``JubileeFactory.build()``
        history: Optional pre-existing conversation
    """

    def __init__(self, runtime: JubileeRuntime, history: Optional[ChatHistory] = None):
        self.runtime = runtime
        self.history = history or ChatHistory()
        self._running = False
        self.logger = structlog.get_logger().bind(component="agent_service")

    @property
    def busy(self) -> bool:
        return self._running

    async def chat_stream(
        self, query: str, cancel_token: Optional[CancellationToken] = None
    ) -> AsyncIterator[AgentEvent]:
        """
        Answer ``query`` and yield the run's events.

        A second call while a run is active yields a single error event. Any
        unexpected exception becomes a terminal error event.
        """
        if self._running:
            self.logger.warning("chat_rejected_busy", query=query[:100])
            yield ErrorEvent(message=BUSY_MESSAGE)
            return

        self._running = True
        self.logger.info("chat_started", query=query[:100])
        try:
            async for event in self.runtime.triune.run(query, self.history, cancel_token=cancel_token):
                self._log_event(event)
                yield event
        except Exception as e:
            message = str(e) or type(e).__name__
            if is_auth_error(message):
                self.logger.error("chat_auth_failed", error=message)
                yield ErrorEvent(message=AUTH_ERROR_MESSAGE, kind="auth")
            else:
                self.logger.error("chat_crashed", error=message, error_type=type(e).__name__)
                yield ErrorEvent(message=message)
        finally:
            self._running = False

    async def chat(self, query: str) -> str:
        """Non-streaming wrapper around ``chat_stream``."""
        answer = ""
        async for event in self.chat_stream(query):
            if isinstance(event, DoneEvent):
                answer = event.answer
            elif isinstance(event, ErrorEvent):
                return f"Error: {event.message}"
            elif event.type is EventType.ABORTED:
                return f"Error: aborted ({event.reason})"
        return answer or "Task completed."

    async def dispatch(self, mission: Mission, cancel_token: Optional[CancellationToken] = None) -> str:
        """Dispatch one angel directly, outside of a conversation."""
        self.logger.info("direct_dispatch", role=mission.role, mission=mission.mission[:100])
        return await self.runtime.dispatcher.dispatch(mission, depth=1, cancel_token=cancel_token)

    def reset(self) -> None:
        self.history.clear()
        self.logger.info("history_cleared")

    def _log_event(self, event: AgentEvent) -> None:
        if event.type is EventType.THINKING:
            self.logger.debug("agent_thinking", message=event.message[:200])
        elif isinstance(event, ToolStartEvent):
            self.logger.info("tool_started", tool=event.tool)
        elif isinstance(event, ToolErrorEvent):
            self.logger.warning("tool_error", tool=event.tool, error=event.error)
        elif isinstance(event, DoneEvent):
            self.logger.info(
                "chat_completed",
                iterations=event.iterations,
                total_time_ms=event.total_time_ms,
                answer=event.answer[:50],
            )
        elif isinstance(event, ErrorEvent):
            self.logger.error("chat_failed", error=event.message, kind=event.kind)
        elif event.type is EventType.ABORTED:
            self.logger.warning("chat_aborted", reason=event.reason)
