"""
Task Store Protocol

Resumable task context: at most five session summaries per task, oldest
evicted first.
"""

from typing import Protocol

from jubilee.core.domain.models import SessionSummary

MAX_TASK_CONTEXT_ENTRIES = 5


class TaskStoreProtocol(Protocol):
    async def load(self, task_id: int) -> list[SessionSummary]:
        ...

    async def append(self, task_id: int, summary: SessionSummary) -> list[SessionSummary]:
        ...
