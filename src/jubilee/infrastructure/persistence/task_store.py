"""
Task Context Stores
===================

Resumable task context for angel missions: per task id, the last five
session summaries, oldest evicted first.

- InMemoryTaskStore: process-local, for tests and one-shot runs
- FileTaskStore: one YAML file per task under a directory, atomic writes
"""

import asyncio
import os
import tempfile
from collections import defaultdict
from pathlib import Path
from typing import Any

import structlog
import yaml

from jubilee.core.domain.models import SessionSummary
from jubilee.core.interfaces.tasks import MAX_TASK_CONTEXT_ENTRIES

logger = structlog.get_logger()


def cap_summaries(
    summaries: list[SessionSummary], limit: int = MAX_TASK_CONTEXT_ENTRIES
) -> list[SessionSummary]:
    """Keep the newest ``limit`` entries in insertion order."""
    return summaries[-limit:] if limit > 0 else []


class InMemoryTaskStore:
    """Task context held in process memory."""

    def __init__(self, limit: int = MAX_TASK_CONTEXT_ENTRIES):
        self.limit = limit
        self._tasks: dict[int, list[SessionSummary]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def load(self, task_id: int) -> list[SessionSummary]:
        return list(self._tasks.get(task_id, []))

    async def append(self, task_id: int, summary: SessionSummary) -> list[SessionSummary]:
        async with self._lock:
            self._tasks[task_id] = cap_summaries([*self._tasks[task_id], summary], self.limit)
            return list(self._tasks[task_id])


class FileTaskStore:
    """
    File-based task context with YAML persistence.

    Layout: ``{tasks_dir}/task_{task_id}.yaml`` containing ``task_id`` and a
    ``context`` list of ``{timestamp, summary}`` entries. Corrupt files are
    logged and treated as empty.
    """

    def __init__(self, tasks_dir: str | Path, limit: int = MAX_TASK_CONTEXT_ENTRIES):
        self.tasks_dir = Path(tasks_dir).expanduser()
        self.limit = limit
        self._lock = asyncio.Lock()
        self.logger = logger.bind(component="file_task_store")

    def _get_task_path(self, task_id: int) -> Path:
        return self.tasks_dir / f"task_{task_id}.yaml"

    def _read(self, task_id: int) -> list[SessionSummary]:
        path = self._get_task_path(task_id)
        if not path.exists():
            return []

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            entries = data.get("context", [])
            return [SessionSummary.from_dict(e) for e in entries if isinstance(e, dict)]
        except (OSError, yaml.YAMLError, AttributeError) as e:
            self.logger.warning("task.yaml.corrupt", task_id=task_id, path=str(path), error=str(e))
            return []

    def _atomic_write_yaml(self, path: Path, data: dict[str, Any]) -> None:
        """
        Write YAML atomically using temp file + rename.

        Raises:
            OSError: If file operations fail
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=".task_")
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
            os.replace(temp_path, path)
            self.logger.debug("task.yaml.written", task_file=str(path), atomic=True)
        except Exception:
            if Path(temp_path).exists():
                Path(temp_path).unlink()
            raise

    async def load(self, task_id: int) -> list[SessionSummary]:
        return cap_summaries(self._read(task_id), self.limit)

    async def append(self, task_id: int, summary: SessionSummary) -> list[SessionSummary]:
        async with self._lock:
            summaries = cap_summaries([*self._read(task_id), summary], self.limit)
            self._atomic_write_yaml(
                self._get_task_path(task_id),
                {"task_id": task_id, "context": [s.to_dict() for s in summaries]},
            )
        self.logger.info("task_context_appended", task_id=task_id, entries=len(summaries))
        return summaries
