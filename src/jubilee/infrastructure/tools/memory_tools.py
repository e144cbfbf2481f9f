# ============================================
# MEMORY TOOLS
# ============================================
"""
Long-term memory backed by a YAML file. Recall is keyword overlap, newest
first among equal scores. Queries mentioning secrets are refused.
"""

import asyncio
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml

from jubilee.core.tools.base import Tool

SENSITIVE_KEYWORDS = ("password", "secret key", "private key", "seed phrase", "ssn", "credit card")

_WORD = re.compile(r"[a-z0-9]+")


def _tokens(text: str) -> set[str]:
    return {w for w in _WORD.findall(text.lower()) if len(w) > 2}


class MemoryFile:
    """Facts stored as a YAML list of ``{id, fact, tags, created_at}``."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()
        self.logger = structlog.get_logger().bind(component="memory_file")

    def read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or []
        return data if isinstance(data, list) else []

    async def add(self, fact: str, tags: Optional[List[str]] = None) -> int:
        async with self._lock:
            facts = self.read()
            memory_id = max((int(f.get("id", 0)) for f in facts), default=0) + 1
            facts.append({
                "id": memory_id,
                "fact": fact,
                "tags": list(tags or []),
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp", prefix=".memory_")
            try:
                with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                    yaml.safe_dump(facts, f, allow_unicode=True, sort_keys=False)
                os.replace(temp_path, self.path)
            except Exception:
                if Path(temp_path).exists():
                    Path(temp_path).unlink()
                raise
        self.logger.info("memory_stored", memory_id=memory_id, tags=tags or [])
        return memory_id

    def search(self, query: str, limit: int = 5) -> List[Dict[str, Any]]:
        wanted = _tokens(query)
        scored = []
        for entry in self.read():
            haystack = _tokens(str(entry.get("fact", ""))) | _tokens(" ".join(entry.get("tags", [])))
            score = len(wanted & haystack)
            if score:
                scored.append((score, int(entry.get("id", 0)), entry))
        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [entry for _, _, entry in scored[:limit]]


class RememberFactTool(Tool):
    def __init__(self, memory_path: str = "~/.jubilee/memory.yaml"):
        self.memory = MemoryFile(memory_path)

    @property
    def name(self) -> str:
        return "remember_fact"

    @property
    def description(self) -> str:
        return (
            "Store an important fact, event or finding in long-term memory, e.g. user "
            "preferences or research results you will need later."
        )

    @property
    def parameters_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "fact": {"type": "string", "description": "The content to remember"},
                "tags": {"type": "array", "items": {"type": "string"}, "description": "Optional tags"},
            },
            "required": ["fact"],
        }

    async def execute(self, fact: str, tags: Optional[List[str]] = None, **kwargs) -> Dict[str, Any]:
        if any(keyword in fact.lower() for keyword in SENSITIVE_KEYWORDS):
            return {"success": True, "output": "⛔ SECURITY ALERT: Refusing to store secrets in memory."}
        memory_id = await self.memory.add(fact, tags)
        return {"success": True, "output": f"Fact stored successfully. Memory ID: {memory_id}"}


class RecallMemoriesTool(Tool):
    def __init__(self, memory_path: str = "~/.jubilee/memory.yaml"):
        self.memory = MemoryFile(memory_path)

    @property
    def name(self) -> str:
        return "recall_memories"

    @property
    def description(self) -> str:
        return "Search long-term memory for facts or events related to a query."

    async def execute(self, query: str, limit: int = 5, **kwargs) -> Dict[str, Any]:
        if any(keyword in query.lower() for keyword in SENSITIVE_KEYWORDS):
            return {"success": True, "output": "⛔ SECURITY ALERT: Query contains sensitive keywords. Access denied."}
        matches = self.memory.search(query, limit)
        if not matches:
            return {"success": True, "output": "No relevant memories found."}
        lines = [f"- [{m.get('id')}] {m.get('fact')}" for m in matches]
        return {"success": True, "output": "\n".join(lines)}
