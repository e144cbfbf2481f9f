# ============================================
# FILE SYSTEM TOOLS
# ============================================
from pathlib import Path
from typing import Any, Dict

from jubilee.core.tools.base import Tool


class FileReadTool(Tool):
    """Safe file reading with size limits"""

    def __init__(self, root: str = ".", max_size_mb: float = 2):
        self.root = Path(root).expanduser().resolve()
        self.max_size_mb = max_size_mb

    @property
    def name(self) -> str:
        return "fs_read"

    @property
    def description(self) -> str:
        return "Read a text file inside the workspace."

    def _resolve(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise PermissionError(f"Path outside workspace: {path}")
        return resolved

    async def execute(self, path: str, **kwargs) -> Dict[str, Any]:
        file_path = self._resolve(path)
        if not file_path.is_file():
            return {"success": False, "error": f"File not found: {path}"}

        size_mb = file_path.stat().st_size / (1024 * 1024)
        if size_mb > self.max_size_mb:
            return {"success": False, "error": f"File too large: {size_mb:.2f}MB > {self.max_size_mb}MB"}

        return {"success": True, "output": file_path.read_text(encoding="utf-8", errors="replace")}


class FileWriteTool(Tool):
    """
    Write a text file inside the workspace. Sensitive: configure a
    confirmation policy for it in the tool profile.
    """

    def __init__(self, root: str = "."):
        self.root = Path(root).expanduser().resolve()

    @property
    def name(self) -> str:
        return "fs_write"

    @property
    def description(self) -> str:
        return "Write content to a text file inside the workspace, replacing it if it exists."

    async def execute(self, path: str, content: str, **kwargs) -> Dict[str, Any]:
        file_path = (self.root / path).resolve()
        if file_path != self.root and self.root not in file_path.parents:
            return {"success": False, "error": f"Path outside workspace: {path}"}

        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
        return {"success": True, "output": f"Wrote {len(content)} characters to {path}"}
