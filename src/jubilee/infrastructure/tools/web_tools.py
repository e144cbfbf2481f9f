# ============================================
# WEB TOOLS
# ============================================

import asyncio
import re
from typing import Any, Dict

import aiohttp

from jubilee.core.tools.base import Tool


class WebSearchTool(Tool):
    """Web search using DuckDuckGo (no API key required)"""

    def __init__(self, max_results: int = 5, timeout: float = 10):
        self.max_results = max_results
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return (
            "Search the web for current information. Returns titles, snippets and URLs. "
            "Use it for news, sentiment, project background and anything not covered by "
            "financial data tools."
        )

    @property
    def parameters_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "num_results": {"type": "integer", "description": "Maximum results (default 5)"},
            },
            "required": ["query"],
        }

    async def execute(self, query: str, num_results: int = 0, **kwargs) -> Dict[str, Any]:
        limit = num_results or self.max_results
        try:
            async with aiohttp.ClientSession() as session:
                params = {"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"}
                async with session.get(
                    "https://api.duckduckgo.com/",
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    # DuckDuckGo answers with a non-JSON content type
                    data = await response.json(content_type=None)

            results = []
            if data.get("Abstract"):
                results.append({
                    "title": data.get("Heading", ""),
                    "snippet": data["Abstract"],
                    "url": data.get("AbstractURL", ""),
                })
            for topic in data.get("RelatedTopics", []):
                if isinstance(topic, dict) and "Text" in topic:
                    results.append({
                        "title": topic["Text"].split(" - ")[0][:80],
                        "snippet": topic["Text"],
                        "url": topic.get("FirstURL", ""),
                    })

            return {"success": True, "query": query, "results": results[:limit], "count": len(results[:limit])}

        except asyncio.TimeoutError:
            return {"success": False, "error": "Search timed out"}
        except aiohttp.ClientError as e:
            return {"success": False, "error": f"Search failed: {e}"}


class BrowserTool(Tool):
    """Fetch a page and return its readable text"""

    def __init__(self, max_chars: int = 8000, timeout: float = 15):
        self.max_chars = max_chars
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "browser"

    @property
    def description(self) -> str:
        return (
            "Open a URL and read its text content (HTML is stripped). Use it to read "
            "whitepapers, announcements, documentation or any page found by web_search."
        )

    async def execute(self, url: str, **kwargs) -> Dict[str, Any]:
        if not url.startswith(("http://", "https://")):
            return {"success": False, "error": f"Unsupported URL: {url}"}

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                    content = await response.text()
                    content_type = response.headers.get("Content-Type", "")
                    status = response.status

            if "text/html" in content_type:
                text = re.sub(r"<script[^>]*>.*?</script>", "", content, flags=re.DOTALL | re.IGNORECASE)
                text = re.sub(r"<style[^>]*>.*?</style>", "", text, flags=re.DOTALL | re.IGNORECASE)
                text = re.sub(r"<[^>]+>", " ", text)
                text = " ".join(text.split())
            else:
                text = content

            return {
                "success": status < 400,
                "error": f"HTTP {status}" if status >= 400 else None,
                "url": url,
                "status": status,
                "output": text[: self.max_chars],
            }

        except asyncio.TimeoutError:
            return {"success": False, "error": "Request timed out"}
        except aiohttp.ClientError as e:
            return {"success": False, "error": f"Request failed: {e}"}
