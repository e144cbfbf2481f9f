"""
Unit Tests for built-in tools

Each tool is exercised directly against a tmp_path; the executor and policy
layer are covered in tests/unit/core/test_policies.py.
"""

import pytest
import yaml

from jubilee.infrastructure.skills.loader import Skill, SkillCatalog
from jubilee.infrastructure.tools.file_tools import FileReadTool, FileWriteTool
from jubilee.infrastructure.tools.memory_tools import RecallMemoriesTool, RememberFactTool
from jubilee.infrastructure.tools.skill_tool import SkillTool
from jubilee.infrastructure.tools.tool_converter import (
    format_tool_result_block,
    parse_tool_call,
    tools_to_openai_format,
    truncate_output,
)
from jubilee.infrastructure.tools.treasury_tools import DraftEmailTool, TransferProposalTool
from jubilee.infrastructure.tools.web_tools import BrowserTool, WebSearchTool


class TestToolConverter:
    def test_openai_format(self):
        (definition,) = tools_to_openai_format([WebSearchTool()])
        assert definition["type"] == "function"
        assert definition["function"]["name"] == "web_search"
        assert definition["function"]["parameters"]["required"] == ["query"]

    def test_parse_tool_call(self):
        call = {"id": "c1", "function": {"name": "recall_memories", "arguments": '{"query": "grants"}'}}
        assert parse_tool_call(call) == ("c1", "recall_memories", {"query": "grants"})

    def test_parse_empty_arguments(self):
        assert parse_tool_call({"function": {"name": "x", "arguments": ""}}) == ("", "x", {})

    @pytest.mark.parametrize("arguments", ["{not json", "[1, 2]"])
    def test_parse_rejects_bad_arguments(self, arguments):
        with pytest.raises(ValueError):
            parse_tool_call({"function": {"name": "x", "arguments": arguments}})

    def test_truncation(self):
        assert truncate_output("abc", 5) == "abc"
        assert truncate_output("abcdefgh", 5) == "abcde\n\n[... TRUNCATED - 3 more chars ...]"

    def test_result_block(self):
        assert format_tool_result_block("web_search", {"query": "x"}, "result") == '### web_search({"query": "x"})\nresult'


class TestMemoryTools:
    @pytest.mark.asyncio
    async def test_remember_then_recall(self, tmp_path):
        path = str(tmp_path / "memory.yaml")
        remember = RememberFactTool(path)

        first = await remember.execute(fact="The treasury holds USDC in a Safe", tags=["treasury"])
        await remember.execute(fact="Grant deadline is in March")
        result = await RecallMemoriesTool(path).execute(query="treasury safe")

        assert first["output"].endswith("Memory ID: 1")
        assert result["output"] == "- [1] The treasury holds USDC in a Safe"

    @pytest.mark.asyncio
    async def test_refuses_secrets(self, tmp_path):
        path = tmp_path / "memory.yaml"

        stored = await RememberFactTool(str(path)).execute(fact="My seed phrase is alpha beta")
        recalled = await RecallMemoriesTool(str(path)).execute(query="what is the password")

        assert "SECURITY ALERT" in stored["output"]
        assert "SECURITY ALERT" in recalled["output"]
        assert not path.exists()

    @pytest.mark.asyncio
    async def test_nothing_found(self, tmp_path):
        result = await RecallMemoriesTool(str(tmp_path / "memory.yaml")).execute(query="anything")
        assert result["output"] == "No relevant memories found."


class TestFileTools:
    @pytest.mark.asyncio
    async def test_write_then_read(self, tmp_path):
        await FileWriteTool(str(tmp_path)).execute(path="notes/plan.md", content="# Plan")
        result = await FileReadTool(str(tmp_path)).execute(path="notes/plan.md")
        assert result == {"success": True, "output": "# Plan"}

    @pytest.mark.asyncio
    async def test_paths_outside_workspace_are_refused(self, tmp_path):
        workspace = tmp_path / "ws"
        workspace.mkdir()

        write = await FileWriteTool(str(workspace)).execute(path="../escape.txt", content="x")

        assert write["success"] is False
        assert not (tmp_path / "escape.txt").exists()
        with pytest.raises(PermissionError):
            await FileReadTool(str(workspace)).execute(path="../../etc/passwd")

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        result = await FileReadTool(str(tmp_path)).execute(path="missing.txt")
        assert result["success"] is False


class TestTreasuryTools:
    @pytest.mark.asyncio
    async def test_transfer_is_queued_not_sent(self, tmp_path):
        outbox = tmp_path / "outbox.yaml"
        tool = TransferProposalTool(str(outbox))

        result = await tool.execute(to="0xabc", amount=250, asset="USDC", memo="grant payout")
        await tool.execute(to="0xdef", amount=1, asset="ETH")

        assert "proposal #1 queued" in result["output"]
        proposals = yaml.safe_load(outbox.read_text(encoding="utf-8"))
        assert [p["id"] for p in proposals] == [1, 2]
        assert proposals[0]["status"] == "pending_signature"

    @pytest.mark.asyncio
    async def test_transfer_rejects_non_positive_amount(self, tmp_path):
        result = await TransferProposalTool(str(tmp_path / "outbox.yaml")).execute(to="0xabc", amount=0, asset="USDC")
        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_draft_email_rate_limit_and_content_filter(self, tmp_path):
        tool = DraftEmailTool(str(tmp_path), min_interval_seconds=60)

        blocked = await tool.execute(recipient="Ann", subject="Hi", body="You are useless")
        saved = await tool.execute(recipient="Ann", subject="Hi", body="Thanks for your gift")
        limited = await tool.execute(recipient="Bob", subject="Hi", body="Hello")

        assert "CONTENT BLOCKED" in blocked["output"]
        assert "Draft saved" in saved["output"]
        assert "RATE LIMIT" in limited["output"]
        assert len(list(tmp_path.glob("ann_*.txt"))) == 1


class TestSkillTool:
    @pytest.mark.asyncio
    async def test_loads_instructions(self):
        catalog = SkillCatalog([Skill(name="audit", description="d", instructions="Check modifiers.", path="p")])
        tool = SkillTool(catalog)

        assert "Available skills: audit." in tool.description
        assert (await tool.execute(name="audit"))["output"] == "# Skill: audit\n\nCheck modifiers."

    @pytest.mark.asyncio
    async def test_unknown_skill(self):
        result = await SkillTool(SkillCatalog()).execute(name="ghost")
        assert result == {"success": False, "error": "Unknown skill 'ghost'. Available: none"}


@pytest.mark.asyncio
async def test_browser_refuses_non_http_urls():
    result = await BrowserTool().execute(url="file:///etc/passwd")
    assert result == {"success": False, "error": "Unsupported URL: file:///etc/passwd"}
