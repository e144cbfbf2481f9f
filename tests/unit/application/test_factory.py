"""
Unit tests for JubileeFactory.

Tests verify:
- Tool profile loading and instantiation by module/type
- Policy attachment per tool
- Dependency injection into dispatch_angel and skill tools
- Error handling for malformed profiles
"""

import pytest
import yaml

from jubilee.application.factory import DEFAULT_TOOL_SPECS, JubileeFactory
from jubilee.application.settings import JubileeSettings
from jubilee.core.domain.dispatcher import GUARD_BLOCK_MARKER
from jubilee.core.domain.errors import ConfigurationError
from jubilee.core.domain.events import DoneEvent
from jubilee.core.domain.models import ChatHistory, Mission
from jubilee.core.tools.policies import AllowlistPolicy, ConfirmationPolicy
from jubilee.infrastructure.persistence.task_store import InMemoryTaskStore
from tests.conftest import ScriptedLLM, collect, text_response


def make_settings(tmp_path, tools=None, **overrides):
    profile = None
    if tools is not None:
        profile = tmp_path / "tools.yaml"
        profile.write_text(yaml.safe_dump({"tools": tools}), encoding="utf-8")
    values = {
        "tools_config_path": str(profile) if profile else None,
        "roles_path": str(tmp_path / "roles.yaml"),
        "skills_dirs": [str(tmp_path / "skills")],
        "tasks_dir": str(tmp_path / "tasks"),
        "llm_config_path": None,
    }
    values.update(overrides)
    return JubileeSettings(**values)


def build(settings, llm=None):
    return JubileeFactory(settings, llm_provider=llm or ScriptedLLM(), task_store=InMemoryTaskStore()).build()


class TestToolProfile:
    def test_default_tools_without_profile(self, tmp_path):
        runtime = build(make_settings(tmp_path))

        assert len(runtime.registry) == len(DEFAULT_TOOL_SPECS)
        assert "dispatch_angel" in runtime.registry
        assert "skill" in runtime.registry

    def test_missing_profile_falls_back_to_defaults(self, tmp_path):
        runtime = build(make_settings(tmp_path, tools_config_path=str(tmp_path / "nope.yaml")))
        assert len(runtime.registry) == len(DEFAULT_TOOL_SPECS)

    def test_profile_tools_params_and_description(self, tmp_path):
        runtime = build(make_settings(tmp_path, tools=[
            {
                "type": "WebSearchTool",
                "module": "jubilee.infrastructure.tools.web_tools",
                "params": {"max_results": 2},
                "description": "Search the web for DeFi news.",
            },
            {"type": "GhostTool", "module": "jubilee.infrastructure.tools.web_tools"},
            {"type": "BrowserTool"},
        ]))

        assert runtime.registry.names() == ["web_search"]
        assert runtime.registry.get("web_search").max_results == 2
        assert "Search the web for DeFi news." in runtime.registry.build_tool_descriptions()

    def test_profile_without_tools_list(self, tmp_path):
        profile = tmp_path / "tools.yaml"
        profile.write_text("tools: web_search\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="'tools' list"):
            build(make_settings(tmp_path, tools_config_path=str(profile)))

    def test_injections(self, tmp_path):
        runtime = build(make_settings(tmp_path, tools=[
            {"type": "DispatchAngelTool", "module": "jubilee.core.tools.dispatch_tool"},
            {"type": "SkillTool", "module": "jubilee.infrastructure.tools.skill_tool"},
        ]))

        dispatch_tool = runtime.registry.get("dispatch_angel")
        assert dispatch_tool.dispatcher is runtime.dispatcher
        assert dispatch_tool.depth == 1
        assert dispatch_tool.role_names == runtime.roles.names()
        assert runtime.registry.get("skill").skills is runtime.skills


class TestPolicies:
    def test_policies_are_attached(self, tmp_path):
        runtime = build(make_settings(tmp_path, tools=[
            {
                "type": "TransferProposalTool",
                "module": "jubilee.infrastructure.tools.treasury_tools",
                "params": {"outbox_path": str(tmp_path / "outbox.yaml")},
                "policies": [{"type": "allowlist", "addresses": ["0xABC"], "aliases": ["to"]}],
            },
            {
                "type": "FileWriteTool",
                "module": "jubilee.infrastructure.tools.file_tools",
                "params": {"root": str(tmp_path)},
                "policies": [{"type": "confirmation", "token": "YES"}],
            },
        ]))

        policies = runtime.registry.policies_for(["propose_transfer", "fs_write"])
        (allowlist,) = policies["propose_transfer"]
        (confirmation,) = policies["fs_write"]
        assert isinstance(allowlist, AllowlistPolicy)
        assert allowlist.address_aliases == ("to",)
        assert isinstance(confirmation, ConfirmationPolicy)
        assert confirmation.token == "YES"

    def test_confirmation_token_defaults_to_settings(self, tmp_path):
        runtime = build(make_settings(tmp_path, confirmation_token="AMEN", tools=[
            {
                "type": "FileWriteTool",
                "module": "jubilee.infrastructure.tools.file_tools",
                "policies": [{"type": "confirmation"}],
            },
        ]))

        assert runtime.registry.policies_for(["fs_write"])["fs_write"][0].token == "AMEN"

    def test_unknown_policy_type(self, tmp_path):
        settings = make_settings(tmp_path, tools=[
            {
                "type": "WebSearchTool",
                "module": "jubilee.infrastructure.tools.web_tools",
                "policies": [{"type": "prayer"}],
            },
        ])

        with pytest.raises(ConfigurationError, match="Unknown policy type 'prayer'"):
            build(settings)


class TestRuntime:
    @pytest.mark.asyncio
    async def test_triune_runs_on_injected_provider(self, tmp_path):
        llm = ScriptedLLM(default=text_response("All is well."))
        runtime = build(make_settings(tmp_path), llm)

        events = await collect(runtime.triune.run("How is the treasury?", ChatHistory()))

        assert isinstance(events[-1], DoneEvent)
        assert events[-1].answer.startswith("All is well.")
        assert len(llm.calls) == 3

    @pytest.mark.asyncio
    async def test_dispatcher_uses_guard_model(self, tmp_path):
        llm = ScriptedLLM([text_response("REJECT: unclear mission")])
        runtime = build(make_settings(tmp_path, guard_model="guard"), llm)

        result = await runtime.dispatcher.dispatch(Mission(mission="do things", capabilities=["web_search"]))

        assert result == f"{GUARD_BLOCK_MARKER}: unclear mission"
        assert llm.calls[0]["model"] == "guard"
