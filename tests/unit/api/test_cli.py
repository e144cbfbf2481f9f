"""
Tests for the Jubilee CLI.

Every invocation passes ``--config`` with a temporary settings file so the
developer's ~/.jubilee/config.yaml is never read or written.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from jubilee import __version__
from jubilee.api.cli.main import app
from jubilee.core.domain.dispatcher import GUARD_BLOCK_MARKER
from jubilee.core.domain.events import DoneEvent, ErrorEvent, ThinkingEvent
from jubilee.core.domain.models import Mission

WIDE = {"COLUMNS": "200"}


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump({"roles_path": str(tmp_path / "roles.yaml"), "builder_mode": False}),
        encoding="utf-8",
    )
    return path


def invoke(config_file, *args):
    return CliRunner().invoke(app, ["--config", str(config_file), *args], env=WIDE)


def fake_service(events=None, report=None):
    async def chat_stream(query, cancel_token=None):
        for event in events or []:
            yield event

    service = MagicMock()
    service.chat_stream = chat_stream
    service.dispatch = AsyncMock(return_value=report)
    return service


class TestMainCLI:
    def test_help_lists_commands(self):
        result = CliRunner().invoke(app, ["--help"], env=WIDE)

        assert result.exit_code == 0
        for command in ("ask", "chat", "dispatch", "roles", "config"):
            assert command in result.output

    def test_version(self, config_file):
        result = invoke(config_file, "version")
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_invalid_settings_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("max_iterations: 0\n", encoding="utf-8")

        result = invoke(path, "version")

        assert result.exit_code == 1
        assert "invalid settings" in result.output


class TestRolesCommand:
    def test_lists_roles_with_disabled_modes(self, config_file):
        result = invoke(config_file, "roles")

        assert result.exit_code == 0
        assert "ResearchAngel" in result.output
        assert "ContractAngel" in result.output
        assert "(off)" in result.output


class TestConfigCommands:
    def test_set_value(self, config_file):
        result = invoke(config_file, "config", "set", "max_iterations", "12")

        assert result.exit_code == 0
        assert yaml.safe_load(config_file.read_text(encoding="utf-8"))["max_iterations"] == 12

    def test_set_list_value(self, config_file):
        result = invoke(config_file, "config", "set", "mind_tools", "web_search, browser")

        assert result.exit_code == 0
        assert yaml.safe_load(config_file.read_text(encoding="utf-8"))["mind_tools"] == ["web_search", "browser"]

    def test_set_optional_to_none(self, config_file):
        result = invoke(config_file, "config", "set", "run_timeout", "none")

        assert result.exit_code == 0
        assert yaml.safe_load(config_file.read_text(encoding="utf-8"))["run_timeout"] is None

    def test_set_unknown_key(self, config_file):
        result = invoke(config_file, "config", "set", "colour", "blue")

        assert result.exit_code == 1
        assert "Unknown configuration key" in result.output

    def test_set_invalid_value(self, config_file):
        result = invoke(config_file, "config", "set", "max_dispatch_depth", "zero")
        assert result.exit_code == 1

    def test_show_masks_sensitive_values(self, config_file):
        result = invoke(config_file, "config", "show")

        assert result.exit_code == 0
        assert "CONFIRM" not in result.output

    def test_mode_toggle(self, config_file):
        result = invoke(config_file, "config", "mode", "builder", "on")

        assert result.exit_code == 0
        assert yaml.safe_load(config_file.read_text(encoding="utf-8"))["builder_mode"] is True

    @pytest.mark.parametrize("args", [("any", "on"), ("chaos", "on"), ("builder", "maybe")])
    def test_mode_rejects_bad_input(self, config_file, args):
        assert invoke(config_file, "config", "mode", *args).exit_code == 1


class TestAskCommand:
    def test_prints_answer(self, config_file):
        service = fake_service([
            ThinkingEvent(message="Summoning..."),
            DoneEvent(answer="Peace be with you", iterations=1, total_time_ms=5),
        ])

        with patch("jubilee.api.cli.commands.ask.create_service", return_value=service):
            result = invoke(config_file, "ask", "How are we?")

        assert result.exit_code == 0
        assert "Peace be with you" in result.output

    def test_error_exits_nonzero(self, config_file):
        service = fake_service([ErrorEvent(message="model down")])

        with patch("jubilee.api.cli.commands.ask.create_service", return_value=service):
            result = invoke(config_file, "ask", "How are we?")

        assert result.exit_code == 1
        assert "model down" in result.output


class TestDispatchCommand:
    def test_report(self, config_file):
        service = fake_service(report="👼 [Scout] Report:\nMISSION COMPLETE: two grants")

        with patch("jubilee.api.cli.commands.dispatch.create_service", return_value=service):
            result = invoke(
                config_file, "dispatch", "Find grants",
                "--name", "Scout", "--capability", "web_search", "--capability", "browser", "-t", "4",
            )

        assert result.exit_code == 0
        assert "two grants" in result.output
        service.dispatch.assert_awaited_once_with(
            Mission(mission="Find grants", name="Scout", capabilities=["web_search", "browser"], task_id=4)
        )

    def test_refusal_exits_nonzero(self, config_file):
        service = fake_service(report=f"{GUARD_BLOCK_MARKER}: no")

        with patch("jubilee.api.cli.commands.dispatch.create_service", return_value=service):
            result = invoke(config_file, "dispatch", "Drain the vault")

        assert result.exit_code == 1
        assert "MISSION BLOCKED" in result.output
