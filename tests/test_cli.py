"""CLI commands with click's test runner."""

import json

import pytest
from click.testing import CliRunner

import rtmbot.cli.main as cli_main
from fakes import BOT, FakeWriter, message_event
from rtmbot.cli.main import main
from rtmbot.cli.run import BUILTIN_COMMANDS, build_bot
from rtmbot.dispatch import CommandDispatcher
from rtmbot.handlers import MatchPolicy


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    monkeypatch.setattr(cli_main, "CONFIG_FILE", path)
    monkeypatch.setattr(cli_main, "_configure_logging", lambda level: None)
    monkeypatch.delenv("RTMBOT_TOKEN", raising=False)
    return path


def test_status_when_logged_out(config_file):
    result = CliRunner().invoke(main, ["auth", "status"])
    assert result.exit_code == 0
    assert "Not logged in" in result.output


def test_status_and_logout(config_file):
    config_file.write_text(json.dumps({"token": "xoxb-secret", "bot_id": "U123", "bot_name": "rtmbot"}))
    runner = CliRunner()

    result = runner.invoke(main, ["auth", "status"])
    assert "rtmbot" in result.output
    assert "U123" in result.output

    result = runner.invoke(main, ["auth", "logout"])
    assert result.exit_code == 0
    assert json.loads(config_file.read_text()) == {}


def test_run_without_token_exits(config_file):
    result = CliRunner().invoke(main, ["run"])
    assert result.exit_code == 1
    assert "No token" in result.output


def test_builtin_commands():
    bot = build_bot("xoxb-secret", "https://api.example.test/api/", first_match=True)
    assert [b.pattern for b in bot.handlers] == [pattern for pattern, _ in BUILTIN_COMMANDS]
    assert bot._match_policy is MatchPolicy.FIRST


@pytest.mark.asyncio
async def test_builtin_echo_and_ping():
    bot = build_bot("xoxb-secret", "https://api.example.test/api/")
    writer = FakeWriter()
    dispatcher = CommandDispatcher(BOT, bot.handlers.freeze(), writer)
    await dispatcher.dispatch(message_event("<@U123> ping"))
    await dispatcher.dispatch(message_event("<@U123> echo hello there"))
    assert writer.replies == [("C1", "pong"), ("C1", "hello there")]
    await bot.stop()
