"""Tests for the command line entry point."""
import json
from unittest.mock import AsyncMock, patch

import pytest

import main
from conftest import LONG_TEXT


@pytest.fixture
def env(base_env, tmp_path):
    """Valid environment for main(), isolated from any local .env file."""
    values = dict(base_env, LOG_DIR=str(tmp_path / "logs"), APP_ENV="test")
    with patch.dict("os.environ", values, clear=True), \
         patch("main.load_dotenv"):
        yield values


def test_parser_defaults_to_no_command():
    args = main.build_parser().parse_args([])
    assert args.command is None


def test_parser_run_once():
    args = main.build_parser().parse_args(["run", "--once"])
    assert args.command == "run"
    assert args.once is True


def test_parser_scrape_options():
    args = main.build_parser().parse_args(
        ["scrape", "--index-url", "https://a.com/interviews", "--limit", "5"]
    )
    assert args.index_url == "https://a.com/interviews"
    assert args.limit == 5
    assert args.output is None
    assert args.headed is False


def test_invalid_configuration_exits_with_1(capsys):
    with patch.dict("os.environ", {"AI_PROVIDER": "openai"}, clear=True), \
         patch("main.load_dotenv"):
        assert main.main(["stats"]) == 1

    err = capsys.readouterr().err
    assert "Configuration errors:" in err
    assert "OPENAI_API_KEY is required when AI_PROVIDER=openai" in err


def test_stats_prints_summary(env, write_interviews, capsys):
    path = write_interviews([{"url": "https://www.a.com/1", "text": LONG_TEXT}])

    with patch.dict("os.environ", {"INTERVIEWS_FILE_PATH": str(path)}):
        assert main.main(["stats"]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["total"] == 1
    assert summary["sources"] == ["a.com"]


def test_command_failure_exits_with_1(env, tmp_path):
    with patch.dict("os.environ", {"INTERVIEWS_FILE_PATH": str(tmp_path / "missing.json")}):
        assert main.main(["stats"]) == 1


def test_run_once_flag(env):
    with patch("quote_bot.QuoteBot.run_once", AsyncMock(return_value=0)) as run_once, \
         patch("quote_bot.QuoteBot.run_forever", AsyncMock(return_value=0)) as run_forever:
        assert main.main(["run", "--once"]) == 0

    run_once.assert_awaited_once()
    run_forever.assert_not_called()


def test_default_command_runs_on_schedule(env):
    with patch("quote_bot.QuoteBot.run_forever", AsyncMock(return_value=0)) as run_forever:
        assert main.main([]) == 0

    run_forever.assert_awaited_once()


def test_keyboard_interrupt_exits_cleanly(env):
    with patch("quote_bot.QuoteBot.run_forever", AsyncMock(side_effect=KeyboardInterrupt)):
        assert main.main(["run"]) == 0


def test_test_email_reports_connection_failure(env, capsys):
    with patch("email_sender.EmailSender.test_connection", AsyncMock(return_value=False)), \
         patch("email_sender.EmailSender.send_test_email", AsyncMock()) as send_test_email:
        assert main.main(["test-email", "--to", "me@example.com"]) == 1

    send_test_email.assert_not_called()
    assert "SMTP connection test failed" in capsys.readouterr().out
