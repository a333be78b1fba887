"""
Shared pytest fixtures for backend tests.
"""
import json
import os
import tempfile

# Keep test runs from writing log files into the working directory
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="quote-bot-logs-"))

import pytest

from config import AppConfig, DataConfig, EmailConfig, OpenAIConfig, ScheduleConfig


LONG_TEXT = (
    "Creativity is a long conversation with yourself. "
    "You have to keep showing up even when nobody is listening, "
    "because the listening comes later, if it comes at all."
)


@pytest.fixture
def write_interviews(tmp_path):
    """Write a list of entries to a JSON file and return its path."""
    def _write(entries, name="interviews.json"):
        path = tmp_path / name
        path.write_text(json.dumps(entries), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def base_env():
    """Minimal valid environment for load_config()."""
    return {
        "AI_PROVIDER": "openai",
        "OPENAI_API_KEY": "sk-test-key",
        "EMAIL_HOST": "smtp.example.com",
        "EMAIL_USER": "bot@example.com",
        "EMAIL_PASSWORD": "app-password",
        "EMAIL_RECIPIENTS": "a@example.com, b@example.com",
    }


@pytest.fixture
def app_config(tmp_path):
    """Validated AppConfig pointing at a temp interview file."""
    return AppConfig(
        app_env="test",
        ai=OpenAIConfig(api_key="sk-test-key"),
        email=EmailConfig(
            host="smtp.example.com",
            user="bot@example.com",
            password="app-password",
            recipients=["a@example.com", "b@example.com"],
        ),
        data=DataConfig(interviews_file_path=tmp_path / "interviews.json"),
        schedule=ScheduleConfig(cron_schedule="0 9 * * *", run_once=True),
    )
