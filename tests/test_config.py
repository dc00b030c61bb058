"""Tests for settings that change how the service runs."""

import pytest
import structlog

from config import LogSettings
from logger import configure_logging


@pytest.fixture
def restore_logging():
    yield
    configure_logging(environment="development", log_level="INFO")


class TestLogFormat:
    def test_unset_format_follows_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        assert LogSettings().json_output is None

    @pytest.mark.parametrize("value,expected", [("json", True), ("text", False)])
    def test_explicit_format(self, monkeypatch, value, expected):
        monkeypatch.setenv("LOG_FORMAT", value)
        assert LogSettings().json_output is expected

    @pytest.mark.parametrize(
        "environment,renderer",
        [("production", structlog.processors.JSONRenderer), ("development", structlog.dev.ConsoleRenderer)],
    )
    def test_environment_picks_renderer(self, restore_logging, environment, renderer):
        configure_logging(environment=environment, json_format=LogSettings(format=None).json_output)
        assert isinstance(structlog.get_config()["processors"][-1], renderer)
