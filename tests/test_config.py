"""Tests for environment settings and logging setup."""
import os
import sys

from loguru import logger

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from tasktimer.config import Settings
from tasktimer.log import setup_logging
from tasktimer.scheduler.types import TimerOptions


class TestSettings:
    """Tests for Settings.from_env."""

    def test_defaults(self, monkeypatch):
        for name in (
            "TASKTIMER_INTERVAL",
            "TASKTIMER_STOP_ON_COMPLETED",
            "TASKTIMER_LOG_LEVEL",
            "TASKTIMER_LOG_JSON",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.interval == 1000
        assert settings.stop_on_completed is False
        assert settings.log_level == "INFO"
        assert settings.log_json is False

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("TASKTIMER_INTERVAL", "250")
        monkeypatch.setenv("TASKTIMER_STOP_ON_COMPLETED", "true")
        monkeypatch.setenv("TASKTIMER_LOG_LEVEL", "debug")
        monkeypatch.setenv("TASKTIMER_LOG_JSON", "1")

        settings = Settings.from_env()

        assert settings.interval == 250
        assert settings.stop_on_completed is True
        assert settings.log_level == "DEBUG"
        assert settings.log_json is True

    def test_invalid_interval(self, monkeypatch):
        monkeypatch.setenv("TASKTIMER_INTERVAL", "soon")
        assert Settings.from_env().interval == 1000

        monkeypatch.setenv("TASKTIMER_INTERVAL", "-10")
        assert Settings.from_env().interval == 1000

    def test_timer_options_from_settings(self):
        options = TimerOptions.from_settings(Settings(interval=30, stop_on_completed=True))

        assert options == TimerOptions(interval=30, stop_on_completed=True)


class TestTimerOptions:
    """Tests for TimerOptions normalization."""

    def test_falsy_interval_uses_default(self):
        assert TimerOptions(interval=0).interval == 1000
        assert TimerOptions(interval=None).interval == 1000
        assert TimerOptions(interval=-1).interval == 1000

    def test_round_trip(self):
        options = TimerOptions(interval=75, stop_on_completed=True)
        assert TimerOptions.from_dict(options.to_dict()) == options


class TestLogging:
    """Tests for the loguru sink setup."""

    def test_setup_logging_level(self, capsys):
        try:
            setup_logging(level="warning")
            logger.bind(module="test").info("hidden")
            logger.bind(module="test").warning("shown")
        finally:
            logger.remove()
            logger.add(sys.stderr)

        err = capsys.readouterr().err
        assert "shown" in err
        assert "hidden" not in err
