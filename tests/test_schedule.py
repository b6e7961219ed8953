"""Tests for time helpers and option records."""
import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from tasktimer.scheduler.schedule import duration_to_human, now_ms, to_ms
from tasktimer.scheduler.types import TaskOptions


class TestToMs:
    """Tests for timestamp normalization."""

    def test_none(self):
        assert to_ms(None) is None

    def test_numbers(self):
        assert to_ms(1500) == 1500
        assert to_ms(1500.9) == 1500

    def test_aware_datetime(self):
        when = datetime(2030, 1, 1, tzinfo=timezone.utc)
        assert to_ms(when) == 1893456000000

    def test_iso_string(self):
        assert to_ms("2030-01-01T00:00:00+00:00") == 1893456000000

    @pytest.mark.parametrize("value", [True, [1], object()])
    def test_invalid(self, value):
        with pytest.raises(TypeError):
            to_ms(value)

    def test_now_ms(self):
        before = int(datetime.now().timestamp() * 1000)
        assert now_ms() >= before


class TestDurationToHuman:
    """Tests for duration formatting."""

    @pytest.mark.parametrize("duration_ms, expected", [
        (250, "250ms"),
        (5_000, "5s"),
        (90_000, "1m 30s"),
        (120_000, "2m"),
        (3_600_000, "1h"),
        (5_400_000, "1h 30m"),
        (86_400_000, "1d"),
        (97_200_000, "1d 3h"),
    ])
    def test_format(self, duration_ms, expected):
        assert duration_to_human(duration_ms) == expected


class TestTaskOptions:
    """Tests for the task options record."""

    def test_from_dict_defaults(self):
        options = TaskOptions.from_dict({"name": "x"})

        assert options.callback is None
        assert options.tick_interval == 1
        assert options.total_runs is None
        assert options.enabled is True

    def test_to_dict_omits_callback(self):
        options = TaskOptions(callback=print, name="p", tick_interval=3)

        assert options.to_dict() == {
            "name": "p",
            "tick_interval": 3,
            "total_runs": None,
            "stop_date": None,
            "enabled": True,
        }
