"""Tests for loading timer definitions from YAML."""
import os
import sys
import textwrap
from datetime import datetime

import pytest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from tasktimer.scheduler.clock import ManualClock
from tasktimer.scheduler.errors import ConfigError
from tasktimer.scheduler.loader import (
    build_timer,
    load_definition,
    parse_definition,
    resolve_callback,
)
from tasktimer.scheduler.types import TimerOptions

JOBS_MODULE = '''
CALLS = []


def record(task):
    CALLS.append(task.name)


class Jobs:
    @staticmethod
    def nested(task):
        CALLS.append("nested")


NOT_CALLABLE = 5
'''


@pytest.fixture
def jobs_module(tmp_path, monkeypatch):
    (tmp_path / "sample_jobs.py").write_text(JOBS_MODULE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    import sample_jobs
    sample_jobs.CALLS.clear()
    return sample_jobs


@pytest.fixture
def write_yaml(tmp_path):
    def _write(content: str):
        path = tmp_path / "timer.yaml"
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path
    return _write


class TestResolveCallback:
    """Tests for import path resolution."""

    def test_colon_path(self, jobs_module):
        assert resolve_callback("sample_jobs:record") is jobs_module.record

    def test_dotted_path(self, jobs_module):
        assert resolve_callback("sample_jobs.record") is jobs_module.record

    def test_nested_attribute(self, jobs_module):
        assert resolve_callback("sample_jobs:Jobs.nested") is jobs_module.Jobs.nested

    @pytest.mark.parametrize("path", [
        "",
        "   ",
        "noseparator",
        "sample_jobs:",
        "missing_module_xyz:run",
        "sample_jobs:missing",
        "sample_jobs:NOT_CALLABLE",
    ])
    def test_invalid_paths(self, jobs_module, path):
        with pytest.raises(ConfigError):
            resolve_callback(path)

    def test_non_string(self):
        with pytest.raises(ConfigError):
            resolve_callback(42)


class TestLoadDefinition:
    """Tests for parsing definition files."""

    def test_full_definition(self, jobs_module, write_yaml):
        path = write_yaml("""
            interval: 250
            stop_on_completed: true
            tasks:
              - name: heartbeat
                tick_interval: 2
                total_runs: 5
                callback: sample_jobs:record
              - callback: sample_jobs.record
                enabled: false
        """)

        options, tasks = load_definition(path)

        assert options == TimerOptions(interval=250, stop_on_completed=True)
        assert len(tasks) == 2
        assert tasks[0].name == "heartbeat"
        assert tasks[0].tick_interval == 2
        assert tasks[0].total_runs == 5
        assert tasks[0].callback is jobs_module.record
        assert tasks[1].name is None
        assert tasks[1].enabled is False

    def test_defaults_fill_missing_timer_options(self, jobs_module, write_yaml):
        path = write_yaml("""
            tasks:
              - callback: sample_jobs:record
        """)

        options, _ = load_definition(path, defaults=TimerOptions(interval=40, stop_on_completed=True))

        assert options.interval == 40
        assert options.stop_on_completed is True

    def test_empty_file(self, write_yaml):
        options, tasks = load_definition(write_yaml(""))

        assert options == TimerOptions()
        assert tasks == []

    def test_stop_date_formats(self, jobs_module, write_yaml):
        path = write_yaml("""
            tasks:
              - callback: sample_jobs:record
                stop_date: 2030-01-01T00:00:00
              - callback: sample_jobs:record
                stop_date: "2030-01-01T00:00:00"
              - callback: sample_jobs:record
                stop_date: 1893456000000
        """)

        _, tasks = load_definition(path)

        expected = int(datetime(2030, 1, 1).timestamp() * 1000)
        assert tasks[0].stop_date == expected
        assert tasks[1].stop_date == expected
        assert tasks[2].stop_date == 1893456000000

    @pytest.mark.parametrize("content, message", [
        ("- just\n- a list\n", "mapping"),
        ("intervals: 5\n", "Unknown timer keys"),
        ("tasks: nope\n", "must be a list"),
        ("tasks:\n  - name: x\n", "'callback' is required"),
        ("tasks:\n  - callback: sample_jobs:record\n    every: 2\n", "unknown keys: every"),
        ("tasks:\n  - 5\n", "expected a mapping"),
        ("tasks:\n  - callback: sample_jobs:record\n    stop_date: someday\n", "invalid stop_date"),
        ("interval: [1\n", "Invalid YAML"),
        ("interval: abc\n", "'interval' must be an integer"),
        ("interval: true\n", "'interval' must be an integer"),
        ("stop_on_completed: 'yes'\n", "'stop_on_completed' must be true or false"),
        ("tasks:\n  - callback: sample_jobs:record\n    tick_interval: 0\n", r"tasks\[0\]: .*tick_interval"),
        ("tasks:\n  - callback: sample_jobs:record\n    total_runs: -1\n", r"tasks\[0\]: .*total_runs"),
        ("tasks:\n  - callback: sample_jobs:record\n    enabled: 'no'\n", "'enabled' must be true or false"),
    ])
    def test_invalid_definitions(self, jobs_module, write_yaml, content, message):
        with pytest.raises(ConfigError, match=message):
            load_definition(write_yaml(content))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read"):
            load_definition(tmp_path / "absent.yaml")

    def test_parse_definition_none(self):
        options, tasks = parse_definition(None)

        assert options.interval == 1000
        assert tasks == []


class TestBuildTimer:
    """Tests for building a runnable timer from a file."""

    def test_build_and_run(self, jobs_module, write_yaml):
        path = write_yaml("""
            interval: 100
            tasks:
              - name: a
                callback: sample_jobs:record
                total_runs: 2
              - name: b
                tick_interval: 2
                callback: sample_jobs:record
        """)
        clock = ManualClock()

        timer = build_timer(path, clock=clock)
        timer.start()
        clock.advance(3)

        assert timer.task_count == 2
        assert jobs_module.CALLS == ["a", "b", "a", "b"]

    def test_overrides(self, jobs_module, write_yaml):
        path = write_yaml("""
            interval: 100
            tasks:
              - callback: sample_jobs:record
        """)

        timer = build_timer(
            path,
            clock=ManualClock(),
            overrides={"interval": 5, "stop_on_completed": None},
        )

        assert timer.interval == 5
        assert timer.stop_on_completed is False
        assert timer.get("task-1") is not None
