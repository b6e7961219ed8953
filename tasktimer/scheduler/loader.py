"""Load timer definitions from YAML.

A definition file looks like::

    interval: 500
    stop_on_completed: true
    tasks:
      - name: heartbeat
        tick_interval: 2
        total_runs: 5
        callback: mypkg.jobs:heartbeat

``callback`` is an import path, either ``module:attr`` or ``module.attr``.
"""
import importlib
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import yaml
from loguru import logger

from .clock import Clock
from .errors import ConfigError, TaskConfigError
from .schedule import to_ms
from .task import Task
from .timer import TaskTimer
from .types import TaskOptions, TimerOptions

logger = logger.bind(module="scheduler.loader")

_TIMER_KEYS = {"interval", "stop_on_completed", "tasks"}
_TASK_KEYS = {"name", "tick_interval", "total_runs", "stop_date", "enabled", "callback"}


def resolve_callback(path: str) -> Callable[..., Any]:
    """Import the callable named by ``module:attr`` or ``module.attr``."""
    if not isinstance(path, str) or not path.strip():
        raise ConfigError(f"Invalid callback path: {path!r}")

    path = path.strip()
    if ":" in path:
        module_name, _, attr_path = path.partition(":")
    else:
        module_name, _, attr_path = path.rpartition(".")
    if not module_name or not attr_path:
        raise ConfigError(f"Invalid callback path: {path!r}")

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import module '{module_name}' for callback '{path}': {e}") from e

    for attr in attr_path.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as e:
            raise ConfigError(f"Callback '{path}' not found: {e}") from e

    if not callable(target):
        raise ConfigError(f"Callback '{path}' is not callable")
    return target


def _parse_task(index: int, data: Any) -> TaskOptions:
    if not isinstance(data, dict):
        raise ConfigError(f"tasks[{index}]: expected a mapping, got {type(data).__name__}")

    unknown = set(data) - _TASK_KEYS
    if unknown:
        raise ConfigError(f"tasks[{index}]: unknown keys: {', '.join(sorted(unknown))}")
    if "callback" not in data:
        raise ConfigError(f"tasks[{index}]: 'callback' is required")
    if not isinstance(data.get("enabled", True), bool):
        raise ConfigError(f"tasks[{index}]: 'enabled' must be true or false, got {data['enabled']!r}")

    stop_date = data.get("stop_date")
    if isinstance(stop_date, (str, datetime)):
        try:
            stop_date = to_ms(stop_date)
        except ValueError as e:
            raise ConfigError(f"tasks[{index}]: invalid stop_date: {e}") from e

    options = TaskOptions.from_dict({**data, "stop_date": stop_date})
    options.callback = resolve_callback(data["callback"])
    # Fail on the same values the timer would reject when the task is added
    try:
        Task.from_options(options)
    except TaskConfigError as e:
        raise ConfigError(f"tasks[{index}]: {e}") from e
    return options


def parse_definition(
    data: Any,
    defaults: TimerOptions | None = None,
) -> tuple[TimerOptions, list[TaskOptions]]:
    """Parse an already-loaded definition mapping.

    Timer options missing from the mapping are taken from ``defaults``.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Timer definition must be a mapping, got {type(data).__name__}")

    unknown = set(data) - _TIMER_KEYS
    if unknown:
        raise ConfigError(f"Unknown timer keys: {', '.join(sorted(unknown))}")

    tasks = data.get("tasks") or []
    if not isinstance(tasks, list):
        raise ConfigError("'tasks' must be a list")

    interval = data.get("interval")
    if interval is not None and (isinstance(interval, bool) or not isinstance(interval, int)):
        raise ConfigError(f"'interval' must be an integer number of milliseconds, got {interval!r}")
    if not isinstance(data.get("stop_on_completed", False), bool):
        raise ConfigError(
            f"'stop_on_completed' must be true or false, got {data['stop_on_completed']!r}"
        )

    defaults = defaults or TimerOptions()
    try:
        options = TimerOptions.from_dict({**defaults.to_dict(), **data})
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid timer options: {e}") from e
    return options, [_parse_task(i, t) for i, t in enumerate(tasks)]


def load_definition(
    path: str | Path,
    defaults: TimerOptions | None = None,
) -> tuple[TimerOptions, list[TaskOptions]]:
    """Load timer options and task options from a YAML file."""
    path = Path(path).expanduser()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    options, tasks = parse_definition(data, defaults)
    logger.info(f"Loaded {len(tasks)} tasks from {path}")
    return options, tasks


def build_timer(
    path: str | Path,
    clock: Clock | None = None,
    overrides: dict[str, Any] | None = None,
    defaults: TimerOptions | None = None,
) -> TaskTimer:
    """Create a TaskTimer with the tasks defined in a YAML file.

    Args:
        path: Definition file
        clock: Clock for the timer (default: APScheduler)
        overrides: Timer option values that replace the file's, e.g.
            ``{"interval": 100}``; ``None`` values are ignored
        defaults: Timer options used where the file sets none
    """
    options, tasks = load_definition(path, defaults)
    for key, value in (overrides or {}).items():
        if value is not None:
            setattr(options, key, value)
    timer = TaskTimer(options, clock=clock)
    timer.add(tasks)
    return timer
