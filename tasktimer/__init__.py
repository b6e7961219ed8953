"""tasktimer - run many periodic tasks off a single ticking timer."""
from .scheduler import (
    APSchedulerClock,
    ConfigError,
    EventType,
    ManualClock,
    Task,
    TaskConfigError,
    TaskExistsError,
    TaskNotFoundError,
    TaskOptions,
    TaskTimer,
    TaskTimerError,
    TimeInfo,
    TimerEvent,
    TimerOptions,
    TimerState,
)

__version__ = "0.1.0"

__all__ = [
    "APSchedulerClock",
    "ConfigError",
    "EventType",
    "ManualClock",
    "Task",
    "TaskConfigError",
    "TaskExistsError",
    "TaskNotFoundError",
    "TaskOptions",
    "TaskTimer",
    "TaskTimerError",
    "TimeInfo",
    "TimerEvent",
    "TimerOptions",
    "TimerState",
]
