"""Tick-driven periodic task scheduling.

- types.py: States, event types and option records
- task.py: Task run/completion bookkeeping
- timer.py: TaskTimer state machine and tick evaluation
- events.py: Event system
- clock.py: Wakeup primitives (APScheduler, manual)
- loader.py: YAML timer definitions
"""
from .clock import APSchedulerClock, Clock, ManualClock
from .errors import (
    ConfigError,
    TaskConfigError,
    TaskExistsError,
    TaskNotFoundError,
    TaskTimerError,
)
from .events import EventBus
from .task import Task
from .timer import TaskTimer
from .types import (
    EventType,
    TaskOptions,
    TimeInfo,
    TimerEvent,
    TimerOptions,
    TimerState,
)

__all__ = [
    "APSchedulerClock",
    "Clock",
    "ConfigError",
    "EventBus",
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
