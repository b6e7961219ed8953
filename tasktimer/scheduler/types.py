"""Core type definitions for the task timer.

This module defines:
- Timer states
- Event types and the event envelope
- Timer and task option records
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from ..config import Settings
    from .task import Task


DEFAULT_INTERVAL_MS = 1000


# ============== Timer State ==============

class TimerState(str, Enum):
    """State of a task timer."""
    IDLE = "idle"         # Initial state, and the state after reset()
    RUNNING = "running"   # Started or resumed
    PAUSED = "paused"     # Paused, counters kept
    STOPPED = "stopped"   # Stopped, counters kept until start() or reset()


# ============== Event Types ==============

class EventType(str, Enum):
    """Events emitted by the task timer."""
    TICK = "tick"
    STARTED = "started"
    RESUMED = "resumed"
    PAUSED = "paused"
    STOPPED = "stopped"
    RESET = "reset"
    TASK = "task"                      # A task was executed
    TASK_ADDED = "taskAdded"
    TASK_REMOVED = "taskRemoved"       # Not emitted by reset()
    TASK_COMPLETED = "taskCompleted"   # Run limit or stop date reached
    COMPLETED = "completed"            # Every registered task completed
    ERROR = "error"                    # A task callback raised


@dataclass
class TimerEvent:
    """Event envelope passed to listeners."""
    type: EventType
    source: Any
    data: "Task | None" = None
    error: Exception | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "data": self.data.to_dict() if self.data is not None else None,
            "error": repr(self.error) if self.error is not None else None,
        }


@dataclass(frozen=True)
class TimeInfo:
    """Start/stop timestamps and elapsed time, all in milliseconds."""
    started: int = 0
    stopped: int = 0
    elapsed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "started": self.started,
            "stopped": self.stopped,
            "elapsed": self.elapsed,
        }


# ============== Options ==============

@dataclass
class TimerOptions:
    """Options of a task timer."""
    interval: int = DEFAULT_INTERVAL_MS  # Base tick resolution in milliseconds
    stop_on_completed: bool = False

    def __post_init__(self):
        self.interval = int(self.interval or DEFAULT_INTERVAL_MS)
        if self.interval <= 0:
            self.interval = DEFAULT_INTERVAL_MS
        self.stop_on_completed = bool(self.stop_on_completed)

    def to_dict(self) -> dict[str, Any]:
        return {"interval": self.interval, "stop_on_completed": self.stop_on_completed}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimerOptions":
        return cls(
            interval=data.get("interval", DEFAULT_INTERVAL_MS),
            stop_on_completed=data.get("stop_on_completed", False),
        )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "TimerOptions":
        return cls(
            interval=settings.interval,
            stop_on_completed=settings.stop_on_completed,
        )


TaskCallback = Callable[["Task"], Any]


@dataclass
class TaskOptions:
    """Options of a single task.

    ``stop_date`` is either epoch milliseconds or a ``datetime``.
    """
    callback: TaskCallback | None = None
    name: str | None = None
    tick_interval: int = 1
    total_runs: int | None = None
    stop_date: int | datetime | None = None
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "tick_interval": self.tick_interval,
            "total_runs": self.total_runs,
            "stop_date": self.stop_date,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskOptions":
        return cls(
            callback=data.get("callback"),
            name=data.get("name"),
            tick_interval=data.get("tick_interval", 1),
            total_runs=data.get("total_runs"),
            stop_date=data.get("stop_date"),
            enabled=data.get("enabled", True),
        )
