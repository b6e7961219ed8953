"""Task timer: runs many periodic tasks off a single ticking clock.

The timer advances in ticks of ``interval`` milliseconds. On every tick it
evaluates each registered task, runs the ones that are due, keeps the
aggregate counters and emits events for every state transition.
"""
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Any, Iterator, Sequence, Union

from loguru import logger

from .clock import APSchedulerClock, Clock
from .errors import TaskConfigError, TaskExistsError, TaskNotFoundError
from .events import EventBus, Listener
from .schedule import now_ms
from .task import Task
from .types import (
    DEFAULT_INTERVAL_MS,
    EventType,
    TaskCallback,
    TaskOptions,
    TimeInfo,
    TimerEvent,
    TimerOptions,
    TimerState,
)

logger = logger.bind(module="scheduler.timer")

TaskInput = Union[Task, TaskOptions, Mapping[str, Any], TaskCallback]

_TASK_OPTION_KEYS = frozenset(
    ("callback", "name", "tick_interval", "total_runs", "stop_date", "enabled")
)


@dataclass(slots=True)
class _Runtime:
    """Per-run state of a timer. Replaced as a whole on reset()."""
    state: TimerState = TimerState.IDLE
    tasks: dict[str, Task] = field(default_factory=dict)
    tick_count: int = 0
    run_count: int = 0
    start_time: int = 0
    stop_time: int = 0
    completed_count: int = 0


class TaskTimer:
    """A timer for running periodic tasks on interval ticks.

    Usage:
        timer = TaskTimer(TimerOptions(interval=1000))

        # Runs every 5 ticks, 10 times in total
        timer.add(TaskOptions(
            name="heartbeat",
            tick_interval=5,
            total_runs=10,
            callback=lambda task: print(f"{task.name} ran {task.current_runs} times"),
        ))
        timer.on("tick", lambda event: print(event.source.tick_count))
        timer.start()

    Lifecycle methods never raise for a call made in the "wrong" state; they
    are no-ops instead. ``add`` and ``remove`` are strict.

    Args:
        options: Timer options, a dict of them, or the interval in milliseconds
        clock: Wakeup primitive; defaults to an APScheduler background clock
    """

    def __init__(
        self,
        options: TimerOptions | Mapping[str, Any] | int | None = None,
        clock: Clock | None = None,
    ):
        if isinstance(options, TimerOptions):
            self._options = replace(options)
        elif isinstance(options, Mapping):
            self._options = TimerOptions.from_dict(options)
        elif isinstance(options, int) and not isinstance(options, bool):
            self._options = TimerOptions(interval=options)
        elif options is None:
            self._options = TimerOptions()
        else:
            raise TypeError(f"Invalid timer options: {options!r}")

        self._clock: Clock = clock if clock is not None else APSchedulerClock()
        self._events = EventBus()
        # Serializes ticks with lifecycle and registry calls
        self._lock = threading.RLock()
        self._handle: Any = None
        self._handle_interval = 0
        self._generation = 0
        # Bumped by start() and reset(); lets a tick notice it was restarted
        self._epoch = 0
        self._rt = _Runtime()

    # ============== Properties ==============

    @property
    def interval(self) -> int:
        """Base tick resolution in milliseconds.

        Can be changed at any time; a running timer picks up the new value
        after the tick in progress.
        """
        return self._options.interval

    @interval.setter
    def interval(self, value: int) -> None:
        value = int(value or 0)
        self._options.interval = value if value > 0 else DEFAULT_INTERVAL_MS

    @property
    def stop_on_completed(self) -> bool:
        """Whether the timer stops itself once every task has completed."""
        return self._options.stop_on_completed

    @stop_on_completed.setter
    def stop_on_completed(self, value: bool) -> None:
        self._options.stop_on_completed = bool(value)

    @property
    def options(self) -> TimerOptions:
        return replace(self._options)

    @property
    def state(self) -> TimerState:
        return self._rt.state

    @property
    def time(self) -> TimeInfo:
        """Start/stop time of the latest run and the elapsed time (ms).

        ``stopped`` is ``0`` unless the timer is stopped.
        """
        rt = self._rt
        if not rt.start_time:
            return TimeInfo()
        current = rt.stop_time if rt.state is TimerState.STOPPED else now_ms()
        return TimeInfo(
            started=rt.start_time,
            stopped=rt.stop_time,
            elapsed=current - rt.start_time,
        )

    @property
    def tick_count(self) -> int:
        """Ticks elapsed since the latest start(); kept across pause/resume."""
        return self._rt.tick_count

    @property
    def task_count(self) -> int:
        return len(self._rt.tasks)

    @property
    def run_count(self) -> int:
        """Total task executions since the latest start()."""
        return self._rt.run_count

    @property
    def completed_count(self) -> int:
        """Number of registered tasks that have completed."""
        return self._rt.completed_count

    @property
    def tasks(self) -> list[Task]:
        """Registered tasks in evaluation order."""
        return list(self._rt.tasks.values())

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def events(self) -> EventBus:
        return self._events

    def __len__(self) -> int:
        return len(self._rt.tasks)

    def __contains__(self, name: object) -> bool:
        if isinstance(name, Task):
            return self._rt.tasks.get(name.name) is name
        return name in self._rt.tasks

    def __iter__(self) -> Iterator[Task]:
        return iter(self.tasks)

    def __repr__(self) -> str:
        return (
            f"TaskTimer(state={self.state.value}, interval={self.interval}, "
            f"tasks={self.task_count}, ticks={self.tick_count})"
        )

    # ============== Events ==============

    def on(self, event_type: EventType | str, listener: Listener) -> "TaskTimer":
        self._events.on(event_type, listener)
        return self

    def once(self, event_type: EventType | str, listener: Listener) -> "TaskTimer":
        self._events.once(event_type, listener)
        return self

    def off(self, event_type: EventType | str, listener: Listener | None = None) -> "TaskTimer":
        self._events.off(event_type, listener)
        return self

    def remove_all_listeners(self, event_type: EventType | str | None = None) -> "TaskTimer":
        self._events.remove_all_listeners(event_type)
        return self

    def listener_count(self, event_type: EventType | str) -> int:
        return self._events.listener_count(event_type)

    # ============== Task Registry ==============

    def get(self, name: str) -> Task | None:
        """Get the task with the given name, or None."""
        return self._rt.tasks.get(name)

    def add(self, tasks: TaskInput | Sequence[TaskInput]) -> "TaskTimer":
        """Add one or more tasks.

        Each item is a ``Task``, ``TaskOptions``, a dict of task options or a
        bare callback. Tasks without a name get the lowest free ``task-N``.
        Either every task is added, or none is.

        Raises:
            TaskConfigError: If an item is not a valid task
            TaskExistsError: If a name is already taken
        """
        items = list(tasks) if isinstance(tasks, (list, tuple)) else [tasks]

        with self._lock:
            registry = self._rt.tasks
            pending: list[tuple[Task, str]] = []
            taken: set[str] = set()
            for item in items:
                task = self._resolve_task(item)
                if any(task is other for other, _ in pending):
                    raise TaskExistsError(task.name or repr(task))
                name = task.name or self._new_task_name(taken)
                if name in registry or name in taken:
                    raise TaskExistsError(name)
                taken.add(name)
                pending.append((task, name))

            for task, name in pending:
                task.name = name
                registry[name] = task
                task._reset_hooks.append(self._on_task_reset)
                if task.completed:
                    self._rt.completed_count += 1
                logger.debug(f"Added task '{name}' (tick_interval={task.tick_interval})")
                self._emit(EventType.TASK_ADDED, task)
        return self

    def remove(self, task: str | Task) -> "TaskTimer":
        """Remove a task by name or instance.

        Raises:
            TaskNotFoundError: If no such task is registered
        """
        name = task if isinstance(task, str) else getattr(task, "name", None)

        with self._lock:
            rt = self._rt
            found = rt.tasks.get(name) if name else None
            if found is None:
                raise TaskNotFoundError(name)

            if found.completed and rt.completed_count > 0:
                rt.completed_count -= 1
            del rt.tasks[name]
            self._detach(found)
            logger.debug(f"Removed task '{name}'")
            self._emit(EventType.TASK_REMOVED, found)
        return self

    # ============== Lifecycle ==============

    def start(self) -> "TaskTimer":
        """Start the timer, or restart it if already started.

        Resets the tick/run counters and the start/stop time but keeps the
        registered tasks.
        """
        with self._lock:
            self._stop_clock()
            self._epoch += 1
            rt = self._rt
            rt.start_time = now_ms()
            rt.stop_time = 0
            rt.tick_count = 0
            rt.run_count = 0
            self._run_clock()
            rt.state = TimerState.RUNNING
            logger.info(f"Timer started: interval={self.interval}ms, tasks={self.task_count}")
            self._emit(EventType.STARTED)
        return self

    def pause(self) -> "TaskTimer":
        """Pause a running timer; counters are kept."""
        with self._lock:
            if self._rt.state is not TimerState.RUNNING:
                return self
            self._stop_clock()
            self._rt.state = TimerState.PAUSED
            logger.info(f"Timer paused at tick {self.tick_count}")
            self._emit(EventType.PAUSED)
        return self

    def resume(self) -> "TaskTimer":
        """Resume a paused timer from where it left off."""
        with self._lock:
            if self._rt.state is not TimerState.PAUSED:
                return self
            self._run_clock()
            self._rt.state = TimerState.RUNNING
            logger.info(f"Timer resumed at tick {self.tick_count}")
            self._emit(EventType.RESUMED)
        return self

    def stop(self) -> "TaskTimer":
        """Stop a running timer. Tasks and counters stay until start() or reset()."""
        with self._lock:
            rt = self._rt
            if rt.state is not TimerState.RUNNING:
                return self
            self._stop_clock()
            rt.stop_time = now_ms()
            rt.state = TimerState.STOPPED
            logger.info(
                f"Timer stopped: ticks={rt.tick_count}, runs={rt.run_count}, "
                f"elapsed={rt.stop_time - rt.start_time}ms"
            )
            self._emit(EventType.STOPPED)
        return self

    def reset(self) -> "TaskTimer":
        """Stop the timer and remove every task silently.

        No ``taskRemoved`` events are emitted; only ``reset``.
        """
        with self._lock:
            self._stop_clock()
            self._epoch += 1
            for task in self._rt.tasks.values():
                self._detach(task)
            self._rt = _Runtime()
            logger.info("Timer reset")
            self._emit(EventType.RESET)
        return self

    def close(self) -> None:
        """Stop the clock and release it (shuts down a private APScheduler)."""
        with self._lock:
            self.stop()
            self._stop_clock()
        shutdown = getattr(self._clock, "shutdown", None)
        if shutdown is not None:
            shutdown()

    def __enter__(self) -> "TaskTimer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ============== Tick ==============

    def _on_clock(self, generation: int) -> None:
        """Clock callback; runs one tick unless the wakeup is stale."""
        with self._lock:
            if generation != self._generation or self._handle is None:
                return
            self._tick()

            if generation != self._generation or self._handle is None:
                return
            self._rt.state = TimerState.RUNNING
            if self._handle_interval != self._options.interval:
                logger.debug(f"Interval changed to {self._options.interval}ms, rescheduling")
                self._stop_clock()
                self._run_clock()

    def _tick(self) -> None:
        """Evaluate every task once, then advance the tick count."""
        epoch = self._epoch
        tick = self._rt.tick_count

        for task in list(self._rt.tasks.values()):
            if epoch != self._epoch:
                # Restarted or reset from inside a callback
                return
            if self._rt.tasks.get(task.name) is not task:
                continue

            was_completed = task.completed
            if not task.can_run_on_tick(tick):
                if task.completed and not was_completed:
                    self._on_task_completed(task)
                continue

            task.execute(partial(self._on_task_done, task, epoch))

        if epoch != self._epoch:
            return
        self._rt.tick_count += 1
        self._emit(EventType.TICK)

    def _on_task_done(self, task: Task, epoch: int, error: Exception | None) -> None:
        if error is not None:
            self._report_error(task, error)
        if epoch != self._epoch:
            # The callback restarted or reset the timer; this run belongs to the old one
            return

        self._rt.run_count += 1
        self._emit(EventType.TASK, task)
        if task.completed:
            self._on_task_completed(task)

    def _on_task_completed(self, task: Task) -> None:
        rt = self._rt
        # The callback may have removed its own task
        if rt.tasks.get(task.name) is task:
            rt.completed_count += 1
        logger.info(f"Task '{task.name}' completed after {task.current_runs} runs")
        self._emit(EventType.TASK_COMPLETED, task)

        if rt.tasks and rt.completed_count == len(rt.tasks):
            logger.info(f"All {len(rt.tasks)} tasks completed")
            self._emit(EventType.COMPLETED)
            if self.stop_on_completed:
                self.stop()

    def _on_task_reset(self, task: Task) -> None:
        """A registered task was reset out of its completed state."""
        with self._lock:
            rt = self._rt
            if rt.tasks.get(task.name) is task and rt.completed_count > 0:
                rt.completed_count -= 1

    def _report_error(self, task: Task, error: Exception) -> None:
        if self._events.listener_count(EventType.ERROR):
            logger.warning(f"Task '{task.name}' callback raised: {error!r}")
            self._emit(EventType.ERROR, task, error=error)
        else:
            logger.opt(exception=error).error(f"Task '{task.name}' callback raised: {error}")

    # ============== Internals ==============

    def _emit(
        self,
        event_type: EventType,
        data: Task | None = None,
        error: Exception | None = None,
    ) -> bool:
        return self._events.emit(TimerEvent(type=event_type, source=self, data=data, error=error))

    def _run_clock(self) -> None:
        self._generation += 1
        self._handle_interval = self._options.interval
        self._handle = self._clock.schedule(
            partial(self._on_clock, self._generation), self._handle_interval
        )

    def _stop_clock(self) -> None:
        if self._handle is not None:
            handle, self._handle = self._handle, None
            self._clock.cancel(handle)

    def _detach(self, task: Task) -> None:
        if self._on_task_reset in task._reset_hooks:
            task._reset_hooks.remove(self._on_task_reset)

    def _new_task_name(self, taken: set[str]) -> str:
        num = 1
        while f"task-{num}" in self._rt.tasks or f"task-{num}" in taken:
            num += 1
        return f"task-{num}"

    @staticmethod
    def _resolve_task(item: Any) -> Task:
        """Turn one ``add`` input into a Task."""
        if isinstance(item, Task):
            return item
        if isinstance(item, TaskOptions):
            return Task.from_options(item)
        if isinstance(item, Mapping):
            unknown = set(item) - _TASK_OPTION_KEYS
            if unknown:
                raise TaskConfigError(f"Unknown task options: {', '.join(sorted(unknown))}")
            return Task.from_options(TaskOptions.from_dict(dict(item)))
        if callable(item):
            return Task(callback=item)
        raise TaskConfigError(f"Cannot add {item!r} as a task")
