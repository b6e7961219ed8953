"""Task model: one independently paced unit of repeatable work."""
import asyncio
import inspect
from datetime import datetime
from typing import Any, Awaitable, Callable

from loguru import logger

from .errors import TaskConfigError
from .schedule import now_ms, to_ms
from .types import TaskCallback, TaskOptions, TimeInfo

logger = logger.bind(module="scheduler.task")

OnDoneCallback = Callable[[Exception | None], None]

_UNSET: Any = object()


class Task:
    """A named task that runs on every ``tick_interval`` ticks of a timer.

    The task owns its own run bookkeeping (``current_runs``, ``completed``);
    the timer owns the aggregate counters.

    Args:
        callback: Called with the task itself each time the task runs
        name: Unique name within a timer; assigned by the timer when omitted
        tick_interval: Run on ticks where ``tick_count % tick_interval == 0``
        total_runs: Maximum number of runs; ``None`` or ``0`` means unbounded
        stop_date: Epoch milliseconds or ``datetime`` after which the task
            never runs again
        enabled: Disabled tasks are skipped but stay registered
    """

    def __init__(
        self,
        callback: TaskCallback | None = None,
        name: str | None = None,
        tick_interval: int = 1,
        total_runs: int | None = None,
        stop_date: int | datetime | None = None,
        enabled: bool = True,
    ):
        self.name = name
        self.enabled = bool(enabled)
        # Called with the task when reset() clears a completed state
        self._reset_hooks: list[Callable[["Task"], None]] = []
        self._configure(callback, tick_interval, total_runs, stop_date)
        self._clear_state()

    @classmethod
    def from_options(cls, options: TaskOptions) -> "Task":
        return cls(
            callback=options.callback,
            name=options.name,
            tick_interval=options.tick_interval,
            total_runs=options.total_runs,
            stop_date=options.stop_date,
            enabled=options.enabled,
        )

    # ============== Properties ==============

    @property
    def callback(self) -> TaskCallback:
        return self._callback

    @property
    def tick_interval(self) -> int:
        return self._tick_interval

    @property
    def total_runs(self) -> int | None:
        return self._total_runs

    @property
    def stop_date(self) -> int | None:
        """Stop date in epoch milliseconds, if any."""
        return self._stop_date

    @property
    def current_runs(self) -> int:
        return self._current_runs

    @property
    def completed(self) -> bool:
        """Whether the run limit or the stop date has been reached."""
        return self._completed

    @property
    def last_error(self) -> Exception | None:
        """Exception raised by the callback on the latest run, if any."""
        return self._last_error

    @property
    def time(self) -> TimeInfo:
        """First run, completion time and elapsed time in milliseconds.

        ``stopped`` is ``0`` until the task completes.
        """
        if not self._started_at:
            return TimeInfo()
        current = self._stopped_at or now_ms()
        return TimeInfo(
            started=self._started_at,
            stopped=self._stopped_at,
            elapsed=current - self._started_at,
        )

    # ============== Run Logic ==============

    def can_run_on_tick(self, tick_count: int) -> bool:
        """Check whether the task should run on the given tick.

        A passed stop date marks the task completed here, so an expired task
        is reported as completed even if it never ran again.
        """
        if self._completed:
            return False
        if self._is_expired():
            self._mark_completed()
            return False
        return self.enabled and tick_count % self._tick_interval == 0

    def execute(self, on_done: OnDoneCallback | None = None) -> Exception | None:
        """Run the callback and update the run bookkeeping.

        A raising callback still counts as a run. ``on_done`` is called with
        the raised exception (or ``None``) after the bookkeeping is updated.

        Returns:
            The exception raised by the callback, if any
        """
        error: Exception | None = None
        try:
            result = self._callback(self)
            if inspect.isawaitable(result):
                self._dispatch_awaitable(result)
        except Exception as e:
            error = e

        current = now_ms()
        self._current_runs += 1
        self._last_error = error
        if not self._started_at:
            self._started_at = current

        limit_reached = bool(self._total_runs) and self._current_runs >= self._total_runs
        if limit_reached or self._is_expired(current):
            self._mark_completed(current)

        if on_done is not None:
            on_done(error)
        return error

    def reset(
        self,
        callback: TaskCallback | None = _UNSET,
        tick_interval: int = _UNSET,
        total_runs: int | None = _UNSET,
        stop_date: int | datetime | None = _UNSET,
        enabled: bool = _UNSET,
    ) -> "Task":
        """Reconfigure the task and clear its run state.

        Only the given options change. The name is kept, since it is the key
        the task is registered under. A completed task becomes runnable again,
        and the timers it is registered with stop counting it as completed.
        """
        self._configure(
            self._callback if callback is _UNSET else callback,
            self._tick_interval if tick_interval is _UNSET else tick_interval,
            self._total_runs if total_runs is _UNSET else total_runs,
            self._stop_date if stop_date is _UNSET else stop_date,
        )
        if enabled is not _UNSET:
            self.enabled = bool(enabled)

        was_completed = self._completed
        self._clear_state()
        if was_completed:
            for hook in list(self._reset_hooks):
                hook(self)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "tick_interval": self._tick_interval,
            "total_runs": self._total_runs,
            "stop_date": self._stop_date,
            "enabled": self.enabled,
            "current_runs": self._current_runs,
            "completed": self._completed,
            "time": self.time.to_dict(),
        }

    def __repr__(self) -> str:
        return (
            f"Task(name={self.name!r}, tick_interval={self._tick_interval}, "
            f"current_runs={self._current_runs}, completed={self._completed})"
        )

    # ============== Internals ==============

    def _configure(self, callback, tick_interval, total_runs, stop_date) -> None:
        if callback is None:
            raise TaskConfigError(f"Task '{self.name}': a callback is required.")
        if not callable(callback):
            raise TaskConfigError(f"Task '{self.name}': callback must be callable, got {callback!r}.")

        if isinstance(tick_interval, bool) or not isinstance(tick_interval, int) or tick_interval < 1:
            raise TaskConfigError(
                f"Task '{self.name}': tick_interval must be an integer >= 1, got {tick_interval!r}."
            )

        if total_runs is not None and (
            isinstance(total_runs, bool) or not isinstance(total_runs, int) or total_runs < 0
        ):
            raise TaskConfigError(
                f"Task '{self.name}': total_runs must be a non-negative integer, got {total_runs!r}."
            )

        try:
            stop_date_ms = to_ms(stop_date)
        except (TypeError, ValueError) as e:
            raise TaskConfigError(f"Task '{self.name}': invalid stop_date: {e}") from e

        self._callback = callback
        self._tick_interval = tick_interval
        self._total_runs = total_runs or None
        self._stop_date = stop_date_ms

    def _clear_state(self) -> None:
        self._current_runs = 0
        self._completed = False
        self._last_error: Exception | None = None
        self._started_at = 0
        self._stopped_at = 0

    def _is_expired(self, current: int | None = None) -> bool:
        if self._stop_date is None:
            return False
        return (current or now_ms()) >= self._stop_date

    def _mark_completed(self, current: int | None = None) -> None:
        self._completed = True
        self._stopped_at = current or now_ms()
        logger.debug(f"Task '{self.name}' completed after {self._current_runs} runs")

    def _dispatch_awaitable(self, result: Awaitable[Any]) -> None:
        """Hand an async callback's result to the running event loop, unawaited."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(result):
                result.close()
            logger.warning(
                f"Task '{self.name}' returned an awaitable but no event loop is running; dropped it"
            )
            return
        pending = loop.create_task(_await(result))
        _background.add(pending)
        pending.add_done_callback(_background.discard)


# Strong references to callback coroutines scheduled on the event loop
_background: set[asyncio.Task] = set()


async def _await(result: Awaitable[Any]) -> Any:
    return await result
