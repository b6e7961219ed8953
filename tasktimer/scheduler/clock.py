"""Clock implementations that drive the timer's ticks.

A clock only has to call a callback repeatedly, roughly every ``interval_ms``
milliseconds, until the returned handle is cancelled. Precision is not
required.
"""
import itertools
import threading
from typing import Any, Callable, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler, STATE_STOPPED
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

logger = logger.bind(module="scheduler.clock")

TickCallback = Callable[[], None]


# ============== Protocol Definitions ==============

class Clock(Protocol):
    """Protocol for the periodic wakeup primitive used by the timer."""

    def schedule(self, callback: TickCallback, interval_ms: int) -> Any:
        """Call ``callback`` every ``interval_ms`` until cancelled; return a handle."""
        ...

    def cancel(self, handle: Any) -> None:
        """Stop the wakeups of a handle returned by ``schedule``."""
        ...


# ============== APScheduler Clock ==============

class APSchedulerClock:
    """Clock backed by an APScheduler interval job.

    By default a private ``BackgroundScheduler`` is used, so ticks run on
    APScheduler's worker threads. Any APScheduler 3.x scheduler can be passed
    instead, e.g. an ``AsyncIOScheduler`` to tick on an event loop. Jobs run
    with ``max_instances=1`` and ``coalesce=True``: a slow tick delays the
    next one rather than overlapping it, and missed wakeups collapse into one.
    """

    def __init__(self, scheduler: BaseScheduler | None = None):
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or BackgroundScheduler(daemon=True)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def scheduler(self) -> BaseScheduler:
        return self._scheduler

    def schedule(self, callback: TickCallback, interval_ms: int) -> str:
        with self._lock:
            if self._scheduler.state == STATE_STOPPED:
                self._scheduler.start()
                logger.debug("Started APScheduler for the task timer clock")
            job_id = f"tasktimer-tick-{next(self._ids)}"

        self._scheduler.add_job(
            callback,
            trigger=IntervalTrigger(seconds=interval_ms / 1000),
            id=job_id,
            name=job_id,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
        )
        logger.debug(f"Scheduled {job_id} every {interval_ms}ms")
        return job_id

    def cancel(self, handle: str) -> None:
        try:
            self._scheduler.remove_job(handle)
        except JobLookupError:
            return
        logger.debug(f"Cancelled {handle}")

    def shutdown(self, wait: bool = False) -> None:
        """Shut the scheduler down if this clock created it."""
        with self._lock:
            if self._owns_scheduler and self._scheduler.state != STATE_STOPPED:
                self._scheduler.shutdown(wait=wait)


# ============== Manual Clock ==============

class ManualClock:
    """Deterministic clock that only ticks when ``advance`` is called.

    Useful for tests and simulations: every call to ``advance`` fires each
    scheduled callback once per tick, synchronously.
    """

    def __init__(self):
        self._jobs: dict[int, tuple[TickCallback, int]] = {}
        self._ids = itertools.count(1)

    @property
    def active(self) -> bool:
        return bool(self._jobs)

    @property
    def intervals(self) -> list[int]:
        """Intervals (ms) of the currently scheduled callbacks."""
        return [interval for _, interval in self._jobs.values()]

    def schedule(self, callback: TickCallback, interval_ms: int) -> int:
        handle = next(self._ids)
        self._jobs[handle] = (callback, interval_ms)
        return handle

    def cancel(self, handle: int) -> None:
        self._jobs.pop(handle, None)

    def advance(self, ticks: int = 1) -> int:
        """Fire the scheduled callbacks ``ticks`` times.

        Callbacks cancelled during a tick do not fire again.

        Returns:
            Number of callback invocations
        """
        fired = 0
        for _ in range(ticks):
            for handle in list(self._jobs):
                job = self._jobs.get(handle)
                if job is None:
                    continue
                job[0]()
                fired += 1
        return fired
