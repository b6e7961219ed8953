"""Event system: a typed observer registry composed into the timer."""
import threading
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from .types import EventType, TimerEvent

logger = logger.bind(module="scheduler.events")

Listener = Callable[[TimerEvent], None]


@dataclass
class _Subscription:
    listener: Listener
    once: bool = False


def _event_type(value: EventType | str) -> EventType:
    try:
        return EventType(value)
    except ValueError:
        raise ValueError(f"Unknown event type: {value!r}") from None


class EventBus:
    """Per-event-type listener registry.

    Listeners are invoked in registration order and stay registered until
    removed, except ``once`` listeners, which are removed right before their
    first invocation. A listener that raises is logged and the remaining
    listeners still run.
    """

    def __init__(self):
        self._subscriptions: dict[EventType, list[_Subscription]] = {}
        self._lock = threading.Lock()

    def on(self, event_type: EventType | str, listener: Listener) -> "EventBus":
        """Add a listener for the given event type."""
        self._add(event_type, listener, once=False)
        return self

    def once(self, event_type: EventType | str, listener: Listener) -> "EventBus":
        """Add a listener that is removed after its first invocation."""
        self._add(event_type, listener, once=True)
        return self

    def off(self, event_type: EventType | str, listener: Listener | None = None) -> "EventBus":
        """Remove a listener, or every listener of the type if none is given.

        Only the most recently added registration of ``listener`` is removed.
        """
        key = _event_type(event_type)
        with self._lock:
            subs = self._subscriptions.get(key)
            if not subs:
                return self
            if listener is None:
                del self._subscriptions[key]
                return self
            for i in range(len(subs) - 1, -1, -1):
                if subs[i].listener == listener:
                    del subs[i]
                    break
            if not subs:
                del self._subscriptions[key]
        return self

    def remove_all_listeners(self, event_type: EventType | str | None = None) -> "EventBus":
        """Remove all listeners, or those of a single event type."""
        if event_type is not None:
            return self.off(event_type)
        with self._lock:
            self._subscriptions.clear()
        return self

    def listeners(self, event_type: EventType | str) -> list[Listener]:
        """Get the listeners registered for the event type, in call order."""
        key = _event_type(event_type)
        with self._lock:
            return [s.listener for s in self._subscriptions.get(key, [])]

    def listener_count(self, event_type: EventType | str) -> int:
        key = _event_type(event_type)
        with self._lock:
            return len(self._subscriptions.get(key, []))

    def emit(self, event: TimerEvent) -> bool:
        """Deliver an event to its listeners.

        Returns:
            True if the event had listeners, False otherwise
        """
        with self._lock:
            subs = self._subscriptions.get(event.type)
            if not subs:
                return False
            # Snapshot, so listeners may subscribe or unsubscribe while we deliver
            snapshot = list(subs)
            kept = [s for s in subs if not s.once]
            if kept:
                self._subscriptions[event.type] = kept
            else:
                del self._subscriptions[event.type]

        for sub in snapshot:
            try:
                sub.listener(event)
            except Exception as e:
                logger.opt(exception=e).error(
                    f"Listener {sub.listener!r} for '{event.type.value}' event failed: {e}"
                )
        return True

    def _add(self, event_type: EventType | str, listener: Listener, once: bool) -> None:
        if not callable(listener):
            raise TypeError(f"Listener must be callable, got {listener!r}")
        key = _event_type(event_type)
        with self._lock:
            self._subscriptions.setdefault(key, []).append(_Subscription(listener, once))
