"""Time helpers shared by the timer and its tasks."""
import time
from datetime import datetime


def now_ms() -> int:
    """Get current timestamp in milliseconds."""
    return int(time.time() * 1000)


def to_ms(value: int | float | datetime | str | None) -> int | None:
    """Normalize a timestamp to epoch milliseconds.

    Accepts epoch milliseconds, a ``datetime`` (naive values are taken as
    local time) or an ISO-8601 string. ``None`` passes through.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise TypeError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    raise TypeError(f"Invalid timestamp: {value!r}")


def duration_to_human(duration_ms: int) -> str:
    """Convert a duration in milliseconds to a short description.

    Args:
        duration_ms: Duration in milliseconds

    Returns:
        Human-readable description, e.g. ``"1m 30s"``
    """
    if duration_ms < 1000:
        return f"{duration_ms}ms"

    seconds = duration_ms // 1000
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes, seconds = divmod(seconds, 60)
        return f"{minutes}m {seconds}s" if seconds else f"{minutes}m"
    elif seconds < 86400:
        hours, rest = divmod(seconds, 3600)
        minutes = rest // 60
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"
    else:
        days, rest = divmod(seconds, 86400)
        hours = rest // 3600
        return f"{days}d {hours}h" if hours else f"{days}d"
