# core/clock.py
"""
Time sources and timestamp helpers.

All instants handled by the dashboard are timezone-aware UTC datetimes.
Cooldowns compare absolute instants, never elapsed durations, so a clock
only has to answer "what time is it now".
"""
import datetime
import threading

import pytz


class SystemClock:
    """Wall clock used in production."""

    def now(self) -> datetime.datetime:
        return datetime.datetime.now(tz=pytz.UTC)


class ManualClock:
    """
    A clock that only moves when told to. Used to drive cooldowns and the
    ticker deterministically.
    """

    def __init__(self, start: datetime.datetime | None = None):
        self._now = ensure_utc(start) if start else datetime.datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=pytz.UTC
        )
        self._lock = threading.Lock()

    def now(self) -> datetime.datetime:
        with self._lock:
            return self._now

    def set(self, when: datetime.datetime) -> None:
        with self._lock:
            self._now = ensure_utc(when)

    def advance(self, seconds: float = 0.0, **kwargs) -> datetime.datetime:
        delta = datetime.timedelta(seconds=seconds, **kwargs)
        with self._lock:
            self._now = self._now + delta
            return self._now


def ensure_utc(value: datetime.datetime) -> datetime.datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def parse_timestamp(value) -> datetime.datetime:
    """
    Parse a backend timestamp: an ISO-8601 string ("2024-05-01T10:00:00.000Z"
    or with an explicit offset), epoch milliseconds, or a datetime.
    Raises ValueError when the value cannot be read.
    """
    if isinstance(value, datetime.datetime):
        return ensure_utc(value)
    if isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        # JavaScript Date.now() style
        try:
            return datetime.datetime.fromtimestamp(value / 1000.0, tz=pytz.UTC)
        except (OverflowError, OSError, ValueError):
            raise ValueError(f"epoch milliseconds out of range: {value!r}") from None
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"not a timestamp: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"not an ISO-8601 timestamp: {value!r}") from None
    return ensure_utc(parsed)
