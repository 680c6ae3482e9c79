# core/cooldowns.py
"""
Per-game refresh cooldowns.

The registry maps a game id to the earliest instant another refresh is
allowed. Entries are only meaningful while that instant is in the future;
the ticker reaps the rest so the registry never grows with dead entries and
displayed countdowns stay current.
"""
import datetime
import os
import threading
from typing import Callable, Dict, Optional

from .logger import get_logger

logger = get_logger(__name__)

TICK_SECONDS = float(os.getenv("TICK_SECONDS", "1"))


class CooldownRegistry:
    """Keyed store of game id -> next allowed refresh time."""

    def __init__(self):
        self._entries: Dict[str, datetime.datetime] = {}
        self._lock = threading.Lock()

    def is_blocked(self, item_id: str, now: datetime.datetime) -> bool:
        with self._lock:
            next_allowed = self._entries.get(item_id)
        return next_allowed is not None and next_allowed > now

    def remaining_time(
        self, item_id: str, now: datetime.datetime
    ) -> Optional[datetime.timedelta]:
        """Time left on the cooldown, or None if there is none (or it elapsed)."""
        with self._lock:
            next_allowed = self._entries.get(item_id)
        if next_allowed is None:
            return None
        remaining = next_allowed - now
        if remaining <= datetime.timedelta(0):
            return None
        return remaining

    def set(self, item_id: str, next_allowed_at: datetime.datetime) -> None:
        """Last writer wins."""
        with self._lock:
            self._entries[item_id] = next_allowed_at
        logger.debug("Cooldown for %s set until %s", item_id, next_allowed_at)

    def get(self, item_id: str) -> Optional[datetime.datetime]:
        with self._lock:
            return self._entries.get(item_id)

    def sweep_expired(self, now: datetime.datetime) -> int:
        """Drop every entry whose time has come. Returns the number removed."""
        with self._lock:
            expired = [k for k, ts in self._entries.items() if ts <= now]
            for k in expired:
                del self._entries[k]
        if expired:
            logger.debug("Cooldowns expired: %s", expired)
        return len(expired)

    def snapshot(self) -> Dict[str, datetime.datetime]:
        with self._lock:
            return dict(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, item_id: str) -> bool:
        with self._lock:
            return item_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CooldownTicker:
    """
    Background thread that sweeps the registry every `interval` seconds and
    then calls `on_tick(removed_count)`, e.g. to redraw countdowns.

    Usage:
        ticker = CooldownTicker(registry, clock)
        ticker.start()
        ...
        ticker.stop()
    """

    def __init__(
        self,
        registry: CooldownRegistry,
        clock,
        interval: float = TICK_SECONDS,
        on_tick: Optional[Callable[[int], None]] = None,
    ):
        self.registry = registry
        self.clock = clock
        self.interval = max(0.01, float(interval))
        self.on_tick = on_tick
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="CooldownTicker"
        )
        self._thread.start()
        logger.debug("Cooldown ticker started (every %.2fs)", self.interval)

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.debug("Cooldown ticker stopped")

    def tick(self) -> int:
        removed = self.registry.sweep_expired(self.clock.now())
        if self.on_tick is not None:
            try:
                self.on_tick(removed)
            except Exception as e:
                logger.exception("Cooldown tick callback failed: %s", e)
        return removed

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.tick()
