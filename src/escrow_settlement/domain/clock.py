"""Monotonic UTC clock for settlement event timestamps."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

_TICK = timedelta(microseconds=1)


class MonotonicClock:
    """Wall-clock UTC timestamps that never repeat or go backwards.

    If the system clock stalls or steps back, the previous reading is bumped
    by one microsecond so event timestamp order matches insertion order.
    """

    def __init__(self) -> None:
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = datetime.now(UTC)
            if self._last is not None and current <= self._last:
                current = self._last + _TICK
            self._last = current
            return current
