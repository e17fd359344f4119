"""
Running message statistics for consumers.

The collector is started explicitly by a statistics-enabled iteration (or a
statistics-enabled listener). Later iterations without statistics leave the
count and start time alone; only a new statistics-enabled iteration resets
them.
"""

import datetime
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class StatisticsSnapshot:
    message_count: int
    start_time: Optional[datetime.datetime]
    # seconds
    duration: Optional[float]
    messages_per_second: Optional[float]


class StatisticsCollector:
    """Counts messages and measures elapsed time. Safe to share across threads."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._message_count = 0
        self._start_time: Optional[datetime.datetime] = None
        self._started: Optional[float] = None
        self._ended: Optional[float] = None

    @property
    def is_started(self) -> bool:
        with self._lock:
            return self._started is not None

    def begin(self) -> None:
        """Start (or restart) collection with a zero count."""
        with self._lock:
            self._message_count = 0
            self._start_time = datetime.datetime.now(datetime.timezone.utc)
            self._started = self._clock()
            self._ended = None

    def record(self) -> None:
        with self._lock:
            if self._started is None:
                return
            self._message_count += 1

    def finish(self) -> None:
        """Freeze the elapsed time at the end of an iteration."""
        with self._lock:
            if self._started is not None and self._ended is None:
                self._ended = self._clock()

    def snapshot(self) -> StatisticsSnapshot:
        with self._lock:
            if self._started is None:
                return StatisticsSnapshot(0, None, None, None)

            end = self._ended if self._ended is not None else self._clock()
            duration = max(end - self._started, 0.0)
            rate = self._message_count / duration if duration > 0 else None
            return StatisticsSnapshot(
                message_count=self._message_count,
                start_time=self._start_time,
                duration=duration,
                messages_per_second=rate,
            )
