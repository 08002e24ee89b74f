from __future__ import annotations

import threading
import time
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class TimedCache(Generic[T]):
    """
    Holds one computed value for ttl seconds. A compute that raises leaves the
    previous value (if any) untouched.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = float(ttl)
        self._clock = clock
        self._lock = threading.Lock()
        self._value: T | None = None
        self._timestamp: float | None = None

    def _fresh(self, now: float) -> bool:
        return self._timestamp is not None and now - self._timestamp < self.ttl

    def get_or_compute(self, compute: Callable[[], T]) -> T:
        with self._lock:
            now = self._clock()
            if self._fresh(now):
                return self._value  # type: ignore[return-value]
            value = compute()
            self._value = value
            self._timestamp = now
            return value

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
            self._timestamp = None

    @property
    def age(self) -> float | None:
        if self._timestamp is None:
            return None
        return self._clock() - self._timestamp
