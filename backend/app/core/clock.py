from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Source de temps injectable.

    - now()       : date murale (UTC, timezone-aware) -> receiveDate
    - monotonic() : secondes, pour le rate limiter
    - sleep()     : attente coopérative (rate limit, backoff)
    """

    @abstractmethod
    def now(self) -> datetime: ...

    @abstractmethod
    def monotonic(self) -> float: ...

    @abstractmethod
    def sleep(self, seconds: float) -> None: ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


class DeterministicClock(Clock):
    """
    Horloge de test : sleep() avance le temps instantanément.
    Toutes les attentes sont enregistrées dans `sleeps`.
    """

    def __init__(self, start: datetime | None = None):
        self._start = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._elapsed = 0.0
        self._lock = threading.Lock()
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self.monotonic())

    def monotonic(self) -> float:
        with self._lock:
            return self._elapsed

    def sleep(self, seconds: float) -> None:
        with self._lock:
            self.sleeps.append(seconds)
            if seconds > 0:
                self._elapsed += seconds

    def advance(self, seconds: float) -> None:
        with self._lock:
            self._elapsed += seconds
