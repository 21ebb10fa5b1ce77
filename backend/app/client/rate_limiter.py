from __future__ import annotations

import math
import threading

from backend.app.core.clock import Clock, SystemClock


class RateLimiter:
    """
    Token bucket : `requests_per_minute` jetons max, recharge continue.

    Règle :
        refill_rate = rpm / 60000 jetons par ms
        si jetons < 1 -> attendre ceil((1 - jetons) / refill_rate) ms

    Propriétés :
    - (jetons, last_refill) mis à jour sous verrou, une acquisition à la fois
    - le jeton est réservé sous verrou, l'attente se fait hors verrou
      (le compteur peut devenir négatif : les appelants suivants attendent plus)
    """

    def __init__(self, requests_per_minute: int, clock: Clock | None = None):
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be > 0")
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self.max_tokens = float(requests_per_minute)
        self.refill_rate = requests_per_minute / 60000.0  # par ms
        self._tokens = self.max_tokens
        self._last_refill = self._clock.monotonic()

    @property
    def tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    def _refill(self) -> None:
        now = self._clock.monotonic()
        elapsed_ms = (now - self._last_refill) * 1000.0
        if elapsed_ms > 0:
            self._tokens = min(self.max_tokens, self._tokens + elapsed_ms * self.refill_rate)
        self._last_refill = now

    def acquire(self) -> float:
        """Bloque jusqu'à obtenir un jeton. Retourne l'attente en ms (0 si immédiat)."""
        with self._lock:
            self._refill()
            wait_ms = 0
            if self._tokens < 1:
                wait_ms = math.ceil((1 - self._tokens) / self.refill_rate)
            self._tokens -= 1

        if wait_ms:
            self._clock.sleep(wait_ms / 1000.0)
        return wait_ms
