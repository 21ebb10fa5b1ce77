import threading

import pytest

from backend.app.client.rate_limiter import RateLimiter
from backend.app.core.clock import DeterministicClock


class FrozenClock(DeterministicClock):
    """sleep() enregistré mais le temps n'avance pas."""

    def sleep(self, seconds):
        with self._lock:
            self.sleeps.append(seconds)


def test_full_bucket_serves_burst_without_waiting():
    clock = DeterministicClock()
    limiter = RateLimiter(60, clock)

    waits = [limiter.acquire() for _ in range(60)]

    assert waits == [0] * 60
    assert clock.sleeps == []
    assert limiter.tokens == pytest.approx(0.0)


def test_empty_bucket_waits_one_refill_interval():
    """
    GIVEN
    - 60 req/min, bucket vidé

    THEN
    - la requête suivante attend ~1000 ms (1 jeton / seconde)
    """
    clock = DeterministicClock()
    limiter = RateLimiter(60, clock)
    for _ in range(60):
        limiter.acquire()

    wait = limiter.acquire()

    assert wait == pytest.approx(1000, abs=1)
    assert clock.sleeps == [pytest.approx(1.0, abs=0.001)]


def test_refill_is_capped_at_max_tokens():
    clock = DeterministicClock()
    limiter = RateLimiter(60, clock)
    limiter.acquire()

    clock.advance(3600)

    assert limiter.tokens == pytest.approx(60.0)


def test_partial_refill_after_elapsed_time():
    clock = DeterministicClock()
    limiter = RateLimiter(60, clock)
    for _ in range(60):
        limiter.acquire()

    clock.advance(10)

    assert limiter.tokens == pytest.approx(10.0)


def test_at_most_rate_acquisitions_per_window_once_burst_spent():
    """
    GIVEN
    - 60 req/min, bucket vidé au départ

    THEN
    - sur 60 s de temps simulé, pas plus de 60 acquisitions
    """
    clock = DeterministicClock()
    limiter = RateLimiter(60, clock)
    for _ in range(60):
        limiter.acquire()

    start = clock.monotonic()
    acquired = 0
    while True:
        limiter.acquire()
        if clock.monotonic() - start > 60:
            break
        acquired += 1

    assert acquired <= 60


def test_concurrent_acquirers_each_reserve_their_own_slot():
    """
    GIVEN
    - bucket vide, horloge figée
    - 5 threads qui acquièrent en même temps

    THEN
    - chaque thread a réservé un jeton distinct : attentes 1s, 2s, ... 5s
    """
    clock = FrozenClock()
    limiter = RateLimiter(60, clock)
    for _ in range(60):
        limiter.acquire()

    waits = []
    lock = threading.Lock()

    def worker():
        w = limiter.acquire()
        with lock:
            waits.append(w)

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(waits) == [
        pytest.approx(1000 * n, abs=1) for n in range(1, 6)
    ]
    assert limiter.tokens == pytest.approx(-5.0)


def test_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        RateLimiter(0)
