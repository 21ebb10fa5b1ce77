from __future__ import annotations

from functools import lru_cache

from backend.app.client.inflow import InflowClient
from backend.app.core.clock import Clock, SystemClock
from backend.app.core.config import get_settings


@lru_cache
def _shared_client() -> InflowClient:
    # un seul client par process : le rate limiter doit être partagé
    return InflowClient(get_settings())


def get_client() -> InflowClient:
    return _shared_client()


def get_clock() -> Clock:
    return SystemClock()


def close_client() -> None:
    """Ferme la session HTTP partagée, si elle a été créée."""
    if _shared_client.cache_info().currsize:
        _shared_client().close()
        _shared_client.cache_clear()
