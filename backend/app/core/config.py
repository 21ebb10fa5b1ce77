from __future__ import annotations

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from backend.app.core.errors import ConfigError


class InflowSettings(BaseModel):
    company_id: str = Field(min_length=1)
    api_key: str = Field(min_length=1)
    base_url: str = "https://cloudapi.inflowinventory.com"
    api_version: str = "2025-06-24"
    rate_limit_per_minute: int = Field(default=60, gt=0)
    request_timeout_ms: int = Field(default=30000, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_delay_ms: int = Field(default=1000, ge=0)
    debug: bool = False


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def load_settings() -> InflowSettings:
    """
    Lecture de la config depuis l'environnement (.env chargé si présent).
    Les variables système gardent la priorité sur le fichier.
    """
    load_dotenv(override=False)

    company_id = os.getenv("INFLOW_COMPANY_ID")
    api_key = os.getenv("INFLOW_API_KEY")

    if not company_id:
        raise ConfigError(
            "INFLOW_COMPANY_ID environment variable is required. "
            "Find your Company ID at: inFlow Settings > Integrations > API Keys"
        )
    if not api_key:
        raise ConfigError(
            "INFLOW_API_KEY environment variable is required. "
            "Generate an API key at: inFlow Settings > Integrations > API Keys"
        )

    return InflowSettings(
        company_id=company_id,
        api_key=api_key,
        base_url=os.getenv("INFLOW_BASE_URL", "https://cloudapi.inflowinventory.com").rstrip("/"),
        api_version=os.getenv("INFLOW_API_VERSION", "2025-06-24"),
        rate_limit_per_minute=_int_env("INFLOW_RATE_LIMIT", 60),
        request_timeout_ms=_int_env("INFLOW_REQUEST_TIMEOUT", 30000),
        max_retries=_int_env("INFLOW_MAX_RETRIES", 3),
        retry_delay_ms=_int_env("INFLOW_RETRY_DELAY", 1000),
        debug=os.getenv("INFLOW_DEBUG") == "true",
    )


@lru_cache
def get_settings() -> InflowSettings:
    return load_settings()
