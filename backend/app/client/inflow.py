"""
Client HTTP inFlow.

Une opération logique = jusqu'à max_retries + 1 tentatives :
    rate limiter -> requête (timeout) -> classification -> backoff

Règle de retry (voir core.errors.is_retryable) :
    429, 5xx, ou aucune réponse (réseau / timeout) -> on rejoue
    tout autre statut -> erreur terminale immédiate

Backoff avant la tentative n+1 : retry_delay_ms * 2**n
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping

import requests

from backend.app.client.rate_limiter import RateLimiter
from backend.app.core.clock import Clock, SystemClock
from backend.app.core.config import InflowSettings
from backend.app.core.errors import (
    RemoteApiError,
    RemoteFailure,
    RequestTimeoutError,
    RetryExhaustedError,
    TransportError,
    VersionConflictError,
)

logger = logging.getLogger(__name__)

PAGINATION_KEYS = ("skip", "count", "after", "before", "start")
CONFLICT_STATUSES = {409, 412}
BODY_CHUNK_SIZE = 8192


@dataclass
class ListResult:
    data: list[Any]
    total_count: int | None = None


class InflowClient:
    def __init__(
        self,
        settings: InflowSettings,
        *,
        session: requests.Session | None = None,
        clock: Clock | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        self.settings = settings
        self.clock = clock or SystemClock()
        self.session = session or requests.Session()
        self.rate_limiter = rate_limiter or RateLimiter(settings.rate_limit_per_minute, self.clock)

    # ---------- Helpers ----------
    def build_url(self, path: str) -> str:
        return f"{self.settings.base_url}/{self.settings.company_id}{path}"

    @staticmethod
    def build_filter_params(filters: Mapping[str, Any] | None) -> dict[str, str]:
        params: dict[str, str] = {}
        for key, value in (filters or {}).items():
            if value is None or value == "":
                continue
            if isinstance(value, (list, tuple, dict)):
                params[f"filter[{key}]"] = json.dumps(value)
            elif isinstance(value, bool):
                params[f"filter[{key}]"] = "true" if value else "false"
            else:
                params[f"filter[{key}]"] = str(value)
        return params

    def build_params(
        self,
        *,
        params: Mapping[str, Any] | None = None,
        filters: Mapping[str, Any] | None = None,
        pagination: Mapping[str, Any] | None = None,
        include: list[str] | None = None,
        sort: str | None = None,
        sort_desc: bool | None = None,
        include_count: bool = False,
    ) -> dict[str, str]:
        merged: dict[str, Any] = {**(params or {}), **self.build_filter_params(filters)}

        for key in PAGINATION_KEYS:
            value = (pagination or {}).get(key)
            if value is not None and value != "":
                merged[key] = value

        if include:
            merged["include"] = ",".join(include)
        if sort:
            merged["sort"] = sort
        if sort_desc is not None:
            merged["sortDesc"] = sort_desc
        if include_count:
            merged["includeCount"] = True

        out: dict[str, str] = {}
        for key, value in merged.items():
            if value is None or value == "":
                continue
            if isinstance(value, bool):
                out[key] = "true" if value else "false"
            else:
                out[key] = str(value)
        return out

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
            "Accept": f"application/json;version={self.settings.api_version}",
        }

    # ---------- Execution ----------
    def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        **query: Any,
    ) -> Any:
        response = self._request_with_retry(method, path, body=body, headers=headers, **query)
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def _request_with_retry(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        **query: Any,
    ) -> requests.Response:
        max_retries = self.settings.max_retries
        attempts = max_retries + 1

        for attempt in range(attempts):
            try:
                return self._execute(method, path, body=body, headers=headers, **query)
            except RemoteFailure as err:
                if not err.retryable:
                    raise
                if attempt == max_retries:
                    logger.warning(
                        "Giving up on %s %s after %d attempts: %s", method, path, attempts, err.message
                    )
                    raise RetryExhaustedError(attempts, err) from err

                delay_ms = self.settings.retry_delay_ms * (2 ** attempt)
                logger.warning(
                    "Retrying %s %s (attempt %d/%d) in %dms: %s",
                    method,
                    path,
                    attempt + 2,
                    attempts,
                    delay_ms,
                    err.message,
                )
                self.clock.sleep(delay_ms / 1000.0)

        raise AssertionError("unreachable: retry loop exited without result")

    def _execute(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        **query: Any,
    ) -> requests.Response:
        self.rate_limiter.acquire()

        url = self.build_url(path)
        params = self.build_params(**query)
        timeout_ms = self.settings.request_timeout_ms
        logger.debug("%s %s params=%s", method, path, params)

        kwargs: dict[str, Any] = {
            "params": params,
            "headers": {**self.headers(), **(headers or {})},
            # borne connect / lecture socket ; la borne totale est le deadline ci-dessous
            "timeout": timeout_ms / 1000.0,
            "stream": True,
        }
        if body is not None and method in ("PUT", "POST"):
            kwargs["data"] = json.dumps(body, default=str)

        deadline = self.clock.monotonic() + timeout_ms / 1000.0
        try:
            response = self.session.request(method, url, **kwargs)
            self._read_body(response, deadline, timeout_ms)
        except requests.Timeout as e:
            raise RequestTimeoutError(timeout_ms) from e
        except requests.RequestException as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        logger.debug("Response %s %s", response.status_code, path)

        if not response.ok:
            raise self._api_error(response)
        return response

    def _read_body(self, response: requests.Response, deadline: float, timeout_ms: int) -> None:
        """
        Lit le corps en entier avant `deadline` (horloge monotone).

        Le timeout requests ne borne qu'un connect ou une lecture socket :
        un serveur qui envoie le corps au compte-gouttes ne le déclenche jamais.
        """
        chunks: list[bytes] = []
        try:
            if self.clock.monotonic() > deadline:
                raise RequestTimeoutError(timeout_ms)
            for chunk in response.iter_content(chunk_size=BODY_CHUNK_SIZE):
                chunks.append(chunk)
                if self.clock.monotonic() > deadline:
                    raise RequestTimeoutError(timeout_ms)
        except RequestTimeoutError:
            response.close()
            raise

        # corps déjà lu : .content / .json() ne relisent pas le flux
        response._content = b"".join(chunks)
        response._content_consumed = True

    @staticmethod
    def _api_error(response: requests.Response) -> RemoteApiError:
        payload: Any = None
        try:
            payload = response.json()
        except ValueError:
            pass

        message = None
        api_code = None
        if isinstance(payload, dict):
            message = payload.get("message")
            api_code = payload.get("code")
        if not message:
            message = f"HTTP {response.status_code}: {response.reason}"

        cls = VersionConflictError if response.status_code in CONFLICT_STATUSES else RemoteApiError
        return cls(message, response.status_code, api_code=api_code, payload=payload)

    # ---------- Convenience ----------
    def get(self, path: str, **query: Any) -> Any:
        return self.request("GET", path, **query)

    def get_list(self, path: str, *, include_count: bool = False, **query: Any) -> ListResult:
        response = self._request_with_retry("GET", path, include_count=include_count, **query)
        data = response.json() if response.content else []
        total = None
        if include_count:
            total = int(response.headers.get("X-listCount") or 0)
        return ListResult(data=data, total_count=total)

    def put(self, path: str, body: Any, **query: Any) -> Any:
        return self.request("PUT", path, body=body, **query)

    def post(self, path: str, body: Any, **query: Any) -> Any:
        return self.request("POST", path, body=body, **query)

    def delete(self, path: str, **query: Any) -> Any:
        return self.request("DELETE", path, **query)

    def close(self) -> None:
        self.session.close()
