"""
Taxonomie des erreurs du service inFlow.

Deux familles :
- erreurs locales (validation, statut du PO) : détectées AVANT toute écriture
- erreurs distantes (HTTP, timeout, réseau) : produites par le client inFlow

La classification "retryable" ne regarde que `status_code` (None = aucune
réponse reçue), jamais le type de l'exception.
"""

from __future__ import annotations

from typing import Any, Sequence


def is_retryable(status_code: int | None) -> bool:
    """
    True si une tentative peut être rejouée.

    - None  -> pas de réponse (réseau, timeout)
    - 429   -> rate limit distant
    - >=500 -> erreur serveur
    """
    if status_code is None:
        return True
    return status_code == 429 or status_code >= 500


class InflowError(Exception):
    code: str = "INFLOW_ERROR"
    http_status: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": True, "code": self.code, "message": self.message}


class ConfigError(InflowError):
    code = "CONFIG_ERROR"


# ---------- LOCAL ----------
class ValidationError(InflowError):
    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, message: str, failures: Sequence[InflowError] | None = None):
        super().__init__(message)
        self.failures: list[InflowError] = list(failures or [])

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.failures:
            data["errors"] = [f.message for f in self.failures]
        return data


class NotFoundError(ValidationError):
    code = "NOT_FOUND"
    http_status = 404


class OverReceiveError(ValidationError):
    code = "OVER_RECEIVE"


class QuantityMismatchError(ValidationError):
    code = "QUANTITY_MISMATCH"


class StateConflictError(InflowError):
    code = "STATE_CONFLICT"
    http_status = 409

    def __init__(self, message: str, status: str | None = None):
        super().__init__(message)
        self.status = status


def raise_failures(failures: Sequence[InflowError], message: str = "Validation failed") -> None:
    """Une seule erreur -> on la lève telle quelle, sinon agrégat ValidationError."""
    if len(failures) == 1:
        raise failures[0]
    raise ValidationError(message, failures)


# ---------- REMOTE ----------
class RemoteFailure(InflowError):
    """Échec d'une tentative HTTP. status_code=None si aucune réponse."""

    code = "REMOTE_FAILURE"
    http_status = 502
    status_code: int | None = None

    @property
    def retryable(self) -> bool:
        return is_retryable(self.status_code)


class RemoteApiError(RemoteFailure):
    code = "REMOTE_API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int,
        api_code: str | None = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.api_code = api_code
        self.payload = payload
        # 4xx terminal : on renvoie le statut distant tel quel
        if 400 <= status_code < 500:
            self.http_status = status_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["statusCode"] = self.status_code
        if self.api_code:
            data["apiCode"] = self.api_code
        return data


class VersionConflictError(RemoteApiError):
    """Le timestamp du PO a changé entre lecture et écriture. Jamais rejoué."""

    code = "VERSION_CONFLICT"


class TransportError(RemoteFailure):
    code = "TRANSPORT_ERROR"


class RequestTimeoutError(RemoteFailure):
    code = "TIMEOUT"
    http_status = 504

    def __init__(self, timeout_ms: int):
        super().__init__(f"Request timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class RetryExhaustedError(InflowError):
    code = "RETRY_EXHAUSTED"
    http_status = 502

    def __init__(self, attempts: int, last_error: RemoteFailure):
        super().__init__(f"Giving up after {attempts} attempts: {last_error.message}")
        self.attempts = attempts
        self.last_error = last_error
