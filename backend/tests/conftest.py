import copy
import json

import pytest
import requests
from fastapi.testclient import TestClient

from backend.app.api.deps import get_client, get_clock
from backend.app.client.inflow import InflowClient
from backend.app.client.rate_limiter import RateLimiter
from backend.app.core.clock import DeterministicClock
from backend.app.core.config import InflowSettings
from backend.app.core.errors import VersionConflictError
from backend.app.main import create_app


# ---------- HTTP ----------
def make_response(status_code=200, body=None, headers=None, reason="OK"):
    """requests.Response construite à la main (pas de réseau)."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.encoding = "utf-8"
    response._content = b"" if body is None else json.dumps(body).encode("utf-8")
    response._content_consumed = True
    response.headers.update(headers or {})
    return response


class FakeSession:
    """
    Remplace requests.Session.

    `outcomes` : réponses (ou exceptions) renvoyées dans l'ordre,
    la dernière est répétée. Chaque appel est enregistré dans `calls`.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes) or [make_response(200, {})]
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        index = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


@pytest.fixture
def settings():
    return InflowSettings(
        company_id="company-1",
        api_key="secret-key",
        base_url="https://api.test",
        rate_limit_per_minute=600,
        request_timeout_ms=5000,
        max_retries=3,
        retry_delay_ms=1000,
    )


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def make_client(settings, clock):
    """Fabrique un InflowClient branché sur une FakeSession."""

    def _make(*outcomes, **overrides):
        s = settings.model_copy(update=overrides)
        session = FakeSession(*outcomes)
        client = InflowClient(
            s,
            session=session,
            clock=clock,
            rate_limiter=RateLimiter(s.rate_limit_per_minute, clock),
        )
        return client, session

    return _make


# ---------- Purchase orders ----------
def make_po(
    lines=(("line-1", "prod-1", 10, "Widget"),),
    receive_lines=(),
    status="Open",
    po_id="po-1",
    timestamp="0000000000000001",
):
    """
    PO au format inFlow.

    lines         : (lineId, productId, qty commandée, nom produit)
    receive_lines : dicts déjà au format inFlow
    """
    return {
        "purchaseOrderId": po_id,
        "orderNumber": "PO-000123",
        "vendorId": "vendor-1",
        "status": status,
        "locationId": "loc-main",
        "timestamp": timestamp,
        "lines": [
            {
                "purchaseOrderLineId": line_id,
                "productId": product_id,
                "product": {"productId": product_id, "name": name},
                "quantity": {"standardQuantity": str(qty), "uomQuantity": str(qty)},
            }
            for line_id, product_id, qty, name in lines
        ],
        "receiveLines": list(receive_lines),
        "unstockLines": [],
    }


def receive_line(entry_id, product_id, qty, receive_date, timestamp=None, serials=None):
    quantity = {"standardQuantity": str(qty), "uomQuantity": str(qty)}
    if serials:
        quantity["serialNumbers"] = list(serials)
    entry = {
        "purchaseOrderReceiveLineId": entry_id,
        "productId": product_id,
        "quantity": quantity,
        "receiveDate": receive_date,
        "locationId": "loc-main",
    }
    if timestamp:
        entry["timestamp"] = timestamp
    return entry


class FakeInflowClient:
    """
    Un seul PO en mémoire.

    - get : copie du PO courant (None si inconnu)
    - put : contrôle du timestamp (VersionConflictError si périmé),
            remplace receiveLines, incrémente le timestamp
    """

    def __init__(self, po=None):
        self.po = po
        self.gets = []
        self.writes = []

    def get(self, path, **query):
        self.gets.append((path, query))
        return copy.deepcopy(self.po) if self.po else {}

    def put(self, path, body, **query):
        if body.get("timestamp") != self.po.get("timestamp"):
            raise VersionConflictError("Record was modified by another user", 409)
        self.writes.append(copy.deepcopy(body))

        self.po["receiveLines"] = copy.deepcopy(body["receiveLines"])
        if "unstockLines" in body:
            self.po["unstockLines"] = copy.deepcopy(body["unstockLines"])
        self.po["timestamp"] = f"{int(self.po['timestamp']) + 1:016d}"
        return copy.deepcopy(self.po)


@pytest.fixture
def fake_client():
    return FakeInflowClient(make_po())


# ---------- API ----------
@pytest.fixture
def app(fake_client, clock):
    application = create_app(debug=False)
    application.dependency_overrides[get_client] = lambda: fake_client
    application.dependency_overrides[get_clock] = lambda: clock
    return application


@pytest.fixture
def api(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def po_factory():
    return make_po


@pytest.fixture
def entry_factory():
    return receive_line


@pytest.fixture
def response_factory():
    return make_response
