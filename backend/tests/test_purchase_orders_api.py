import json

import pytest
from fastapi.testclient import TestClient

from backend.app.api import deps
from backend.app.api.deps import get_client
from backend.app.core.errors import RetryExhaustedError, TransportError
from backend.app.main import create_app


def test_health(api):
    assert api.get("/v1/health").json() == {"status": "ok"}


def test_shutdown_closes_shared_client_session(monkeypatch, settings, make_client):
    """
    GIVEN
    - le client partagé a été créé pendant la vie de l'app

    THEN
    - sa session HTTP est fermée à l'arrêt, le cache est vidé
    """
    monkeypatch.setattr(deps, "get_settings", lambda: settings)
    deps._shared_client.cache_clear()
    _, session = make_client()

    with TestClient(create_app(debug=False)):
        deps.get_client().session = session

    assert session.closed is True
    assert deps._shared_client.cache_info().currsize == 0


def test_shutdown_without_shared_client_creates_none(monkeypatch):
    deps._shared_client.cache_clear()
    monkeypatch.setattr(deps, "get_settings", lambda: pytest.fail("client should not be built"))

    with TestClient(create_app(debug=False)):
        pass

    assert deps._shared_client.cache_info().currsize == 0


def test_receive_endpoint_returns_camel_case_summary(api, fake_client, po_factory, entry_factory):
    fake_client.po = po_factory(receive_lines=[entry_factory("rl-1", "prod-1", 4, "2025-01-01")])

    response = api.post("/v1/purchase-orders/po-1/receive", json={"receiveAll": True})

    assert response.status_code == 200
    body = response.json()
    assert body["purchaseOrderId"] == "po-1"
    assert body["previousStatus"] == "Open"
    assert body["totalReceiveLinesNow"] == 2
    [row] = body["received"]
    assert row["productName"] == "Widget"
    assert row["fullyReceived"] is True
    assert len(fake_client.writes) == 1


def test_over_receive_maps_to_400(api, fake_client, po_factory, entry_factory):
    fake_client.po = po_factory(receive_lines=[entry_factory("rl-1", "prod-1", 8, "2025-01-01")])

    response = api.post(
        "/v1/purchase-orders/po-1/receive",
        json={"items": [{"productId": "prod-1", "quantity": 5}]},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] is True
    assert body["code"] == "OVER_RECEIVE"
    assert fake_client.writes == []


def test_aggregated_failures_are_listed(api):
    response = api.post(
        "/v1/purchase-orders/po-1/receive",
        json={"items": [{"productId": "a", "quantity": 1}, {"productId": "b", "quantity": 1}]},
    )

    assert response.status_code == 400
    assert response.json()["errors"] == [
        'Product "a" not found on this PO',
        'Product "b" not found on this PO',
    ]


def test_terminal_status_maps_to_409(api, fake_client, po_factory):
    fake_client.po = po_factory(status="Cancelled")

    response = api.post("/v1/purchase-orders/po-1/receive", json={"receiveAll": True})

    assert response.status_code == 409
    assert response.json()["code"] == "STATE_CONFLICT"


def test_unknown_order_maps_to_404(api, fake_client):
    fake_client.po = None

    response = api.post("/v1/purchase-orders/po-404/unreceive", json={"unreceiveAll": True})

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_invalid_quantity_is_rejected_by_request_model(api, fake_client):
    response = api.post(
        "/v1/purchase-orders/po-1/receive",
        json={"items": [{"productId": "prod-1", "quantity": 0}]},
    )

    assert response.status_code == 422
    assert fake_client.gets == []


def test_unreceive_dry_run_endpoint(api, fake_client, po_factory, entry_factory):
    fake_client.po = po_factory(
        receive_lines=[
            entry_factory("rl-old", "prod-1", 5, "2025-03-01"),
            entry_factory("rl-new", "prod-1", 3, "2025-03-05"),
        ]
    )

    response = api.post(
        "/v1/purchase-orders/po-1/unreceive",
        json={"items": [{"productId": "prod-1", "quantity": 4}], "dryRun": True},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["dryRun"] is True
    assert body["currentReceiveLines"] == 2
    assert [r["receiveLineId"] for r in body["wouldRemove"]] == ["rl-new"]
    assert [m["receiveLineId"] for m in body["wouldModify"]] == ["rl-old"]
    assert body["remainingReceiveLines"] == 1
    assert fake_client.writes == []


def test_unreceive_endpoint_writes(api, fake_client, po_factory, entry_factory):
    fake_client.po = po_factory(receive_lines=[entry_factory("rl-1", "prod-1", 5, "2025-03-01")])

    response = api.post("/v1/purchase-orders/po-1/unreceive", json={"receiveLineIds": ["rl-1"]})

    assert response.status_code == 200
    body = response.json()
    assert body["dryRun"] is False
    assert body["remainingReceiveLines"] == 0
    assert fake_client.writes[0]["receiveLines"] == []


# ---------- Pass-through (vrai InflowClient + FakeSession) ----------
@pytest.fixture
def http_api(app, make_client, response_factory):
    """App branchée sur un InflowClient réel, réponses HTTP simulées."""

    def _make(*outcomes):
        client, session = make_client(*outcomes)
        app.dependency_overrides[get_client] = lambda: client
        return TestClient(app), session

    return _make


def test_list_purchase_orders_forwards_filters(http_api, response_factory):
    api, session = http_api(
        response_factory(200, [{"purchaseOrderId": "po-1"}], headers={"X-listCount": "1"})
    )

    response = api.get(
        "/v1/purchase-orders",
        params=[
            ("status", "Open"),
            ("status", "PartiallyReceived"),
            ("vendorId", "vendor-1"),
            ("count", "25"),
            ("includeCount", "true"),
        ],
    )

    assert response.status_code == 200
    assert response.json() == {"data": [{"purchaseOrderId": "po-1"}], "totalCount": 1}
    params = session.calls[0]["params"]
    assert json.loads(params["filter[status]"]) == ["Open", "PartiallyReceived"]
    assert params["filter[vendorId]"] == "vendor-1"
    assert params["count"] == "25"


def test_single_status_filter_is_plain_value(http_api, response_factory):
    api, session = http_api(response_factory(200, []))

    api.get("/v1/purchase-orders", params={"status": "Open"})

    assert session.calls[0]["params"]["filter[status]"] == "Open"


def test_upsert_purchase_order_generates_ids_and_maps_cost(http_api, response_factory):
    api, session = http_api(response_factory(200, {"purchaseOrderId": "generated"}))

    response = api.put(
        "/v1/purchase-orders",
        json={
            "vendorId": "vendor-1",
            "orderNumber": "PO-1",
            "items": [{"productId": "prod-1", "quantity": 3, "unitCost": "2.50"}],
        },
    )

    assert response.status_code == 200
    body = json.loads(session.calls[0]["data"])
    assert body["purchaseOrderId"]
    [line] = body["lines"]
    assert line["purchaseOrderLineId"]
    assert line["quantity"] == {"standardQuantity": "3.0000", "uomQuantity": "3.0000"}
    assert line["unitPrice"] == "2.50"
    assert "unitCost" not in line


def test_upsert_stock_adjustment(http_api, response_factory):
    api, session = http_api(response_factory(200, {}))

    api.put(
        "/v1/stock-adjustments",
        json={
            "locationId": "loc-main",
            "reasonId": "reason-1",
            "items": [{"productId": "prod-1", "quantity": "-2"}],
        },
    )

    body = json.loads(session.calls[0]["data"])
    assert body["stockAdjustmentId"]
    assert body["adjustmentReasonId"] == "reason-1"
    assert body["items"] == [{"productId": "prod-1", "quantity": "-2"}]


def test_batch_stock_summary_limits_ids(http_api, response_factory):
    api, _ = http_api(response_factory(200, []))

    response = api.post("/v1/stock/batch", json={"productIds": [f"p-{i}" for i in range(101)]})

    assert response.status_code == 422


def test_remote_client_error_passes_status_through(http_api, response_factory):
    api, _ = http_api(response_factory(404, {"message": "Purchase order not found"}, reason="Not Found"))

    response = api.get("/v1/purchase-orders/missing")

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "REMOTE_API_ERROR"
    assert body["statusCode"] == 404


def test_retry_exhaustion_maps_to_502(app, fake_client):
    class DownClient(type(fake_client)):
        def get(self, path, **query):
            raise RetryExhaustedError(4, TransportError("connection refused"))

    app.dependency_overrides[get_client] = lambda: DownClient()

    response = TestClient(app).post("/v1/purchase-orders/po-1/receive", json={"receiveAll": True})

    assert response.status_code == 502
    assert response.json()["code"] == "RETRY_EXHAUSTED"


def test_product_upsert_sends_product_id(http_api, response_factory):
    api, session = http_api(response_factory(200, {}))

    api.put("/v1/products", json={"id": "prod-9", "name": "Widget", "isActive": True})

    body = json.loads(session.calls[0]["data"])
    assert body["productId"] == "prod-9"
    assert body["isActive"] is True
    assert "id" not in body


def test_unknown_category_name_maps_to_404(http_api, response_factory):
    api, session = http_api(response_factory(200, [{"categoryId": "c-1", "name": "Tools"}]))

    response = api.get("/v1/products", params={"categoryName": "Food"})

    assert response.status_code == 404
    assert response.json()["message"] == "Category not found: Food"
    assert len(session.calls) == 1


def test_upsert_stock_transfer_generates_id(http_api, response_factory):
    api, session = http_api(response_factory(200, {"stockTransferId": "generated"}))

    response = api.put(
        "/v1/stock-transfers",
        json={
            "fromLocationId": "loc-main",
            "toLocationId": "loc-annex",
            "transferDate": "2025-03-01",
            "items": [{"productId": "prod-1", "quantity": "2", "toSublocation": "A-1"}],
        },
    )

    assert response.status_code == 200
    call = session.calls[0]
    assert call["method"] == "PUT"
    assert call["url"].endswith("/stock-transfers")
    body = json.loads(call["data"])
    assert body["stockTransferId"]
    assert body["fromLocationId"] == "loc-main"
    assert body["toLocationId"] == "loc-annex"
    assert body["items"] == [{"productId": "prod-1", "quantity": "2", "toSublocation": "A-1"}]
    assert "remarks" not in body


def test_stock_transfer_requires_positive_quantity(http_api, response_factory):
    api, session = http_api(response_factory(200, {}))

    response = api.put(
        "/v1/stock-transfers",
        json={
            "fromLocationId": "loc-main",
            "toLocationId": "loc-annex",
            "items": [{"productId": "prod-1", "quantity": "0"}],
        },
    )

    assert response.status_code == 422
    assert session.calls == []


def test_list_stock_transfers_forwards_filters(http_api, response_factory):
    api, session = http_api(response_factory(200, [{"stockTransferId": "t-1"}]))

    response = api.get(
        "/v1/stock-transfers",
        params={"status": "InTransit", "fromLocationId": "loc-main", "count": 10},
    )

    assert response.json() == {"data": [{"stockTransferId": "t-1"}]}
    params = session.calls[0]["params"]
    assert params["filter[status]"] == "InTransit"
    assert params["filter[fromLocationId]"] == "loc-main"
    assert params["count"] == "10"


def test_get_stock_transfer(http_api, response_factory):
    api, session = http_api(response_factory(200, {"stockTransferId": "t-1"}))

    assert api.get("/v1/stock-transfers/t-1").json() == {"stockTransferId": "t-1"}
    assert session.calls[0]["url"].endswith("/stock-transfers/t-1")


def test_stock_counts_list_and_upsert(http_api, response_factory):
    api, session = http_api(response_factory(200, []), response_factory(200, {}))

    api.get("/v1/stock-counts", params={"status": "InProgress", "locationId": "loc-main"})
    api.put("/v1/stock-counts", json={"id": "count-1", "locationId": "loc-main", "countDate": "2025-03-01"})

    assert session.calls[0]["params"]["filter[status]"] == "InProgress"
    body = json.loads(session.calls[1]["data"])
    assert body == {"stockCountId": "count-1", "countDate": "2025-03-01", "locationId": "loc-main"}


def test_unknown_stock_count_status_is_rejected(http_api, response_factory):
    api, session = http_api(response_factory(200, []))

    response = api.get("/v1/stock-counts", params={"status": "InTransit"})

    assert response.status_code == 422
    assert session.calls == []


# ---------- Numéros de série ----------
def test_purchase_order_serials(api, fake_client, po_factory, entry_factory):
    """
    GIVEN
    - ligne : S1, S2 ; receive line : S2 (déjà sur la ligne), S3

    THEN
    - S1, S2, S3 une seule fois chacune, rattachées à leur ligne
    """
    po = po_factory(receive_lines=[entry_factory("rl-1", "prod-1", 2, "2025-03-01", serials=["S2", "S3"])])
    po["orderDate"] = "2025-02-20"
    po["inventoryStatus"] = "PartiallyReceived"
    po["lines"][0]["quantity"]["serialNumbers"] = ["S1", "S2"]
    fake_client.po = po

    response = api.get("/v1/purchase-orders/po-1/serials")

    assert response.status_code == 200
    body = response.json()
    assert body["purchaseOrderId"] == "po-1"
    assert body["orderNumber"] == "PO-000123"
    assert body["orderDate"] == "2025-02-20"
    assert body["status"] == "PartiallyReceived"
    assert body["serialCount"] == 3
    assert [(s["serial"], s["lineId"]) for s in body["serials"]] == [
        ("S1", "line-1"),
        ("S2", "line-1"),
        ("S3", "rl-1"),
    ]
    assert body["serials"][0]["orderType"] == "purchase"
    assert fake_client.writes == []


def test_purchase_order_serials_unknown_order(api, fake_client):
    fake_client.po = None

    response = api.get("/v1/purchase-orders/po-404/serials")

    assert response.status_code == 404


def test_product_serials_split_in_stock_and_sold(http_api, response_factory):
    api, session = http_api(
        response_factory(
            200,
            {
                "productId": "prod-1",
                "name": "Widget",
                "trackSerials": True,
                "inventoryLines": [
                    {"locationId": "loc-main", "serial": "S1", "quantityOnHand": "1"},
                    {"locationId": "loc-main", "serial": "S2", "quantityOnHand": "0"},
                    {"locationId": "loc-main", "quantityOnHand": "12"},
                ],
            },
        )
    )

    response = api.get("/v1/products/prod-1/serials")

    assert response.status_code == 200
    body = response.json()
    assert body["productName"] == "Widget"
    assert body["trackSerials"] is True
    assert (body["serialCount"], body["inStockCount"], body["soldCount"]) == (2, 1, 1)
    assert [(s["serial"], s["inStock"]) for s in body["serials"]] == [("S1", True), ("S2", False)]
    assert session.calls[0]["params"]["include"] == "inventoryLines"
