from __future__ import annotations

from typing import Any, Protocol

from backend.app.core.errors import NotFoundError, StateConflictError
from backend.app.models.core_types import TERMINAL_PO_STATUSES
from backend.app.schemas.purchase_order import PurchaseOrderSnapshot

ORDER_INCLUDE = ["lines", "lines.product", "receiveLines"]

_TERMINAL = {s.value for s in TERMINAL_PO_STATUSES}


class OrderClient(Protocol):
    def get(self, path: str, **query: Any) -> Any: ...

    def put(self, path: str, body: Any, **query: Any) -> Any: ...


def fetch_order(client: OrderClient, purchase_order_id: str) -> PurchaseOrderSnapshot:
    """Snapshot frais du PO : lignes, produits, receive lines, timestamp."""
    raw = client.get(f"/purchase-orders/{purchase_order_id}", include=ORDER_INCLUDE)
    if not raw:
        raise NotFoundError(f'Purchase order "{purchase_order_id}" not found')
    return PurchaseOrderSnapshot.model_validate(raw)


def ensure_not_terminal(order: PurchaseOrderSnapshot, action: str) -> None:
    if order.status in _TERMINAL:
        raise StateConflictError(
            f'Cannot {action} on PO with status "{order.status}"',
            status=order.status,
        )


def write_receive_lines(
    client: OrderClient,
    order: PurchaseOrderSnapshot,
    receive_lines: list[dict[str, Any]],
    *,
    with_unstock_lines: bool = False,
) -> dict[str, Any]:
    """
    PUT du ledger COMPLET (pas de PUT partiel côté inFlow).

    Le timestamp lu est renvoyé tel quel : si un autre writer est passé
    entre-temps, inFlow refuse (VersionConflictError, jamais rejoué).
    """
    body: dict[str, Any] = {
        "purchaseOrderId": order.purchase_order_id,
        "vendorId": order.vendor_id,
        "receiveLines": receive_lines,
    }
    if with_unstock_lines:
        body["unstockLines"] = order.unstock_lines
    body["timestamp"] = order.timestamp

    result = client.put("/purchase-orders", body)
    return result if isinstance(result, dict) else {}
