"""
Procurement service.

Ce module orchestre les flux d'achat (réception, annulation de réception)
mais ne contient AUCUN calcul de quantité.

Toute la logique quantité est centralisée dans :
    backend.services.inventory
Les plans de ledger sont dans :
    backend.services.receiving
    backend.services.unreceiving
"""

from __future__ import annotations

from backend.app.core.clock import Clock
from backend.app.schemas.receiving import (
    ReceiveRequest,
    ReceiveResult,
    UnreceivePreview,
    UnreceiveRequest,
    UnreceiveResult,
)
from backend.services.orders import OrderClient
from backend.services.receiving import ReceiveEngine
from backend.services.unreceiving import UnreceiveEngine

__all__ = [
    "ReceiveEngine",
    "UnreceiveEngine",
    "receive_purchase_order",
    "unreceive_purchase_order",
]


def receive_purchase_order(
    client: OrderClient,
    purchase_order_id: str,
    request: ReceiveRequest,
    *,
    clock: Clock | None = None,
) -> ReceiveResult:
    return ReceiveEngine(client, clock=clock).receive(purchase_order_id, request)


def unreceive_purchase_order(
    client: OrderClient,
    purchase_order_id: str,
    request: UnreceiveRequest,
) -> UnreceivePreview | UnreceiveResult:
    return UnreceiveEngine(client).unreceive(purchase_order_id, request)
