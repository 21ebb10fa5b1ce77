"""
Numéros de série : lecture seule, rien n'est écrit chez inFlow.

- par PO      : séries portées par les lignes, puis par les receive lines
- par produit : inventoryLines avec `serial`, en stock si quantityOnHand > 0
"""

from __future__ import annotations

from backend.app.core.errors import NotFoundError
from backend.app.schemas.purchase_order import PurchaseOrderSnapshot
from backend.app.schemas.serials import (
    OrderSerial,
    ProductSerial,
    ProductSerials,
    ProductSnapshot,
    PurchaseOrderSerials,
)
from backend.services.inventory import ZERO, parse_quantity, serial_numbers_of
from backend.services.orders import OrderClient, fetch_order


def order_serials(order: PurchaseOrderSnapshot) -> list[OrderSerial]:
    """
    Une entrée par (produit, série), dans l'ordre des lignes.

    Une série déjà vue sur une ligne n'est pas répétée pour sa receive line.
    """
    seen: set[tuple[str | None, str]] = set()
    out: list[OrderSerial] = []

    sources = [(line.purchase_order_line_id, line.product_id, line.quantity) for line in order.lines]
    sources += [
        (entry.purchase_order_receive_line_id, entry.product_id, entry.quantity)
        for entry in order.receive_lines
    ]
    for line_id, product_id, quantity in sources:
        for serial in serial_numbers_of(quantity):
            if (product_id, serial) in seen:
                continue
            seen.add((product_id, serial))
            out.append(
                OrderSerial(
                    serial=serial,
                    order_id=order.purchase_order_id,
                    order_number=order.order_number,
                    order_date=order.order_date,
                    product_id=product_id,
                    line_id=line_id,
                )
            )
    return out


def purchase_order_serials(client: OrderClient, purchase_order_id: str) -> PurchaseOrderSerials:
    order = fetch_order(client, purchase_order_id)
    serials = order_serials(order)
    return PurchaseOrderSerials(
        purchase_order_id=order.purchase_order_id,
        order_number=order.order_number,
        order_date=order.order_date,
        status=order.inventory_status or order.status,
        serial_count=len(serials),
        serials=serials,
    )


def inventory_serials(product: ProductSnapshot) -> list[ProductSerial]:
    out = []
    for line in product.inventory_lines:
        if not line.serial:
            continue
        on_hand = parse_quantity(line.quantity_on_hand)
        out.append(
            ProductSerial(
                serial=line.serial,
                product_id=product.product_id,
                product_name=product.name,
                location_id=line.location_id,
                sublocation=line.sublocation,
                quantity_on_hand=on_hand,
                in_stock=on_hand > ZERO,
            )
        )
    return out


def product_serials(client: OrderClient, product_id: str) -> ProductSerials:
    raw = client.get(f"/products/{product_id}", include=["inventoryLines"])
    if not raw:
        raise NotFoundError(f'Product "{product_id}" not found')
    product = ProductSnapshot.model_validate(raw)

    serials = inventory_serials(product)
    in_stock = sum(1 for s in serials if s.in_stock)
    return ProductSerials(
        product_id=product.product_id,
        product_name=product.name,
        track_serials=product.track_serials,
        serial_count=len(serials),
        in_stock_count=in_stock,
        sold_count=len(serials) - in_stock,
        serials=serials,
    )
