"""
Réception de PO : ajout d'entrées au ledger receiveLines[].

Flux :
    GET PO (lines + receiveLines) -> plan en mémoire -> PUT du ledger complet

Le plan (`plan_receive`) est une fonction pure du snapshot et de la requête :
les totaux "déjà reçu" sont recalculés à chaque appel, jamais partagés.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable
from uuid import uuid4

from backend.app.core.clock import Clock, SystemClock
from backend.app.core.errors import (
    InflowError,
    NotFoundError,
    OverReceiveError,
    QuantityMismatchError,
    ValidationError,
    raise_failures,
)
from backend.app.schemas.purchase_order import OrderLine, PurchaseOrderSnapshot
from backend.app.schemas.receiving import (
    ReceiveItem,
    ReceiveRequest,
    ReceivedProduct,
    ReceiveResult,
)
from backend.services.inventory import (
    ZERO,
    build_quantity,
    display_quantity,
    normalize_quantity,
    ordered_by_product,
    outstanding_by_line,
    received_by_product,
)
from backend.services.orders import OrderClient, ensure_not_terminal, fetch_order, write_receive_lines

logger = logging.getLogger(__name__)


@dataclass
class ReceivePlan:
    new_entries: list[dict[str, Any]]
    received: list[ReceivedProduct]
    failures: list[InflowError] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [f.message for f in self.failures]


def validate_receive_request(request: ReceiveRequest) -> None:
    has_items = bool(request.items)
    if request.receive_all and has_items:
        raise ValidationError("Cannot use both receiveAll and items; they are mutually exclusive")
    if not request.receive_all and not has_items:
        raise ValidationError("Provide either receiveAll=true or items array")


def _new_entry(
    product_id: str,
    quantity: Decimal,
    *,
    entry_id: str,
    receive_date: str,
    location_id: str | None,
    sublocation: str | None = None,
    serial_numbers: list[str] | None = None,
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "purchaseOrderReceiveLineId": entry_id,
        "productId": product_id,
        "quantity": build_quantity(quantity, serial_numbers),
        "receiveDate": receive_date,
    }
    if location_id:
        entry["locationId"] = location_id
    if sublocation:
        entry["sublocation"] = sublocation
    return entry


class _Tally:
    """Résumé par produit, dans l'ordre de première apparition."""

    def __init__(self, ordered: dict[str, Decimal], previously: dict[str, Decimal], names: dict[str, str]):
        self._ordered = ordered
        self._previously = previously
        self._names = names
        self._now: dict[str, Decimal] = {}

    def add(self, product_id: str, quantity: Decimal) -> None:
        self._now[product_id] = self._now.get(product_id, ZERO) + quantity

    def rows(self) -> list[ReceivedProduct]:
        rows = []
        for product_id, qty in self._now.items():
            ordered = self._ordered.get(product_id, ZERO)
            previously = self._previously.get(product_id, ZERO)
            total = previously + qty
            rows.append(
                ReceivedProduct(
                    product_id=product_id,
                    product_name=self._names.get(product_id),
                    quantity_received=normalize_quantity(qty),
                    ordered=normalize_quantity(ordered),
                    previously_received=normalize_quantity(previously),
                    total_received=normalize_quantity(total),
                    fully_received=total >= ordered,
                )
            )
        return rows


def _resolve_item(
    item: ReceiveItem,
    lines_by_id: dict[str, OrderLine],
    lines_by_product: dict[str, list[OrderLine]],
) -> tuple[OrderLine, str]:
    if item.purchase_order_line_id:
        line = lines_by_id.get(item.purchase_order_line_id)
        if line is None:
            raise NotFoundError(f'Line ID "{item.purchase_order_line_id}" not found on this PO')
        if not line.product_id:
            raise ValidationError(f'Could not resolve productId for line "{item.purchase_order_line_id}"')
        return line, line.product_id

    if item.product_id:
        candidates = lines_by_product.get(item.product_id)
        if not candidates:
            raise NotFoundError(f'Product "{item.product_id}" not found on this PO')
        return candidates[0], item.product_id

    raise ValidationError("Each item must have purchaseOrderLineId or productId")


def plan_receive(
    order: PurchaseOrderSnapshot,
    request: ReceiveRequest,
    *,
    now: datetime,
    new_id: Callable[[], str] = lambda: str(uuid4()),
) -> ReceivePlan:
    """
    Calcule les nouvelles receive lines à ajouter au ledger.

    Règle métier :
        reçu(produit) + demandé <= commandé(produit, toutes lignes)
        sauf allowOverReceive

    Propriétés :
    - aucun appel distant
    - un item en échec n'annule pas les autres (warnings)
    - deux items du même produit : le second est contrôlé contre le total cumulé
    - aucun item accepté -> exception, rien à écrire
    """
    validate_receive_request(request)

    if not order.lines:
        raise NotFoundError("Purchase order not found or has no lines")
    ensure_not_terminal(order, "receive")

    previously = received_by_product(order.receive_lines)
    running = dict(previously)
    ordered = ordered_by_product(order.lines)
    tally = _Tally(ordered, previously, order.product_names())

    receive_date = request.receive_date or now.isoformat()
    location_id = request.location_id or order.location_id

    entries: list[dict[str, Any]] = []
    failures: list[InflowError] = []

    if request.receive_all:
        for line, remaining in outstanding_by_line(order.lines, previously):
            if remaining <= 0:
                continue
            entries.append(
                _new_entry(
                    line.product_id,
                    remaining,
                    entry_id=new_id(),
                    receive_date=receive_date,
                    location_id=location_id,
                    sublocation=line.sublocation,
                )
            )
            tally.add(line.product_id, remaining)

        if not entries:
            raise ValidationError("All lines are already fully received")

        return ReceivePlan(new_entries=entries, received=tally.rows())

    lines_by_id = {l.purchase_order_line_id: l for l in order.lines if l.purchase_order_line_id}
    lines_by_product: dict[str, list[OrderLine]] = {}
    for l in order.lines:
        if l.product_id:
            lines_by_product.setdefault(l.product_id, []).append(l)

    for item in request.items or []:
        try:
            line, product_id = _resolve_item(item, lines_by_id, lines_by_product)
        except ValidationError as e:
            failures.append(e)
            continue

        label = line.product_name or product_id
        already = running.get(product_id, ZERO)
        ordered_qty = ordered.get(product_id, ZERO)
        after = already + item.quantity

        if not request.allow_over_receive and after > ordered_qty:
            failures.append(
                OverReceiveError(
                    f'Product "{label}": would receive {display_quantity(after)} total '
                    f"but only {display_quantity(ordered_qty)} ordered "
                    f"(already received: {display_quantity(already)}, "
                    f"max more: {display_quantity(ordered_qty - already)}). "
                    "Use allowOverReceive=true to override."
                )
            )
            continue

        if item.serial_numbers and len(item.serial_numbers) != item.quantity:
            failures.append(
                QuantityMismatchError(
                    f'Product "{label}": serial number count ({len(item.serial_numbers)}) '
                    f"must match quantity ({display_quantity(item.quantity)})"
                )
            )
            continue

        entries.append(
            _new_entry(
                product_id,
                item.quantity,
                entry_id=new_id(),
                receive_date=receive_date,
                location_id=location_id,
                sublocation=line.sublocation,
                serial_numbers=item.serial_numbers,
            )
        )
        running[product_id] = after
        tally.add(product_id, item.quantity)

    if not entries:
        raise_failures(failures)

    return ReceivePlan(new_entries=entries, received=tally.rows(), failures=failures)


class ReceiveEngine:
    def __init__(self, client: OrderClient, clock: Clock | None = None):
        self.client = client
        self.clock = clock or SystemClock()

    def receive(self, purchase_order_id: str, request: ReceiveRequest) -> ReceiveResult:
        # input contradictoire -> aucun appel distant
        validate_receive_request(request)

        order = fetch_order(self.client, purchase_order_id)
        plan = plan_receive(order, request, now=self.clock.now())

        existing = [entry.to_writable() for entry in order.receive_lines]
        ledger = existing + plan.new_entries

        logger.info(
            "Receiving %d new line(s) on PO %s (existing=%d, warnings=%d)",
            len(plan.new_entries),
            order.purchase_order_id,
            len(existing),
            len(plan.failures),
        )
        result = write_receive_lines(self.client, order, ledger)

        return ReceiveResult(
            purchase_order_id=result.get("purchaseOrderId") or order.purchase_order_id,
            order_number=result.get("orderNumber") or order.order_number,
            previous_status=order.status,
            new_status=result.get("status"),
            received=plan.received,
            total_receive_lines_now=len(result.get("receiveLines") or []) or len(ledger),
            warnings=plan.warnings,
        )
