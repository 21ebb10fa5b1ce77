"""
Annulation de réception : retrait / réduction d'entrées du ledger receiveLines[].

Trois modes, exclusifs :
- receiveLineIds : retrait exact par ID
- items          : retrait par produit + quantité, LIFO (plus récent d'abord)
- unreceiveAll   : tout le ledger

Le ledger conservé est recalculé en entier puis renvoyé en un seul PUT.
dryRun -> aperçu, aucun PUT.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from backend.app.core.errors import (
    InflowError,
    NotFoundError,
    ValidationError,
    raise_failures,
)
from backend.app.models.core_types import UnreceiveMode
from backend.app.schemas.purchase_order import PurchaseOrderSnapshot, ReceiveEntry
from backend.app.schemas.receiving import (
    ModifiedEntry,
    RemovedEntry,
    UnreceiveItem,
    UnreceivePreview,
    UnreceiveRequest,
    UnreceiveResult,
)
from backend.services.inventory import ZERO, build_quantity, display_quantity, normalize_quantity
from backend.services.orders import OrderClient, ensure_not_terminal, fetch_order, write_receive_lines

logger = logging.getLogger(__name__)

# fromisoformat (3.10) refuse plus de 6 décimales de seconde
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


@dataclass
class UnreceivePlan:
    removed: list[RemovedEntry]
    modified: list[ModifiedEntry]
    retained: list[dict[str, Any]]
    current_count: int

    @property
    def remaining_count(self) -> int:
        return self.current_count - len(self.removed)


@dataclass
class _Marks:
    """IDs à retirer (ordre d'insertion conservé) + réductions partielles."""

    remove: dict[str, None] = field(default_factory=dict)
    reduce: dict[str, Decimal] = field(default_factory=dict)

    def available(self, entry: ReceiveEntry) -> Decimal:
        entry_id = entry.purchase_order_receive_line_id
        if entry_id in self.remove:
            return ZERO
        return self.reduce.get(entry_id, entry.qty)

    def mark_removed(self, entry_id: str) -> None:
        self.reduce.pop(entry_id, None)
        self.remove[entry_id] = None


def validate_unreceive_request(request: UnreceiveRequest) -> UnreceiveMode:
    selected = [
        mode
        for mode, given in (
            (UnreceiveMode.entry_ids, bool(request.receive_line_ids)),
            (UnreceiveMode.lifo, bool(request.items)),
            (UnreceiveMode.all, request.unreceive_all),
        )
        if given
    ]
    if not selected:
        raise ValidationError("Provide exactly one of: receiveLineIds, items, or unreceiveAll")
    if len(selected) > 1:
        raise ValidationError(
            "Use only one of: receiveLineIds, items, or unreceiveAll; they are mutually exclusive"
        )
    return selected[0]


def _receive_moment(value: str | None) -> tuple[int, Any]:
    """
    Clé chronologique d'une receiveDate.

    - ISO 8601 lisible -> datetime UTC (sans offset = UTC)
    - illisible        -> chaîne brute, après les dates lisibles en ordre LIFO
    - absente          -> en dernier en ordre LIFO
    """
    if not value:
        return (0, "")
    text = _EXCESS_FRACTION.sub(r"\1", value.strip())
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return (1, value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (2, moment)


def lifo_order(entries: Iterable[ReceiveEntry]) -> list[ReceiveEntry]:
    """
    Plus récent d'abord : receiveDate desc, puis timestamp desc, puis ID desc.

    receiveDate comparée dans le temps (offsets pris en compte).
    Le dernier critère (ID) est arbitraire mais déterministe.
    """
    return sorted(
        entries,
        key=lambda e: (
            _receive_moment(e.receive_date),
            e.timestamp or "",
            e.purchase_order_receive_line_id or "",
        ),
        reverse=True,
    )


def _plan_lifo_item(
    item: UnreceiveItem,
    entries: list[ReceiveEntry],
    names: dict[str, str],
    marks: _Marks,
) -> InflowError | None:
    label = names.get(item.product_id, item.product_id)
    product_entries = [
        e for e in entries if e.product_id == item.product_id and e.purchase_order_receive_line_id
    ]
    if not product_entries:
        return NotFoundError(f'No receive lines found for product "{label}"')

    total = sum((marks.available(e) for e in product_entries), ZERO)
    if item.quantity > total:
        return ValidationError(
            f'Product "{label}": requested unreceive of {display_quantity(item.quantity)} '
            f"but only {display_quantity(total)} received"
        )

    remaining = item.quantity
    for entry in lifo_order(product_entries):
        if remaining <= 0:
            break
        entry_id = entry.purchase_order_receive_line_id
        if entry_id in marks.remove:
            continue
        qty = marks.available(entry)
        if qty <= remaining:
            marks.mark_removed(entry_id)
            remaining -= qty
        else:
            marks.reduce[entry_id] = qty - remaining
            remaining = ZERO
    return None


def _reduced_quantity(entry: ReceiveEntry, new_qty: Decimal) -> dict[str, Any]:
    # entrée sérialisée : on garde les premiers numéros de série
    serials = entry.serial_numbers
    if serials and new_qty == new_qty.to_integral_value():
        serials = serials[: int(new_qty)]
    else:
        serials = None
    return build_quantity(new_qty, serials)


def plan_unreceive(order: PurchaseOrderSnapshot, request: UnreceiveRequest) -> UnreceivePlan:
    """
    Calcule le ledger conservé.

    Propriétés :
    - aucun appel distant
    - toutes les erreurs sont collectées avant de répondre
    - au moindre échec : exception, rien à écrire
    """
    mode = validate_unreceive_request(request)
    ensure_not_terminal(order, "unreceive")

    entries = order.receive_lines
    if not entries:
        raise ValidationError("PO has no receive lines to unreceive")

    by_id = {e.purchase_order_receive_line_id: e for e in entries if e.purchase_order_receive_line_id}
    names = order.product_names()
    marks = _Marks()
    failures: list[InflowError] = []

    if mode is UnreceiveMode.all:
        for entry_id in by_id:
            marks.mark_removed(entry_id)
    elif mode is UnreceiveMode.entry_ids:
        for entry_id in request.receive_line_ids or []:
            if entry_id not in by_id:
                failures.append(NotFoundError(f'Receive line ID "{entry_id}" not found on this PO'))
            else:
                marks.mark_removed(entry_id)
    else:
        for item in request.items or []:
            error = _plan_lifo_item(item, entries, names, marks)
            if error is not None:
                failures.append(error)

    if failures:
        raise_failures(failures)

    removed = [
        RemovedEntry(
            receive_line_id=entry_id,
            product_id=by_id[entry_id].product_id or "",
            product_name=names.get(by_id[entry_id].product_id or ""),
            quantity=normalize_quantity(by_id[entry_id].qty),
            receive_date=by_id[entry_id].receive_date,
        )
        for entry_id in marks.remove
    ]
    modified = [
        ModifiedEntry(
            receive_line_id=entry_id,
            product_id=by_id[entry_id].product_id or "",
            product_name=names.get(by_id[entry_id].product_id or ""),
            old_qty=normalize_quantity(by_id[entry_id].qty),
            new_qty=normalize_quantity(new_qty),
        )
        for entry_id, new_qty in marks.reduce.items()
    ]

    retained: list[dict[str, Any]] = []
    for entry in entries:
        entry_id = entry.purchase_order_receive_line_id
        if entry_id in marks.remove:
            continue
        if entry_id in marks.reduce:
            retained.append(entry.to_writable(quantity=_reduced_quantity(entry, marks.reduce[entry_id])))
        else:
            retained.append(entry.to_writable())

    return UnreceivePlan(
        removed=removed,
        modified=modified,
        retained=retained,
        current_count=len(entries),
    )


class UnreceiveEngine:
    def __init__(self, client: OrderClient):
        self.client = client

    def unreceive(
        self, purchase_order_id: str, request: UnreceiveRequest
    ) -> UnreceivePreview | UnreceiveResult:
        validate_unreceive_request(request)

        order = fetch_order(self.client, purchase_order_id)
        plan = plan_unreceive(order, request)

        if request.dry_run:
            return UnreceivePreview(
                purchase_order_id=purchase_order_id,
                order_number=order.order_number,
                current_receive_lines=plan.current_count,
                would_remove=plan.removed,
                would_modify=plan.modified,
                remaining_receive_lines=plan.remaining_count,
            )

        logger.info(
            "Unreceiving on PO %s: removing %d line(s), reducing %d line(s)",
            order.purchase_order_id,
            len(plan.removed),
            len(plan.modified),
        )
        result = write_receive_lines(self.client, order, plan.retained, with_unstock_lines=True)

        remaining = result.get("receiveLines")
        return UnreceiveResult(
            purchase_order_id=result.get("purchaseOrderId") or order.purchase_order_id,
            order_number=result.get("orderNumber") or order.order_number,
            previous_status=order.status,
            new_status=result.get("status"),
            removed=plan.removed,
            modified=plan.modified,
            remaining_receive_lines=len(remaining) if remaining is not None else len(plan.retained),
        )
