from __future__ import annotations

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from backend.app.schemas.purchase_order import OrderLine, ReceiveEntry


ZERO = Decimal("0")
QTY_PLACES = Decimal("0.0001")


def parse_quantity(raw: Any) -> Decimal:
    """
    Quantité inFlow -> Decimal.

    Formats acceptés (selon la config UOM côté inFlow) :
    - nombre
    - chaîne numérique
    - {"standardQuantity": ..., "uomQuantity": ..., "serialNumbers": [...]}
      standardQuantity prioritaire, puis uomQuantity, sinon 0

    Texte illisible -> 0 (jamais d'exception).
    """
    if raw is None or isinstance(raw, bool):
        return ZERO
    if isinstance(raw, Decimal):
        return raw
    if isinstance(raw, int):
        return Decimal(raw)
    if isinstance(raw, float):
        return Decimal(str(raw))
    if isinstance(raw, str):
        try:
            value = Decimal(raw.strip())
        except InvalidOperation:
            return ZERO
        return value if value.is_finite() else ZERO
    if isinstance(raw, dict):
        std = raw.get("standardQuantity")
        if std is None:
            std = raw.get("uomQuantity")
        return parse_quantity(std)
    return ZERO


def serial_numbers_of(raw: Any) -> list[str]:
    if isinstance(raw, dict):
        return list(raw.get("serialNumbers") or [])
    return []


def format_quantity(qty: Decimal) -> str:
    return format(qty.quantize(QTY_PLACES, rounding=ROUND_HALF_UP), "f")


def normalize_quantity(qty: Decimal) -> Decimal:
    """8.0000 -> 8, 2.5000 -> 2.5 (affichage / résumé)."""
    if qty == qty.to_integral_value():
        return qty.quantize(Decimal(1))
    return qty.normalize()


def display_quantity(qty: Decimal) -> str:
    return format(normalize_quantity(qty), "f")


def build_quantity(qty: Decimal, serial_numbers: list[str] | None = None) -> dict[str, Any]:
    """Format d'écriture : chaînes à 4 décimales, + serialNumbers si sérialisé."""
    text = format_quantity(qty)
    out: dict[str, Any] = {"standardQuantity": text, "uomQuantity": text}
    if serial_numbers:
        out["serialNumbers"] = list(serial_numbers)
    return out


def received_by_product(entries: Iterable[ReceiveEntry]) -> dict[str, Decimal]:
    """
    Total reçu par produit, reconstruit à chaque appel depuis le snapshot.

    Règle métier :
        received[product] = SUM(quantity des receive lines du produit)

    Les entrées sans productId sont ignorées.
    """
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for entry in entries:
        if not entry.product_id:
            continue
        totals[entry.product_id] += entry.qty
    return dict(totals)


def ordered_by_product(lines: Iterable[OrderLine]) -> dict[str, Decimal]:
    """Quantité commandée par produit, sommée sur toutes les lignes du PO."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for line in lines:
        if not line.product_id:
            continue
        totals[line.product_id] += line.ordered
    return dict(totals)


def outstanding_by_line(
    lines: Iterable[OrderLine],
    received: dict[str, Decimal],
) -> list[tuple[OrderLine, Decimal]]:
    """
    Reste à recevoir par ligne.

    Le reçu d'un produit est imputé sur ses lignes dans l'ordre du PO :
    un produit réparti sur plusieurs lignes n'est pas compté deux fois.
    Les lignes sans produit sont ignorées.
    """
    unallocated = dict(received)
    out: list[tuple[OrderLine, Decimal]] = []
    for line in lines:
        if not line.product_id:
            continue
        ordered = line.ordered
        already = min(ordered, max(unallocated.get(line.product_id, ZERO), ZERO))
        unallocated[line.product_id] = unallocated.get(line.product_id, ZERO) - already
        out.append((line, ordered - already))
    return out
