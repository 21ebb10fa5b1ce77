from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import Field, field_validator

from backend.app.schemas.purchase_order import InflowModel
from backend.app.schemas.receiving import CamelModel


# ---------- Lecture inFlow ----------
class InventoryLine(InflowModel):
    location_id: str | None = None
    sublocation: str | None = None
    serial: str | None = None
    quantity_on_hand: Any = None


class ProductSnapshot(InflowModel):
    """Produit lu avec include=inventoryLines."""

    product_id: str
    name: str | None = None
    track_serials: bool | None = None
    inventory_lines: list[InventoryLine] = Field(default_factory=list)

    @field_validator("inventory_lines", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


# ---------- Réponses ----------
class OrderSerial(CamelModel):
    serial: str
    order_type: str = "purchase"
    order_id: str
    order_number: str | None = None
    order_date: str | None = None
    product_id: str | None = None
    line_id: str | None = None


class PurchaseOrderSerials(CamelModel):
    purchase_order_id: str
    order_number: str | None = None
    order_date: str | None = None
    status: str | None = None
    serial_count: int
    serials: list[OrderSerial] = Field(default_factory=list)


class ProductSerial(CamelModel):
    serial: str
    product_id: str
    product_name: str | None = None
    location_id: str | None = None
    sublocation: str | None = None
    quantity_on_hand: Decimal
    in_stock: bool


class ProductSerials(CamelModel):
    product_id: str
    product_name: str | None = None
    track_serials: bool | None = None
    serial_count: int
    in_stock_count: int
    sold_count: int
    serials: list[ProductSerial] = Field(default_factory=list)
