from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from backend.services.inventory import parse_quantity, serial_numbers_of

# Champs que l'API accepte en PUT pour une receive line.
# Tout le reste (champs calculés serveur) est retiré avant renvoi.
RECEIVE_LINE_WRITABLE_FIELDS = (
    "purchase_order_receive_line_id",
    "product_id",
    "quantity",
    "location_id",
    "sublocation",
    "receive_date",
    "timestamp",
)


class InflowModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class ProductRef(InflowModel):
    product_id: str | None = None
    name: str | None = None
    sku: str | None = None


class OrderLine(InflowModel):
    purchase_order_line_id: str | None = None
    product_id: str | None = None
    product: ProductRef | None = None
    quantity: Any = None
    sublocation: str | None = None

    @property
    def ordered(self) -> Decimal:
        return parse_quantity(self.quantity)

    @property
    def product_name(self) -> str | None:
        return self.product.name if self.product else None


class ReceiveEntry(InflowModel):
    purchase_order_receive_line_id: str | None = None
    product_id: str | None = None
    quantity: Any = None
    location_id: str | None = None
    sublocation: str | None = None
    receive_date: str | None = None
    timestamp: str | None = None

    @property
    def qty(self) -> Decimal:
        return parse_quantity(self.quantity)

    @property
    def serial_numbers(self) -> list[str]:
        return serial_numbers_of(self.quantity)

    def to_writable(self, **overrides: Any) -> dict[str, Any]:
        data = {name: getattr(self, name) for name in RECEIVE_LINE_WRITABLE_FIELDS}
        data.update(overrides)
        return {to_camel(k): v for k, v in data.items() if v is not None}


class PurchaseOrderSnapshot(InflowModel):
    """PO tel que lu chez inFlow (lines + receiveLines + timestamp)."""

    purchase_order_id: str
    order_number: str | None = None
    vendor_id: str | None = None
    status: str | None = None
    inventory_status: str | None = None
    order_date: str | None = None
    location_id: str | None = None
    lines: list[OrderLine] = Field(default_factory=list)
    receive_lines: list[ReceiveEntry] = Field(default_factory=list)
    unstock_lines: list[Any] = Field(default_factory=list)
    timestamp: str | None = None

    @field_validator("lines", "receive_lines", "unstock_lines", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def product_names(self) -> dict[str, str]:
        return {
            line.product_id: line.product_name
            for line in self.lines
            if line.product_id and line.product_name
        }
