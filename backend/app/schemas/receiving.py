from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------- Receive ----------
class ReceiveItem(CamelModel):
    purchase_order_line_id: str | None = None
    product_id: str | None = None
    quantity: Decimal = Field(gt=0)
    serial_numbers: list[str] | None = None


class ReceiveRequest(CamelModel):
    receive_all: bool = False
    items: list[ReceiveItem] | None = None
    location_id: str | None = None
    receive_date: str | None = None
    allow_over_receive: bool = False


class ReceivedProduct(CamelModel):
    product_id: str
    product_name: str | None = None
    quantity_received: Decimal
    ordered: Decimal
    previously_received: Decimal
    total_received: Decimal
    fully_received: bool


class ReceiveResult(CamelModel):
    purchase_order_id: str
    order_number: str | None = None
    previous_status: str | None = None
    new_status: str | None = None
    received: list[ReceivedProduct] = Field(default_factory=list)
    total_receive_lines_now: int
    warnings: list[str] = Field(default_factory=list)


# ---------- Unreceive ----------
class UnreceiveItem(CamelModel):
    product_id: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0)


class UnreceiveRequest(CamelModel):
    receive_line_ids: list[str] | None = None
    items: list[UnreceiveItem] | None = None
    unreceive_all: bool = False
    dry_run: bool = False


class RemovedEntry(CamelModel):
    receive_line_id: str
    product_id: str
    product_name: str | None = None
    quantity: Decimal
    receive_date: str | None = None


class ModifiedEntry(CamelModel):
    receive_line_id: str
    product_id: str
    product_name: str | None = None
    old_qty: Decimal
    new_qty: Decimal


class UnreceivePreview(CamelModel):
    dry_run: bool = True
    purchase_order_id: str
    order_number: str | None = None
    current_receive_lines: int
    would_remove: list[RemovedEntry] = Field(default_factory=list)
    would_modify: list[ModifiedEntry] = Field(default_factory=list)
    remaining_receive_lines: int


class UnreceiveResult(CamelModel):
    dry_run: bool = False
    purchase_order_id: str
    order_number: str | None = None
    previous_status: str | None = None
    new_status: str | None = None
    removed: list[RemovedEntry] = Field(default_factory=list)
    modified: list[ModifiedEntry] = Field(default_factory=list)
    remaining_receive_lines: int
