from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from backend.app.api.deps import get_client, get_clock
from backend.app.api.responses import list_response, pagination
from backend.app.client.inflow import InflowClient
from backend.app.core.clock import Clock
from backend.app.models.core_types import POStatus
from backend.app.schemas.receiving import (
    ReceiveRequest,
    ReceiveResult,
    UnreceivePreview,
    UnreceiveRequest,
    UnreceiveResult,
)
from backend.app.schemas.serials import PurchaseOrderSerials
from backend.services.inventory import build_quantity
from backend.services.procurement import receive_purchase_order, unreceive_purchase_order
from backend.services.serials import purchase_order_serials

router = APIRouter(prefix="/purchase-orders")


# ---------- Schemas ----------
class POLineUpsert(BaseModel):
    id: str | None = None
    product_id: str = Field(alias="productId")
    quantity: Decimal = Field(gt=0)
    unit_cost: Decimal | None = Field(default=None, ge=0, alias="unitCost")
    description: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class POUpsert(BaseModel):
    id: str | None = None
    order_number: str | None = Field(default=None, alias="orderNumber")
    vendor_id: str = Field(alias="vendorId", min_length=1)
    location_id: str | None = Field(default=None, alias="locationId")
    order_date: str | None = Field(default=None, alias="orderDate")
    due_date: str | None = Field(default=None, alias="dueDate")
    remarks: str | None = None
    items: list[POLineUpsert] = Field(default_factory=list)
    custom_fields: dict[str, Any] | None = Field(default=None, alias="customFields")
    timestamp: str | None = None

    model_config = ConfigDict(populate_by_name=True)


# ---------- Helpers ----------
def _line_body(line: POLineUpsert) -> dict[str, Any]:
    body: dict[str, Any] = {
        "purchaseOrderLineId": line.id or str(uuid4()),
        "productId": line.product_id,
        "quantity": build_quantity(line.quantity),
        "description": line.description,
    }
    if line.unit_cost is not None:
        # côté inFlow le coût unitaire s'appelle unitPrice
        body["unitPrice"] = str(line.unit_cost)
    return {k: v for k, v in body.items() if v is not None}


def _order_body(payload: POUpsert) -> dict[str, Any]:
    body: dict[str, Any] = {
        "purchaseOrderId": payload.id or str(uuid4()),
        "orderNumber": payload.order_number,
        "vendorId": payload.vendor_id,
        "locationId": payload.location_id,
        "orderDate": payload.order_date,
        "dueDate": payload.due_date,
        "orderRemarks": payload.remarks,
        "customFields": payload.custom_fields,
        "timestamp": payload.timestamp,
    }
    if payload.items:
        body["lines"] = [_line_body(line) for line in payload.items]
    return {k: v for k, v in body.items() if v is not None}


# ---------- Endpoints ----------
@router.get("")
def list_purchase_orders(
    order_number: str | None = Query(default=None, alias="orderNumber"),
    vendor_id: str | None = Query(default=None, alias="vendorId"),
    status: list[POStatus] | None = Query(default=None),
    location_id: str | None = Query(default=None, alias="locationId"),
    order_date_from: str | None = Query(default=None, alias="orderDateFrom"),
    order_date_to: str | None = Query(default=None, alias="orderDateTo"),
    expected_date_from: str | None = Query(default=None, alias="expectedDateFrom"),
    expected_date_to: str | None = Query(default=None, alias="expectedDateTo"),
    smart: str | None = None,
    include: list[str] | None = Query(default=None),
    skip: int | None = Query(default=None, ge=0),
    count: int | None = Query(default=None, ge=1, le=100),
    sort: str | None = None,
    sort_desc: bool | None = Query(default=None, alias="sortDesc"),
    include_count: bool = Query(default=False, alias="includeCount"),
    client: InflowClient = Depends(get_client),
):
    # un statut -> valeur simple, plusieurs -> tableau JSON
    status_filter: Any = None
    if status:
        values = [s.value for s in status]
        status_filter = values[0] if len(values) == 1 else values

    filters = {
        "orderNumber": order_number,
        "vendorId": vendor_id,
        "status": status_filter,
        "locationId": location_id,
        "orderDateFrom": order_date_from,
        "orderDateTo": order_date_to,
        "expectedDateFrom": expected_date_from,
        "expectedDateTo": expected_date_to,
        "smart": smart,
    }
    result = client.get_list(
        "/purchase-orders",
        filters=filters,
        pagination=pagination(skip, count),
        include=include,
        sort=sort,
        sort_desc=sort_desc,
        include_count=include_count,
    )
    return list_response(result)


@router.get("/{po_id}")
def get_purchase_order(
    po_id: str,
    include: list[str] | None = Query(default=None),
    client: InflowClient = Depends(get_client),
):
    return client.get(f"/purchase-orders/{po_id}", include=include)


@router.put("")
def upsert_purchase_order(payload: POUpsert, client: InflowClient = Depends(get_client)):
    return client.put("/purchase-orders", _order_body(payload))


@router.post("/{po_id}/receive", response_model=ReceiveResult, response_model_by_alias=True)
def receive(
    po_id: str,
    payload: ReceiveRequest,
    client: InflowClient = Depends(get_client),
    clock: Clock = Depends(get_clock),
):
    return receive_purchase_order(client, po_id, payload, clock=clock)


@router.post("/{po_id}/unreceive", response_model=None)
def unreceive(
    po_id: str, payload: UnreceiveRequest, client: InflowClient = Depends(get_client)
) -> UnreceivePreview | UnreceiveResult:
    # dryRun -> UnreceivePreview, sinon UnreceiveResult
    return unreceive_purchase_order(client, po_id, payload)


@router.get("/{po_id}/serials", response_model=PurchaseOrderSerials, response_model_by_alias=True)
def get_purchase_order_serials(po_id: str, client: InflowClient = Depends(get_client)):
    return purchase_order_serials(client, po_id)
