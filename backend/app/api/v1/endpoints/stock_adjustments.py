from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from backend.app.api.deps import get_client
from backend.app.api.responses import list_response, pagination
from backend.app.client.inflow import InflowClient
from backend.app.models.core_types import AdjustmentStatus

router = APIRouter(prefix="/stock-adjustments")


# ---------- Schemas ----------
class AdjustmentItem(BaseModel):
    id: str | None = None
    product_id: str = Field(alias="productId")
    quantity: Decimal  # signé : + ajout, - retrait
    sublocation: str | None = None
    serial_numbers: list[str] | None = Field(default=None, alias="serialNumbers")
    unit_cost: Decimal | None = Field(default=None, alias="unitCost")

    model_config = ConfigDict(populate_by_name=True)


class AdjustmentUpsert(BaseModel):
    id: str | None = None
    adjustment_date: str | None = Field(default=None, alias="adjustmentDate")
    location_id: str = Field(alias="locationId", min_length=1)
    reason_id: str | None = Field(default=None, alias="reasonId")
    items: list[AdjustmentItem] = Field(min_length=1)
    remarks: str | None = None
    custom_fields: dict[str, Any] | None = Field(default=None, alias="customFields")
    timestamp: str | None = None

    model_config = ConfigDict(populate_by_name=True)


# ---------- Helpers ----------
def _adjustment_body(payload: AdjustmentUpsert) -> dict[str, Any]:
    body: dict[str, Any] = {
        # inFlow exige stockAdjustmentId, y compris en création
        "stockAdjustmentId": payload.id or str(uuid4()),
        "date": payload.adjustment_date,
        "locationId": payload.location_id,
        "adjustmentReasonId": payload.reason_id,
        "items": [
            item.model_dump(mode="json", by_alias=True, exclude_none=True) for item in payload.items
        ],
        "remarks": payload.remarks,
        "customFields": payload.custom_fields,
        "timestamp": payload.timestamp,
    }
    return {k: v for k, v in body.items() if v is not None}


# ---------- Endpoints ----------
@router.get("")
def list_stock_adjustments(
    adjustment_number: str | None = Query(default=None, alias="adjustmentNumber"),
    location_id: str | None = Query(default=None, alias="locationId"),
    reason_id: str | None = Query(default=None, alias="reasonId"),
    status: AdjustmentStatus | None = None,
    adjustment_date_from: str | None = Query(default=None, alias="adjustmentDateFrom"),
    adjustment_date_to: str | None = Query(default=None, alias="adjustmentDateTo"),
    include: list[str] | None = Query(default=None),
    skip: int | None = Query(default=None, ge=0),
    count: int | None = Query(default=None, ge=1, le=100),
    sort: str | None = None,
    sort_desc: bool | None = Query(default=None, alias="sortDesc"),
    include_count: bool = Query(default=False, alias="includeCount"),
    client: InflowClient = Depends(get_client),
):
    filters = {
        "adjustmentNumber": adjustment_number,
        "locationId": location_id,
        "adjustmentReasonId": reason_id,
        "status": status.value if status else None,
        "adjustmentDateFrom": adjustment_date_from,
        "adjustmentDateTo": adjustment_date_to,
    }
    result = client.get_list(
        "/stock-adjustments",
        filters=filters,
        pagination=pagination(skip, count),
        include=include,
        sort=sort,
        sort_desc=sort_desc,
        include_count=include_count,
    )
    return list_response(result)


@router.get("/{adjustment_id}")
def get_stock_adjustment(
    adjustment_id: str,
    include: list[str] | None = Query(default=None),
    client: InflowClient = Depends(get_client),
):
    return client.get(f"/stock-adjustments/{adjustment_id}", include=include)


@router.put("")
def upsert_stock_adjustment(payload: AdjustmentUpsert, client: InflowClient = Depends(get_client)):
    return client.put("/stock-adjustments", _adjustment_body(payload))
