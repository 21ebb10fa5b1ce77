from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from backend.app.api.deps import get_client
from backend.app.api.responses import list_response, pagination
from backend.app.client.inflow import InflowClient
from backend.app.models.core_types import TransferStatus

router = APIRouter(prefix="/stock-transfers")


# ---------- Schemas ----------
class TransferItem(BaseModel):
    id: str | None = None
    product_id: str = Field(alias="productId")
    quantity: Decimal = Field(gt=0)
    from_sublocation: str | None = Field(default=None, alias="fromSublocation")
    to_sublocation: str | None = Field(default=None, alias="toSublocation")
    serial_numbers: list[str] | None = Field(default=None, alias="serialNumbers")

    model_config = ConfigDict(populate_by_name=True)


class TransferUpsert(BaseModel):
    id: str | None = None
    transfer_date: str | None = Field(default=None, alias="transferDate")
    from_location_id: str = Field(alias="fromLocationId", min_length=1)
    to_location_id: str = Field(alias="toLocationId", min_length=1)
    items: list[TransferItem] = Field(min_length=1)
    remarks: str | None = None
    custom_fields: dict[str, Any] | None = Field(default=None, alias="customFields")
    timestamp: str | None = None

    model_config = ConfigDict(populate_by_name=True)


# ---------- Helpers ----------
def _transfer_body(payload: TransferUpsert) -> dict[str, Any]:
    body: dict[str, Any] = {
        # inFlow exige stockTransferId, y compris en création
        "stockTransferId": payload.id or str(uuid4()),
        "transferDate": payload.transfer_date,
        "fromLocationId": payload.from_location_id,
        "toLocationId": payload.to_location_id,
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
def list_stock_transfers(
    transfer_number: str | None = Query(default=None, alias="transferNumber"),
    from_location_id: str | None = Query(default=None, alias="fromLocationId"),
    to_location_id: str | None = Query(default=None, alias="toLocationId"),
    status: TransferStatus | None = None,
    transfer_date_from: str | None = Query(default=None, alias="transferDateFrom"),
    transfer_date_to: str | None = Query(default=None, alias="transferDateTo"),
    include: list[str] | None = Query(default=None),
    skip: int | None = Query(default=None, ge=0),
    count: int | None = Query(default=None, ge=1, le=100),
    sort: str | None = None,
    sort_desc: bool | None = Query(default=None, alias="sortDesc"),
    include_count: bool = Query(default=False, alias="includeCount"),
    client: InflowClient = Depends(get_client),
):
    filters = {
        "transferNumber": transfer_number,
        "fromLocationId": from_location_id,
        "toLocationId": to_location_id,
        "status": status.value if status else None,
        "transferDateFrom": transfer_date_from,
        "transferDateTo": transfer_date_to,
    }
    result = client.get_list(
        "/stock-transfers",
        filters=filters,
        pagination=pagination(skip, count),
        include=include,
        sort=sort,
        sort_desc=sort_desc,
        include_count=include_count,
    )
    return list_response(result)


@router.get("/{transfer_id}")
def get_stock_transfer(
    transfer_id: str,
    include: list[str] | None = Query(default=None),
    client: InflowClient = Depends(get_client),
):
    return client.get(f"/stock-transfers/{transfer_id}", include=include)


@router.put("")
def upsert_stock_transfer(payload: TransferUpsert, client: InflowClient = Depends(get_client)):
    return client.put("/stock-transfers", _transfer_body(payload))
