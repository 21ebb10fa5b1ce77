from __future__ import annotations

from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from backend.app.api.deps import get_client
from backend.app.api.responses import list_response, pagination
from backend.app.client.inflow import InflowClient
from backend.app.models.core_types import CountStatus

router = APIRouter(prefix="/stock-counts")


class CountUpsert(BaseModel):
    id: str | None = None
    count_date: str | None = Field(default=None, alias="countDate")
    location_id: str = Field(alias="locationId", min_length=1)
    remarks: str | None = None
    timestamp: str | None = None

    model_config = ConfigDict(populate_by_name=True)


def _count_body(payload: CountUpsert) -> dict[str, Any]:
    body: dict[str, Any] = {
        "stockCountId": payload.id or str(uuid4()),
        "countDate": payload.count_date,
        "locationId": payload.location_id,
        "remarks": payload.remarks,
        "timestamp": payload.timestamp,
    }
    return {k: v for k, v in body.items() if v is not None}


@router.get("")
def list_stock_counts(
    location_id: str | None = Query(default=None, alias="locationId"),
    status: CountStatus | None = None,
    include: list[str] | None = Query(default=None),
    skip: int | None = Query(default=None, ge=0),
    count: int | None = Query(default=None, ge=1, le=100),
    sort: str | None = None,
    sort_desc: bool | None = Query(default=None, alias="sortDesc"),
    include_count: bool = Query(default=False, alias="includeCount"),
    client: InflowClient = Depends(get_client),
):
    filters = {
        "locationId": location_id,
        "status": status.value if status else None,
    }
    result = client.get_list(
        "/stock-counts",
        filters=filters,
        pagination=pagination(skip, count),
        include=include,
        sort=sort,
        sort_desc=sort_desc,
        include_count=include_count,
    )
    return list_response(result)


@router.get("/{count_id}")
def get_stock_count(
    count_id: str,
    include: list[str] | None = Query(default=None),
    client: InflowClient = Depends(get_client),
):
    return client.get(f"/stock-counts/{count_id}", include=include)


@router.put("")
def upsert_stock_count(payload: CountUpsert, client: InflowClient = Depends(get_client)):
    return client.put("/stock-counts", _count_body(payload))
