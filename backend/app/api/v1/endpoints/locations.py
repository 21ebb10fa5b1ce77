from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from backend.app.api.deps import get_client
from backend.app.api.responses import list_response, pagination
from backend.app.client.inflow import InflowClient

router = APIRouter(prefix="/locations")


@router.get("")
def list_locations(
    include: list[str] | None = Query(default=None),
    skip: int | None = Query(default=None, ge=0),
    count: int | None = Query(default=None, ge=1, le=100),
    sort: str | None = None,
    sort_desc: bool | None = Query(default=None, alias="sortDesc"),
    include_count: bool = Query(default=False, alias="includeCount"),
    client: InflowClient = Depends(get_client),
):
    result = client.get_list(
        "/locations",
        pagination=pagination(skip, count),
        include=include,
        sort=sort,
        sort_desc=sort_desc,
        include_count=include_count,
    )
    return list_response(result)


@router.get("/{location_id}")
def get_location(
    location_id: str,
    include: list[str] | None = Query(default=None),
    client: InflowClient = Depends(get_client),
):
    return client.get(f"/locations/{location_id}", include=include)
