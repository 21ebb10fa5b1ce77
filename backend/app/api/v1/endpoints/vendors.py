from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from backend.app.api.deps import get_client
from backend.app.api.responses import list_response, pagination
from backend.app.client.inflow import InflowClient

router = APIRouter(prefix="/vendors")


@router.get("")
def list_vendors(
    name: str | None = None,
    email: str | None = None,
    is_active: bool | None = Query(default=None, alias="isActive"),
    include: list[str] | None = Query(default=None),
    skip: int | None = Query(default=None, ge=0),
    count: int | None = Query(default=None, ge=1, le=100),
    sort: str | None = None,
    sort_desc: bool | None = Query(default=None, alias="sortDesc"),
    include_count: bool = Query(default=False, alias="includeCount"),
    client: InflowClient = Depends(get_client),
):
    filters = {"name": name, "email": email, "isActive": is_active}
    result = client.get_list(
        "/vendors",
        filters=filters,
        pagination=pagination(skip, count),
        include=include,
        sort=sort,
        sort_desc=sort_desc,
        include_count=include_count,
    )
    return list_response(result)


@router.get("/{vendor_id}")
def get_vendor(
    vendor_id: str,
    include: list[str] | None = Query(default=None),
    client: InflowClient = Depends(get_client),
):
    return client.get(f"/vendors/{vendor_id}", include=include)
