from __future__ import annotations

from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from backend.app.api.deps import get_client
from backend.app.api.responses import list_response, pagination
from backend.app.client.inflow import InflowClient
from backend.app.core.errors import NotFoundError
from backend.app.schemas.serials import ProductSerials
from backend.services.serials import product_serials

router = APIRouter(prefix="/products")


class ProductUpsert(BaseModel):
    id: str | None = None
    name: str = Field(min_length=1)
    description: str | None = None
    barcode: str | None = None
    sku: str | None = None
    category_id: str | None = Field(default=None, alias="categoryId")
    is_active: bool | None = Field(default=None, alias="isActive")
    cost: float | None = None
    default_price: float | None = Field(default=None, alias="defaultPrice")
    reorder_point: float | None = Field(default=None, alias="reorderPoint")
    reorder_quantity: float | None = Field(default=None, alias="reorderQuantity")
    weight: float | None = None
    weight_unit: str | None = Field(default=None, alias="weightUnit")
    custom_fields: dict[str, Any] | None = Field(default=None, alias="customFields")
    timestamp: str | None = None

    model_config = ConfigDict(populate_by_name=True)


def _resolve_category_id(client: InflowClient, category_name: str) -> str:
    categories = client.get_list("/categories", pagination={"count": 100})
    wanted = category_name.lower()
    for c in categories.data:
        if (c.get("name") or "").lower() == wanted and c.get("categoryId"):
            return c["categoryId"]
    raise NotFoundError(f"Category not found: {category_name}")


@router.get("")
def list_products(
    name: str | None = None,
    description: str | None = None,
    barcode: str | None = None,
    sku: str | None = None,
    category_id: str | None = Query(default=None, alias="categoryId"),
    category_name: str | None = Query(default=None, alias="categoryName"),
    is_active: bool | None = Query(default=None, alias="isActive"),
    smart: str | None = None,
    track_serials: bool | None = Query(default=None, alias="trackSerials"),
    include: list[str] | None = Query(default=None),
    skip: int | None = Query(default=None, ge=0),
    count: int | None = Query(default=None, ge=1, le=100),
    sort: str | None = None,
    sort_desc: bool | None = Query(default=None, alias="sortDesc"),
    include_count: bool = Query(default=False, alias="includeCount"),
    client: InflowClient = Depends(get_client),
):
    if category_name and not category_id:
        category_id = _resolve_category_id(client, category_name)

    filters = {
        "name": name,
        "description": description,
        "barcode": barcode,
        "sku": sku,
        "categoryId": category_id,
        "isActive": is_active,
        "smart": smart,
        "trackSerials": track_serials,
    }
    result = client.get_list(
        "/products",
        filters=filters,
        pagination=pagination(skip, count),
        include=include,
        sort=sort,
        sort_desc=sort_desc,
        include_count=include_count,
    )
    return list_response(result)


@router.get("/{product_id}")
def get_product(
    product_id: str,
    include: list[str] | None = Query(default=None),
    client: InflowClient = Depends(get_client),
):
    return client.get(f"/products/{product_id}", include=include)


@router.put("")
def upsert_product(payload: ProductUpsert, client: InflowClient = Depends(get_client)):
    # inFlow attend productId (pas id), y compris en création
    body = payload.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)
    body = {"productId": payload.id or str(uuid4()), **body}
    return client.put("/products", body)


@router.get("/{product_id}/serials", response_model=ProductSerials, response_model_by_alias=True)
def get_product_serials(product_id: str, client: InflowClient = Depends(get_client)):
    # quantityOnHand à 0 : série vendue / expédiée
    return product_serials(client, product_id)
