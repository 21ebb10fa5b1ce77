from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from backend.app.api.deps import get_client
from backend.app.client.inflow import InflowClient
from backend.app.schemas.stock_level import StockSummaryBatch

router = APIRouter(prefix="/stock")


@router.get("/{product_id}")
def get_stock(
    product_id: str,
    include: list[str] | None = Query(default=None),
    client: InflowClient = Depends(get_client),
):
    """
    Stock (READ ONLY)
    - quantités par location calculées par inFlow, jamais recalculées ici
    """
    return client.get(f"/products/{product_id}/summary", include=include)


@router.post("/batch")
def get_stock_batch(payload: StockSummaryBatch, client: InflowClient = Depends(get_client)):
    params = {"include": ",".join(payload.include)} if payload.include else None
    return client.post("/products/summary", {"productIds": payload.product_ids}, params=params)
