from fastapi import APIRouter

from backend.app.api.v1.endpoints.health import router as health_router
from backend.app.api.v1.endpoints.products import router as products_router
from backend.app.api.v1.endpoints.vendors import router as vendors_router
from backend.app.api.v1.endpoints.purchase_orders import router as purchase_orders_router
from backend.app.api.v1.endpoints.locations import router as locations_router
from backend.app.api.v1.endpoints.stock import router as stock_router
from backend.app.api.v1.endpoints.stock_adjustments import router as stock_adjustments_router
from backend.app.api.v1.endpoints.stock_transfers import router as stock_transfers_router
from backend.app.api.v1.endpoints.stock_counts import router as stock_counts_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(products_router, tags=["products"])
router.include_router(vendors_router, tags=["vendors"])
router.include_router(purchase_orders_router, tags=["purchase_orders"])
router.include_router(locations_router, tags=["locations"])
router.include_router(stock_router, tags=["stock"])
router.include_router(stock_adjustments_router, tags=["stock_adjustments"])
router.include_router(stock_transfers_router, tags=["stock_transfers"])
router.include_router(stock_counts_router, tags=["stock_counts"])
