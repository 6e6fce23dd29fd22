from fastapi import APIRouter

from backend.app.api.v1.endpoints.goods_receipts import router as goods_receipts_router
from backend.app.api.v1.endpoints.purchase_orders import router as purchase_orders_router
from backend.app.api.v1.endpoints.stock import router as stock_router
from backend.app.api.v1.endpoints.stock_counts import router as stock_counts_router
from backend.app.api.v1.endpoints.stock_movements import router as stock_movements_router

router = APIRouter()
router.include_router(stock_router, tags=["stock"])
router.include_router(stock_movements_router, tags=["stock_movements"])
router.include_router(stock_counts_router, tags=["stock_counts"])
router.include_router(goods_receipts_router, tags=["goods_receipts"])
router.include_router(purchase_orders_router, tags=["orders"])
