from fastapi import APIRouter

from stockledger.app.api.v1.endpoints.health import router as health_router
from stockledger.app.api.v1.endpoints.locations import router as locations_router
from stockledger.app.api.v1.endpoints.products import router as products_router
from stockledger.app.api.v1.endpoints.suppliers import router as suppliers_router
from stockledger.app.api.v1.endpoints.items import router as items_router
from stockledger.app.api.v1.endpoints.inward import router as inward_router
from stockledger.app.api.v1.endpoints.outward import router as outward_router
from stockledger.app.api.v1.endpoints.transfers import router as transfers_router
from stockledger.app.api.v1.endpoints.damage import router as damage_router
from stockledger.app.api.v1.endpoints.audits import router as audits_router
from stockledger.app.api.v1.endpoints.stock import router as stock_router
from stockledger.app.api.v1.endpoints.stock_movements import router as stock_movements_router
from stockledger.app.api.v1.endpoints.activity import router as activity_router
from stockledger.app.api.v1.endpoints.closing_stock import router as closing_stock_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(locations_router, tags=["locations"])
router.include_router(products_router, tags=["products"])
router.include_router(suppliers_router, tags=["suppliers"])
router.include_router(items_router, tags=["items"])
router.include_router(inward_router, tags=["inward"])
router.include_router(outward_router, tags=["outward"])
router.include_router(transfers_router, tags=["transfers"])
router.include_router(damage_router, tags=["damage"])
router.include_router(audits_router, tags=["inventory_audit"])
router.include_router(stock_router, tags=["stock"])
router.include_router(stock_movements_router, tags=["stock_movements"])
router.include_router(activity_router, tags=["activity"])
router.include_router(closing_stock_router, tags=["closing_stock"])
