"""
Route aggregator — mounts all routers under /api/v1 prefix.

The health router is exported separately for main.py to mount at root.
Version: 1.0.0
"""
from fastapi import APIRouter

from dsz_sync.routes.auto_import import router as auto_import_router
from dsz_sync.routes.connection import router as connection_router
from dsz_sync.routes.health import router as health_router
from dsz_sync.routes.mappings import router as mappings_router
from dsz_sync.routes.orders import router as orders_router
from dsz_sync.routes.products import router as products_router
from dsz_sync.routes.rules import router as rules_router
from dsz_sync.routes.sync import router as sync_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(connection_router)
v1_router.include_router(rules_router)
v1_router.include_router(sync_router)
v1_router.include_router(mappings_router)
v1_router.include_router(products_router)
v1_router.include_router(auto_import_router)
v1_router.include_router(orders_router)

__all__ = ["v1_router", "health_router"]
