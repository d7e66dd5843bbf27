"""
Product routes — import supplier products and resync local ones.

Provides:
- POST /products/import              – import one SKU
- POST /products/import-bulk         – import many SKUs
- POST /products/{local_id}/resync   – refresh one product
- POST /products/resync-all          – refresh every mapped product
Version: 1.0.0
"""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends

from dsz_sync.container import get_product_importer
from dsz_sync.core.auth import require_admin
from dsz_sync.schemas.requests import BulkImportRequest, ImportRequest, ResyncAllRequest
from dsz_sync.schemas.state import ResyncOptions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


@router.post("/import")
def import_product(
    payload: ImportRequest = Body(...),
    current_user: dict = Depends(require_admin),
):
    local_id = get_product_importer().import_product(payload.sku.strip(), status=payload.status)
    return {"success": True, "message": "Product imported", "local_id": local_id}


@router.post("/import-bulk")
def import_bulk(
    payload: BulkImportRequest = Body(...),
    current_user: dict = Depends(require_admin),
):
    results = get_product_importer().import_products(payload.skus, status=payload.status)
    return {
        "success": results["errors"] == 0,
        "message": (
            f"Import complete: {results['imported']} imported, "
            f"{results['skipped']} skipped, {results['errors']} errors"
        ),
        **results,
    }


@router.post("/{local_id}/resync")
def resync_product(
    local_id: int,
    options: Optional[ResyncOptions] = Body(None),
    current_user: dict = Depends(require_admin),
):
    get_product_importer().resync_product(local_id, options=options)
    return {"success": True, "message": "Product resynced", "local_id": local_id}


@router.post("/resync-all")
def resync_all(
    payload: Optional[ResyncAllRequest] = Body(None),
    current_user: dict = Depends(require_admin),
):
    payload = payload or ResyncAllRequest()
    results = get_product_importer().resync_all(limit=payload.limit, options=payload.options)
    return {
        "success": results["errors"] == 0,
        "message": f"Resync complete: {results['success']} updated, {results['errors']} errors",
        **results,
    }
