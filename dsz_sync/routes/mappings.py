"""
Mapping routes — local product <-> supplier SKU mappings.

Provides:
- GET    /mappings                          – paginated list
- POST   /mappings                          – create or update a mapping
- DELETE /mappings?confirm=true            – remove every mapping
- DELETE /mappings/{local_id}               – remove a mapping
- PATCH  /mappings/{local_id}/sync-enabled  – include/exclude from sync
- POST   /mappings/auto-map                 – map by matching SKUs
- GET    /mappings/counts                   – dashboard counters
- GET    /mappings/search-local             – catalog search with mapping info
Version: 1.0.0
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from dsz_sync.container import get_product_mapper
from dsz_sync.core.auth import require_admin
from dsz_sync.schemas.requests import MappingCreateRequest, SyncEnabledRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mappings", tags=["mappings"])


@router.get("")
def list_mappings(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    search: str = Query(""),
    sync_enabled: Optional[bool] = Query(None),
    orderby: Literal["created_at", "supplier_sku", "last_synced"] = Query("created_at"),
    order: Literal["asc", "desc"] = Query("desc"),
    current_user: dict = Depends(require_admin),
):
    mapper = get_product_mapper()
    mappings = mapper.get_mappings(
        limit=limit, offset=offset, search=search,
        sync_enabled=sync_enabled, orderby=orderby, order=order,
    )
    return {
        "success": True,
        "mappings": [m.model_dump() for m in mappings],
        "total": mapper.get_count(sync_enabled=sync_enabled, search=search),
        "limit": limit,
        "offset": offset,
    }


@router.post("")
def create_mapping(
    payload: MappingCreateRequest = Body(...),
    current_user: dict = Depends(require_admin),
):
    mapping_id = get_product_mapper().map(
        payload.local_id, payload.supplier_sku.strip(), payload.supplier_name
    )
    return {"success": True, "message": "Mapping saved", "mapping_id": mapping_id}


@router.delete("")
def clear_mappings(
    confirm: bool = Query(False),
    current_user: dict = Depends(require_admin),
):
    if not confirm:
        raise HTTPException(status_code=400, detail="Pass confirm=true to delete every mapping")
    get_product_mapper().clear_all()
    return {"success": True, "message": "All mappings removed"}


@router.delete("/{local_id}")
def delete_mapping(local_id: int, current_user: dict = Depends(require_admin)):
    mapper = get_product_mapper()
    if mapper.get_by_local_id(local_id) is None:
        raise HTTPException(status_code=404, detail="Mapping not found")
    mapper.unmap(local_id)
    return {"success": True, "message": "Mapping removed"}


@router.patch("/{local_id}/sync-enabled")
def set_sync_enabled(
    local_id: int,
    payload: SyncEnabledRequest = Body(...),
    current_user: dict = Depends(require_admin),
):
    if not get_product_mapper().set_sync_enabled(local_id, payload.enabled):
        raise HTTPException(status_code=404, detail="Mapping not found")
    return {"success": True, "local_id": local_id, "sync_enabled": payload.enabled}


@router.post("/auto-map")
def auto_map(current_user: dict = Depends(require_admin)):
    results = get_product_mapper().auto_map_by_identifier()
    return {
        "success": True,
        "message": f"Auto-mapping complete: {results['mapped']} mapped, {results['skipped']} skipped",
        **results,
    }


@router.get("/counts")
def mapping_counts(current_user: dict = Depends(require_admin)):
    mapper = get_product_mapper()
    since = datetime.now(timezone.utc) - timedelta(hours=24)
    return {
        "success": True,
        "total": mapper.get_count(),
        "sync_enabled": mapper.get_syncable_count(),
        "never_synced": mapper.get_never_synced_count(),
        "synced_last_24h": mapper.get_synced_since_count(since),
        "unmapped": mapper.get_unmapped_count(),
    }


@router.get("/search-local")
def search_local(
    q: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(require_admin),
):
    return {"success": True, "products": get_product_mapper().search_local_products(q, limit)}
