"""
Connection routes — supplier credentials, token and rate limiter state.

Provides:
- POST   /connection/test               – authenticate and probe the product API
- GET    /connection/token              – token validity and expiry
- DELETE /connection/token              – drop the cached token
- GET    /connection/products           – browse the supplier catalog
- GET    /connection/rate-limit         – current window usage
- POST   /connection/rate-limit/reset   – clear the window
Version: 1.0.0
"""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from dsz_sync.container import get_dsz_client
from dsz_sync.core.auth import require_admin
from dsz_sync.schemas.requests import ConnectionTestRequest
from dsz_sync.utils.rate_limiter import get_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/connection", tags=["connection"])


@router.post("/test")
def test_connection(
    payload: ConnectionTestRequest = Body(...),
    current_user: dict = Depends(require_admin),
):
    client = get_dsz_client()
    result = client.test_connection(payload.email, payload.password)
    if payload.save_credentials:
        client.save_credentials(payload.email, payload.password)
    return result


@router.get("/token")
def token_status(current_user: dict = Depends(require_admin)):
    return {"success": True, **get_dsz_client().get_token_status()}


@router.delete("/token")
def clear_token(current_user: dict = Depends(require_admin)):
    get_dsz_client().clear_token()
    return {"success": True, "message": "Token cleared"}


@router.get("/products")
def browse_supplier_products(
    page_no: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    category_id: Optional[int] = Query(None),
    keywords: Optional[str] = Query(None),
    current_user: dict = Depends(require_admin),
):
    filters = {}
    if category_id is not None:
        filters["category_id"] = category_id
    if keywords:
        filters["keywords"] = keywords

    response = get_dsz_client().get_all_products(page_no=page_no, limit=limit, filters=filters)
    return {
        "success": True,
        "products": response.get("result") or [],
        "total": response.get("total", 0),
        "page_no": page_no,
        "limit": limit,
    }


@router.get("/rate-limit")
def rate_limit_status(current_user: dict = Depends(require_admin)):
    limiter = get_rate_limiter()
    return {
        "success": True,
        "status": limiter.get_status(),
        "stats": limiter.get_stats(),
        "recommended_delay": limiter.get_recommended_delay(),
    }


@router.post("/rate-limit/reset")
def reset_rate_limit(current_user: dict = Depends(require_admin)):
    get_rate_limiter().reset()
    return {"success": True, "message": "Rate limit data reset"}
