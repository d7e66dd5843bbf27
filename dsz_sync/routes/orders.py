"""
Order routes — submit local orders to Dropshipzone and inspect results.

Version: 1.0.0
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from dsz_sync.container import get_order_submission
from dsz_sync.core.auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/dsz")
def list_dsz_orders(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    status: str = Query(""),
    current_user: dict = Depends(require_admin),
):
    orders = get_order_submission().list_dsz_orders(limit=limit, offset=offset, status=status)
    return {"success": True, "orders": orders}


@router.post("/{order_id}/submit")
def submit_order(order_id: int, current_user: dict = Depends(require_admin)):
    return get_order_submission().submit_order(order_id)


@router.get("/{order_id}/dsz")
def get_dsz_order(order_id: int, current_user: dict = Depends(require_admin)):
    record = get_order_submission().get_dsz_order(order_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Order has not been submitted to Dropshipzone")
    return {"success": True, "order": record}
