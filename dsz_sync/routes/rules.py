"""
Rule routes — price and stock rule sets with previews.

Updates are partial: omitted keys keep their stored values.
Version: 1.0.0
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from dsz_sync.container import get_price_engine, get_rule_store, get_stock_engine
from dsz_sync.core.auth import require_admin
from dsz_sync.schemas.requests import PricePreviewRequest, StockPreviewRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rules", tags=["rules"])


@router.get("/price")
def get_price_rules(current_user: dict = Depends(require_admin)):
    return {"success": True, "rules": get_rule_store().load_price_rules().model_dump()}


@router.put("/price")
def update_price_rules(
    payload: Dict[str, Any] = Body(...),
    current_user: dict = Depends(require_admin),
):
    rules = get_rule_store().save_price_rules(payload)
    get_price_engine().reload()
    return {"success": True, "message": "Price rules saved", "rules": rules.model_dump()}


@router.post("/price/preview")
def preview_price(
    payload: PricePreviewRequest = Body(...),
    current_user: dict = Depends(require_admin),
):
    engine = get_price_engine()
    engine.reload()
    return {"success": True, **engine.preview(payload.cost)}


@router.get("/stock")
def get_stock_rules(current_user: dict = Depends(require_admin)):
    return {"success": True, "rules": get_rule_store().load_stock_rules().model_dump()}


@router.put("/stock")
def update_stock_rules(
    payload: Dict[str, Any] = Body(...),
    current_user: dict = Depends(require_admin),
):
    rules = get_rule_store().save_stock_rules(payload)
    get_stock_engine().reload()
    return {"success": True, "message": "Stock rules saved", "rules": rules.model_dump()}


@router.post("/stock/preview")
def preview_stock(
    payload: StockPreviewRequest = Body(...),
    current_user: dict = Depends(require_admin),
):
    engine = get_stock_engine()
    engine.reload()
    return {"success": True, **engine.preview(payload.quantity)}
