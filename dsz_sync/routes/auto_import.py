"""
Auto import routes — settings, manual runs, status and history.

Saving settings re-applies the schedule: enabled settings schedule the
auto import at the chosen frequency, disabled settings unschedule it.
Version: 1.0.0
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Query

from dsz_sync.celery_app.tasks.auto_import import run_auto_import
from dsz_sync.container import get_auto_importer
from dsz_sync.core.auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auto-import", tags=["auto-import"])


@router.get("/settings")
def get_settings(current_user: dict = Depends(require_admin)):
    return {"success": True, "settings": get_auto_importer().get_settings().model_dump()}


@router.put("/settings")
def update_settings(
    payload: Dict[str, Any] = Body(...),
    current_user: dict = Depends(require_admin),
):
    importer = get_auto_importer()
    settings = importer.save_settings(payload)
    if settings.enabled:
        importer.schedule_import(settings.frequency)
    else:
        importer.unschedule_import()
    return {
        "success": True,
        "message": "Auto import settings saved",
        "settings": settings.model_dump(),
        "next_scheduled": importer.get_next_scheduled(),
    }


@router.post("/run")
def run_import(
    background: bool = Query(False),
    current_user: dict = Depends(require_admin),
):
    if background:
        task = run_auto_import.delay()
        return {"success": True, "status": "queued", "task_id": task.id, "message": "Auto import queued"}

    result = get_auto_importer().run_import()
    return {"success": result.get("status") != "error", **result}


@router.get("/status")
def import_status(current_user: dict = Depends(require_admin)):
    return {"success": True, **get_auto_importer().get_status()}


@router.get("/history")
def import_history(
    limit: int = Query(10, ge=1, le=30),
    current_user: dict = Depends(require_admin),
):
    return {"success": True, "history": get_auto_importer().get_history(limit)}


@router.get("/stats")
def import_stats(current_user: dict = Depends(require_admin)):
    return {"success": True, **get_auto_importer().get_stats()}


@router.delete("/history")
def clear_history(current_user: dict = Depends(require_admin)):
    get_auto_importer().clear_history()
    return {"success": True, "message": "Import history cleared"}
