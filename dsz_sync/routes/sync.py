"""
Sync routes — batch sync status, manual triggers and scheduling.

POST /sync/run runs the first batch inline and returns its progress;
the rest of the run continues through the scheduler. With
background=true the step is queued to the Celery sync queue instead.
Version: 1.0.0
"""
import logging

from fastapi import APIRouter, Body, Depends, Query

from dsz_sync.celery_app.tasks.sync import continue_batch as continue_task
from dsz_sync.celery_app.tasks.sync import run_scheduled_sync as run_task
from dsz_sync.container import get_sync_coordinator
from dsz_sync.core.auth import require_admin
from dsz_sync.schemas.requests import ScheduleRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/status")
def sync_status(current_user: dict = Depends(require_admin)):
    return {"success": True, **get_sync_coordinator().get_sync_status()}


@router.post("/run")
def run_sync(
    background: bool = Query(False, description="Queue the run instead of running the first batch inline"),
    current_user: dict = Depends(require_admin),
):
    if background:
        task = run_task.delay()
        return {"success": True, "status": "queued", "task_id": task.id, "message": "Sync queued"}

    result = get_sync_coordinator().manual_sync()
    return {"success": result.get("status") != "error", **result}


@router.post("/continue")
def continue_sync(
    background: bool = Query(False),
    current_user: dict = Depends(require_admin),
):
    if background:
        task = continue_task.delay()
        return {"success": True, "status": "queued", "task_id": task.id, "message": "Batch queued"}

    result = get_sync_coordinator().continue_batch()
    return {"success": result.get("status") != "error", **result}


@router.post("/reset")
def reset_sync(current_user: dict = Depends(require_admin)):
    get_sync_coordinator().reset_sync_state()
    return {"success": True, "message": "Sync state reset"}


@router.put("/schedule")
def schedule_sync(
    payload: ScheduleRequest = Body(...),
    current_user: dict = Depends(require_admin),
):
    next_run = get_sync_coordinator().schedule_sync(payload.frequency)
    return {
        "success": True,
        "message": f"Sync scheduled ({payload.frequency})",
        "frequency": payload.frequency,
        "next_scheduled": next_run,
    }


@router.delete("/schedule")
def unschedule_sync(current_user: dict = Depends(require_admin)):
    get_sync_coordinator().unschedule_sync()
    return {"success": True, "message": "Sync unscheduled"}
