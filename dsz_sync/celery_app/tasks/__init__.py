"""
Celery task exports.

Version: 1.0.0
"""
from dsz_sync.celery_app.tasks.scheduler import tick, run_event
from dsz_sync.celery_app.tasks.sync import run_scheduled_sync, continue_batch
from dsz_sync.celery_app.tasks.auto_import import run_auto_import

__all__ = [
    "tick",
    "run_event",
    "run_scheduled_sync",
    "continue_batch",
    "run_auto_import",
]
