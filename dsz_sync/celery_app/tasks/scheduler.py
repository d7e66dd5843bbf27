"""
Scheduler tasks — beat tick and event execution.

Tasks:
- tick: run by beat, dispatches every due recurring event
- run_event: executes the callback registered for one event
Version: 1.0.0
"""
import logging

from dsz_sync.celery_app.celery_config import celery_app
from dsz_sync.celery_app.tasks.base import BaseTask
from dsz_sync.core.exceptions import RetryableError
from dsz_sync import container

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.scheduler.tick",
    max_retries=0,
)
def tick(self):
    """Dispatch due events. Missed runs are skipped, not replayed."""
    fired = container.get_scheduler().run_due()
    if fired:
        logger.info(f"Scheduler tick fired {len(fired)} event(s): {fired}")
    return {"status": "ok", "fired": fired}


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.scheduler.run_event",
    autoretry_for=(RetryableError,),
    max_retries=2,
)
def run_event(self, event_name: str):
    """Run the callback registered for event_name in this worker."""
    logger.info(f"Running event {event_name}")
    return container.get_scheduler().fire(event_name)
