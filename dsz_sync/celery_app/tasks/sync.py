"""
Sync tasks — batch sync entry points for direct enqueueing.

Tasks:
- run_scheduled_sync: start a sync run (no-op while one is live)
- continue_batch: process the next batch of an in-progress run
Version: 1.0.0
"""
import logging

from dsz_sync.celery_app.celery_config import celery_app
from dsz_sync.celery_app.tasks.base import BaseTask
from dsz_sync import container

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.sync.run_scheduled_sync",
    max_retries=0,
)
def run_scheduled_sync(self):
    result = container.get_sync_coordinator().run_scheduled_sync()
    logger.info(f"Sync run step: status={result.get('status')}, message={result.get('message')}")
    return result


@celery_app.task(
    bind=True,
    base=BaseTask,
    name="tasks.sync.continue_batch",
    max_retries=0,
)
def continue_batch(self):
    result = container.get_sync_coordinator().continue_batch()
    logger.info(
        f"Sync batch step: status={result.get('status')}, progress={result.get('progress')}"
    )
    return result
