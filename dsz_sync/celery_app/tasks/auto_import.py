"""
Auto import task — one discovery/import run.

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
    name="tasks.auto_import.run_auto_import",
    max_retries=0,
)
def run_auto_import(self):
    """Run one auto import; disabled/in-progress runs return status skipped."""
    result = container.get_auto_importer().run_import()
    logger.info(
        f"Auto import task finished: status={result.get('status')}, imported={result.get('imported')}, "
        f"errors={result.get('errors')}"
    )
    return result
