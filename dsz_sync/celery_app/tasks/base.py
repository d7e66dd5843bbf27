"""
Base task class — common lifecycle logging for all DSZ tasks.

Dependencies are resolved through dsz_sync.container inside the task
body, after the worker has forked, so each worker process builds its
own Redis/HTTP/Supabase connections.
Version: 1.0.0
"""
import logging

from celery import Task

logger = logging.getLogger(__name__)


class BaseTask(Task):
    """Base task with common functionality for all workers."""

    abstract = True

    # autoretry_for is declared per task, never here
    retry_backoff = True
    retry_backoff_max = 300
    retry_jitter = True
    max_retries = 3

    track_started = True

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Called when task fails after all retries exhausted."""
        logger.error(f"Task {self.name}[{task_id}] failed: {exc}")

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        """Called when task is being retried."""
        logger.warning(f"Task {self.name}[{task_id}] retrying (attempt {self.request.retries}): {exc}")

    def on_success(self, retval, task_id, args, kwargs):
        """Called when task succeeds."""
        logger.info(f"Task {self.name}[{task_id}] succeeded")
