"""
Celery configuration — broker, queues, routes and the scheduler beat.

The only beat entry is the scheduler tick. Recurring sync and auto-import
runs are persisted by dsz_sync.services.scheduler and dispatched from the
tick, so the frequency can be changed at runtime through the API.

=============================================================================
RUNNING WORKERS
=============================================================================
    Worker (sync runs must not overlap, keep concurrency at 1 on "sync"):
        celery -A dsz_sync.celery_app worker -Q sync,default --concurrency=1 -l info -n sync@%h

    Beat:
        celery -A dsz_sync.celery_app beat -l info

On Windows add --pool=solo.

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================
    CELERY_BROKER_URL / CELERY_RESULT_BACKEND: default to REDIS_URL
    SYNC_ENABLED: "true" or "false" — master on/off for the scheduler tick
    SCHEDULER_TICK_SECONDS: seconds between scheduler ticks (default: 60)
Version: 1.0.0
"""
import logging
import platform

from celery import Celery
from kombu import Queue

from dsz_sync.core.config import settings

logger = logging.getLogger(__name__)

IS_WINDOWS = platform.system() == "Windows"

SYNC_ENABLED = settings.sync_enabled
SCHEDULER_TICK_SECONDS = settings.scheduler_tick_seconds


def _build_beat_schedule() -> dict:
    """Beat schedule; empty when SYNC_ENABLED is off."""
    if not SYNC_ENABLED:
        logger.info("Scheduler tick disabled (SYNC_ENABLED=false)")
        return {}

    return {
        "scheduler-tick": {
            "task": "tasks.scheduler.tick",
            "schedule": float(SCHEDULER_TICK_SECONDS),
            "options": {"queue": "default"},
        },
    }


celery_app = Celery(
    "dsz_sync",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "dsz_sync.celery_app.tasks.scheduler",
        "dsz_sync.celery_app.tasks.sync",
        "dsz_sync.celery_app.tasks.auto_import",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    task_queues=(
        Queue("sync"),
        Queue("default"),
    ),
    task_routes={
        "tasks.sync.*": {"queue": "sync"},
        "tasks.auto_import.*": {"queue": "sync"},
        "tasks.scheduler.*": {"queue": "default"},
    },

    beat_schedule=_build_beat_schedule(),

    result_expires=3600,

    task_default_retry_delay=30,
    task_max_retries=3,

    worker_pool="solo" if IS_WINDOWS else "prefork",

    broker_transport_options={"visibility_timeout": 3600},

    worker_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
    worker_task_log_format="[%(asctime)s: %(levelname)s/%(processName)s] [%(task_name)s] %(message)s",
)
