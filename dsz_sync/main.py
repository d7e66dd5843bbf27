"""
FastAPI application — admin HTTP surface for the DSZ sync service.

Version: 1.0.0
"""
import logging
import os
import platform
import signal
import subprocess
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI

from dsz_sync.core.config import settings
from dsz_sync.core.middleware import apply_cors, register_exception_handlers
from dsz_sync.routes import health_router, v1_router

logger = logging.getLogger(__name__)

_celery_processes: List[subprocess.Popen] = []


def _start_celery(args: List[str], label: str) -> Optional[subprocess.Popen]:
    """Start a Celery worker or beat as a subprocess of the API."""
    is_windows = platform.system() == "Windows"
    cmd = [sys.executable, "-m", "celery", "-A", "dsz_sync.celery_app", *args, "-l", "info"]
    if is_windows and args[0] == "worker":
        cmd.append("--pool=solo")

    kwargs = {"cwd": os.path.dirname(os.path.dirname(os.path.abspath(__file__)))}
    if is_windows:
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP

    try:
        process = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, **kwargs)
    except OSError as e:
        logger.error(f"Failed to start Celery {label}: {e}")
        return None
    logger.info(f"Celery {label} started (PID: {process.pid})")
    return process


def _stop_celery_processes() -> None:
    for process in _celery_processes:
        if process and process.poll() is None:
            logger.info(f"Stopping Celery process (PID: {process.pid})...")
            if platform.system() == "Windows":
                process.terminate()
            else:
                process.send_signal(signal.SIGTERM)
            try:
                process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                logger.warning(f"Force killing Celery process {process.pid}")
                process.kill()
    _celery_processes.clear()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    On startup:
    - Optionally start a Celery worker and beat (AUTO_START_CELERY=true)
    - Verify Redis through the rate limiter
    - Log the sync coordinator state

    On shutdown:
    - Stop Celery subprocesses
    """
    logger.info("=== DSZ Sync Starting ===")

    if settings.auto_start_celery:
        for args, label in ((["worker", "-Q", "sync,default", "--concurrency=1"], "worker"), (["beat"], "beat")):
            process = _start_celery(args, label)
            if process:
                _celery_processes.append(process)
    else:
        logger.info("Celery auto-start disabled (AUTO_START_CELERY=false)")

    try:
        from dsz_sync.utils.rate_limiter import get_rate_limiter
        status = get_rate_limiter().get_status()
        logger.info(
            f"Rate limiter initialized: {status['minute_count']}/{status['minute_limit']} requests this minute"
        )
    except Exception as e:
        logger.warning(f"Rate limiter initialization failed (Redis may be unavailable): {e}")

    try:
        from dsz_sync.container import get_sync_coordinator
        sync_status = get_sync_coordinator().get_sync_status()
        logger.info(
            f"Sync state: in_progress={sync_status['in_progress']}, "
            f"next_scheduled={sync_status['next_scheduled']}"
        )
    except Exception as e:
        logger.warning(f"Could not get sync status: {e}")

    logger.info("=== DSZ Sync Ready ===")

    yield

    logger.info("=== DSZ Sync Shutting Down ===")
    if _celery_processes:
        _stop_celery_processes()
    logger.info("Shutdown complete")


app = FastAPI(title="DSZ Sync", lifespan=lifespan)
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

apply_cors(app)
register_exception_handlers(app)

app.include_router(health_router)
app.include_router(v1_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "dsz_sync.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
