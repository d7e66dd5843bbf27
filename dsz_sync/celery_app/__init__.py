"""
Celery application package — exports the configured app.

Version: 1.0.0
"""
from dsz_sync.celery_app.celery_config import celery_app

__all__ = ["celery_app"]
