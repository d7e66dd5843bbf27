"""
Memory guard — self-preemption check for long batch loops.

Batch and import loops call is_near_limit() after every record and stop
the current page when the worker's resident memory crosses the
threshold. Work done so far is persisted; the next step resumes.
Version: 1.0.0
"""
import logging
from typing import Optional

import psutil

from dsz_sync.core.constants.sync import MEMORY_THRESHOLD_PERCENT

logger = logging.getLogger("memory_guard")


class MemoryGuard:

    def __init__(
        self,
        threshold_percent: float = MEMORY_THRESHOLD_PERCENT,
        limit_bytes: Optional[int] = None,
    ):
        """
        Args:
            threshold_percent: Usage percentage at which loops should stop
            limit_bytes: Memory ceiling; defaults to total system memory
        """
        self._threshold = threshold_percent
        self._limit_bytes = limit_bytes
        self._process = psutil.Process()

    @property
    def threshold_percent(self) -> float:
        return self._threshold

    def limit(self) -> int:
        if self._limit_bytes:
            return self._limit_bytes
        return psutil.virtual_memory().total

    def usage_percent(self) -> float:
        rss = self._process.memory_info().rss
        limit = self.limit()
        if not limit:
            return 0.0
        return rss / limit * 100

    def is_near_limit(self) -> bool:
        usage = self.usage_percent()
        if usage >= self._threshold:
            logger.warning(
                "Memory usage at %.1f%% of limit (threshold %.0f%%)", usage, self._threshold
            )
            return True
        return False

    def get_stats(self) -> dict:
        rss = self._process.memory_info().rss
        return {
            "rss_mb": round(rss / 1024 / 1024, 1),
            "limit_mb": round(self.limit() / 1024 / 1024, 1),
            "usage_percent": round(self.usage_percent(), 1),
            "threshold_percent": self._threshold,
        }
