"""
Dropshipzone API Rate Limiter using a sliding request window.

Keeps outbound supplier calls under the documented ceilings and smooths
request issuance with an adaptive, usage-proportional delay.

Window Configuration:
- Hard ceilings: 60 requests/minute, 600 requests/hour
- Minimum gap between requests: 0.5 seconds
- Adaptive delay: 1s .. 5s, stepping up with max(minute, hour) usage
- Storage: settings store (survives process restarts, shared by workers)

Pruning of entries older than an hour runs at most every 5 minutes so a
request does not rewrite the whole window each time.

Usage:
    from dsz_sync.utils.rate_limiter import get_rate_limiter

    limiter = get_rate_limiter()
    limiter.smart_wait()      # Blocks until a request is allowed
    limiter.record_request()
    # Now safe to call the supplier API
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from dsz_sync.core.constants.sync import OPTION_RATE_LIMIT

logger = logging.getLogger("rate_limiter")

MAX_PER_MINUTE = 60
MAX_PER_HOUR = 600
MIN_DELAY = 0.5
CLEANUP_INTERVAL = 300
SAFETY_MARGIN = 1
MIN_SLEEP = 0.1

# (usage ratio strictly above, delay seconds), checked top-down
ADAPTIVE_STEPS = (
    (0.9, 5.0),
    (0.8, 3.0),
    (0.6, 2.0),
    (0.4, 1.5),
)
BASE_DELAY = 1.0


def _empty_data(now: float) -> Dict[str, Any]:
    return {
        "requests": [],
        "last_cleanup": now,
        "stats": {
            "total_requests": 0,
            "total_waits": 0,
            "total_wait_time": 0.0,
        },
        "last_request_time": 0.0,
    }


class RateLimiter:
    """
    Sliding-window limiter for the Dropshipzone API.

    The window and counters are persisted so that short-lived workers
    (Celery tasks, request handlers) all see the same recent history.
    """

    def __init__(
        self,
        store,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        max_per_minute: int = MAX_PER_MINUTE,
        max_per_hour: int = MAX_PER_HOUR,
    ):
        """
        Initialize the rate limiter.

        Args:
            store: Settings store with get(key, default) / set(key, value)
            clock: Time source (seconds since epoch)
            sleep: Blocking sleep function
            max_per_minute: Hard per-minute ceiling
            max_per_hour: Hard per-hour ceiling
        """
        self._store = store
        self._clock = clock
        self._sleep = sleep
        self._max_per_minute = max_per_minute
        self._max_per_hour = max_per_hour
        self._data: Dict[str, Any] = {}
        self._load_data()
        self._cleanup_old_entries()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load_data(self) -> None:
        now = self._clock()
        data = self._store.get(OPTION_RATE_LIMIT) or {}
        base = _empty_data(now)
        base.update({k: v for k, v in data.items() if k in base})
        base["stats"] = {**_empty_data(now)["stats"], **(data.get("stats") or {})}
        self._data = base

    def _save_data(self) -> None:
        self._store.set(OPTION_RATE_LIMIT, self._data)

    def _refresh(self) -> None:
        """Re-read the shared window; other processes record into the same key."""
        self._load_data()

    def _cleanup_old_entries(self) -> bool:
        """Drop entries older than an hour, at most once per CLEANUP_INTERVAL."""
        now = self._clock()
        if self._data["last_cleanup"] + CLEANUP_INTERVAL > now:
            return False

        one_hour_ago = now - 3600
        before = len(self._data["requests"])
        self._data["requests"] = [t for t in self._data["requests"] if t > one_hour_ago]
        self._data["last_cleanup"] = now
        self._save_data()

        removed = before - len(self._data["requests"])
        if removed:
            logger.debug(f"Rate limiter pruned {removed} expired entries")
        return True

    # ------------------------------------------------------------------
    # Window counts
    # ------------------------------------------------------------------

    def _in_window(self, seconds: int) -> list:
        cutoff = self._clock() - seconds
        return [t for t in self._data["requests"] if t > cutoff]

    def get_minute_count(self) -> int:
        return len(self._in_window(60))

    def get_hour_count(self) -> int:
        return len(self._in_window(3600))

    def get_usage(self) -> Dict[str, float]:
        return {
            "minute_usage": self.get_minute_count() / self._max_per_minute,
            "hour_usage": self.get_hour_count() / self._max_per_hour,
        }

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def can_proceed(self) -> bool:
        """True iff both windows are under their ceiling."""
        self._refresh()
        return (
            self.get_minute_count() < self._max_per_minute
            and self.get_hour_count() < self._max_per_hour
        )

    def time_until_allowed(self) -> float:
        """
        Seconds until a request is allowed again.

        The minute window is checked before the hour window. The wait is the
        time until the oldest in-window request leaves the saturated window,
        plus a safety margin.
        """
        if self.can_proceed():
            return 0

        now = self._clock()
        minute_window = self._in_window(60)
        if len(minute_window) >= self._max_per_minute:
            return max(0.0, min(minute_window) + 60 - now) + SAFETY_MARGIN

        hour_window = self._in_window(3600)
        return max(0.0, min(hour_window) + 3600 - now) + SAFETY_MARGIN

    def adaptive_delay(self) -> float:
        """Advisory delay that grows with the busiest window's usage."""
        usage = self.get_usage()
        ratio = max(usage["minute_usage"], usage["hour_usage"])
        for threshold, delay in ADAPTIVE_STEPS:
            if ratio > threshold:
                return delay
        return BASE_DELAY

    def get_recommended_delay(self) -> float:
        return self.adaptive_delay()

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    def _track_wait(self, seconds: float) -> None:
        self._data["stats"]["total_waits"] += 1
        self._data["stats"]["total_wait_time"] += seconds

    def smart_wait(self) -> Dict[str, Any]:
        """
        Block before the next request.

        First enforces the hard ceiling; if none applies, sleeps for the
        larger of the adaptive delay and the remaining minimum gap.

        Returns:
            Dict with waited (seconds), reason ("none", "rate_limit",
            "adaptive") and usage ratios.
        """
        self._refresh()
        wait_info = {"waited": 0, "reason": "none", "usage": self.get_usage()}

        hard_wait = self.time_until_allowed()
        if hard_wait > 0:
            logger.info(
                f"Rate limit hard wait {hard_wait:.1f}s "
                f"(minute={self.get_minute_count()}, hour={self.get_hour_count()})"
            )
            self._sleep(hard_wait)
            wait_info["waited"] = hard_wait
            wait_info["reason"] = "rate_limit"
            self._refresh()
            self._track_wait(hard_wait)
            self._save_data()
            return wait_info

        adaptive = self.adaptive_delay()
        since_last = self._clock() - float(self._data.get("last_request_time") or 0)
        gap_remaining = max(0.0, MIN_DELAY - since_last)
        delay = max(adaptive, gap_remaining)

        if delay > MIN_SLEEP:
            logger.debug(
                f"Rate limit adaptive delay {delay:.2f}s "
                f"(adaptive={adaptive:.2f}, gap={gap_remaining:.2f})"
            )
            self._sleep(delay)
            wait_info["waited"] = delay
            wait_info["reason"] = "adaptive"
            self._refresh()
            self._track_wait(delay)
            self._save_data()

        return wait_info

    def wait_if_needed(self, max_wait: float = 120) -> bool:
        """
        Legacy blocking wait on the hard ceiling only.

        Returns:
            True if the caller may proceed, False if the required wait
            exceeds max_wait (nothing is slept in that case).
        """
        wait_time = self.time_until_allowed()
        if wait_time <= 0:
            return True

        if wait_time > max_wait:
            logger.error(
                f"Rate limit wait {wait_time:.1f}s exceeds maximum {max_wait}s"
            )
            return False

        logger.info(f"Rate limit: waiting {wait_time:.1f}s before next request")
        self._sleep(wait_time)
        self._refresh()
        self._track_wait(wait_time)
        self._save_data()
        return True

    def record_request(self) -> None:
        """Record one outbound call. Call exactly once per request."""
        self._refresh()
        now = self._clock()
        self._data["requests"].append(now)
        self._data["stats"]["total_requests"] += 1
        self._data["last_request_time"] = now
        if not self._cleanup_old_entries():
            self._save_data()

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def get_status(self) -> dict:
        """Current window state (for the admin dashboard)."""
        self._refresh()
        usage = self.get_usage()
        minute_count = self.get_minute_count()
        hour_count = self.get_hour_count()
        return {
            "minute_count": minute_count,
            "minute_limit": self._max_per_minute,
            "minute_remaining": max(0, self._max_per_minute - minute_count),
            "minute_usage_percent": round(usage["minute_usage"] * 100, 1),
            "hour_count": hour_count,
            "hour_limit": self._max_per_hour,
            "hour_remaining": max(0, self._max_per_hour - hour_count),
            "hour_usage_percent": round(usage["hour_usage"] * 100, 1),
            "can_request": self.can_proceed(),
            "wait_time": self.time_until_allowed(),
            "recommended_delay": round(self.adaptive_delay(), 2),
        }

    def get_stats(self) -> dict:
        self._refresh()
        stats = self._data["stats"]
        waits = stats["total_waits"]
        return {
            "total_requests": stats["total_requests"],
            "total_waits": waits,
            "total_wait_time": round(stats["total_wait_time"], 2),
            "avg_wait_time": round(stats["total_wait_time"] / waits, 2) if waits else 0,
        }

    def reset(self) -> None:
        """
        Clear the window and statistics.

        Use with caution - typically only for testing or after a credential change.
        """
        self._data = _empty_data(self._clock())
        self._save_data()
        logger.info("Rate limit data reset")


# Singleton instance
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """
    Get or create the singleton RateLimiter instance.

    Uses the Redis-backed settings store from environment configuration.
    """
    global _rate_limiter

    if _rate_limiter is None:
        from dsz_sync.db.settings_store import RedisSettingsStore
        _rate_limiter = RateLimiter(store=RedisSettingsStore())

    return _rate_limiter


def reset_rate_limiter() -> None:
    """Reset the singleton instance (for testing)."""
    global _rate_limiter
    _rate_limiter = None
