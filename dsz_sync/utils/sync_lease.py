"""
Sync lease — Redis-backed owner lease for long-running sync and import runs.

A run claims the lease with its run id before touching shared state and
re-claims it on every batch step, which extends the TTL. A crashed run
stops extending; once the TTL lapses the next trigger can claim the
lease. The TTL matches the stale-run threshold (30 minutes).

Claim and release are atomic Lua scripts so that one owner can never
extend or delete a lease held by another.
Version: 1.0.0
"""
import logging
from typing import Optional

import redis

from dsz_sync.core.config import settings
from dsz_sync.core.constants.sync import STALE_LOCK_SECONDS
from dsz_sync.core.exceptions import StoreError

logger = logging.getLogger(__name__)

# Claim if free, extend if already ours, otherwise fail.
# KEYS[1] = lease key, ARGV[1] = owner, ARGV[2] = ttl seconds
ACQUIRE_LEASE_SCRIPT = """
local holder = redis.call('GET', KEYS[1])
if (not holder) or holder == ARGV[1] then
    redis.call('SET', KEYS[1], ARGV[1], 'EX', tonumber(ARGV[2]))
    return 1
end
return 0
"""

# Compare-and-delete.
RELEASE_LEASE_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


def _get_redis() -> redis.Redis:
    """Create a Redis client from the configured URL."""
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


class SyncLease:
    """Named lease with a TTL and owner compare-and-set semantics."""

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        name: str = "sync_run",
        ttl: int = STALE_LOCK_SECONDS,
        prefix: str | None = None,
    ):
        self._redis = redis_client or _get_redis()
        self._key = f"{prefix or settings.dsz_key_prefix}:lease:{name}"
        self._ttl = ttl
        self._acquire_script = self._redis.register_script(ACQUIRE_LEASE_SCRIPT)
        self._release_script = self._redis.register_script(RELEASE_LEASE_SCRIPT)

    @property
    def ttl(self) -> int:
        return self._ttl

    def acquire(self, owner: str) -> bool:
        """Claim the lease for owner, or extend it if owner already holds it."""
        try:
            acquired = bool(self._acquire_script(keys=[self._key], args=[owner, self._ttl]))
        except redis.RedisError as e:
            logger.error(f"Redis error acquiring lease {self._key}: {e}")
            raise StoreError(f"Failed to acquire lease: {e}") from e

        if acquired:
            logger.debug(f"Lease held: key={self._key}, owner={owner}, ttl={self._ttl}s")
        else:
            logger.info(f"Lease busy: key={self._key}, holder={self.holder()}, requested_by={owner}")
        return acquired

    def release(self, owner: str) -> bool:
        """Release the lease only if owner still holds it."""
        try:
            released = bool(self._release_script(keys=[self._key], args=[owner]))
        except redis.RedisError as e:
            logger.error(f"Redis error releasing lease {self._key}: {e}")
            raise StoreError(f"Failed to release lease: {e}") from e

        if not released:
            logger.warning(f"Lease not released, owner mismatch: key={self._key}, owner={owner}")
        return released

    def force_release(self) -> None:
        try:
            self._redis.delete(self._key)
        except redis.RedisError as e:
            raise StoreError(f"Failed to force-release lease: {e}") from e
        logger.warning(f"Lease force-released: key={self._key}")

    def holder(self) -> Optional[str]:
        try:
            return self._redis.get(self._key)
        except redis.RedisError as e:
            raise StoreError(f"Failed to read lease: {e}") from e

    def ttl_remaining(self) -> int:
        """Seconds left on the lease, 0 if free."""
        try:
            remaining = self._redis.ttl(self._key)
        except redis.RedisError as e:
            raise StoreError(f"Failed to read lease TTL: {e}") from e
        return max(0, int(remaining or 0))
