"""
Settings store — Redis-backed key-value store for persisted singletons.

Every persisted singleton (tokens, rule sets, sync state, rate-limit window,
import settings and history, schedule) is stored here as a JSON document.

Key format: {prefix}:option:{key}

Version: 1.0.0
"""
import json
import logging
from typing import Any, Optional

import redis

from dsz_sync.core.config import settings
from dsz_sync.core.exceptions import StoreError

logger = logging.getLogger(__name__)


def _get_redis(redis_url: str | None = None) -> redis.Redis:
    """Create a Redis client from the configured URL."""
    url = redis_url or settings.redis_url
    return redis.Redis.from_url(url, decode_responses=True)


class RedisSettingsStore:
    """get/set/delete JSON values by option name."""

    def __init__(self, redis_client: Optional[redis.Redis] = None, prefix: str | None = None):
        self._redis = redis_client or _get_redis()
        self._prefix = prefix or settings.dsz_key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:option:{key}"

    def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = self._redis.get(self._key(key))
        except redis.RedisError as e:
            logger.error(f"Redis error reading option {key}: {e}")
            raise StoreError(f"Failed to read option {key}: {e}") from e

        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Option {key} holds non-JSON data, returning default")
            return default

    def set(self, key: str, value: Any) -> None:
        try:
            self._redis.set(self._key(key), json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.error(f"Redis error writing option {key}: {e}")
            raise StoreError(f"Failed to write option {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._redis.delete(self._key(key))
        except redis.RedisError as e:
            logger.error(f"Redis error deleting option {key}: {e}")
            raise StoreError(f"Failed to delete option {key}: {e}") from e
