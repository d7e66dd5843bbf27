"""
Unit tests for SyncLease and MemoryGuard.

The Redis client is a MagicMock whose register_script() hands back
in-memory stand-ins for the Lua scripts.
Version: 1.0.0
"""
import pytest
import redis
from unittest.mock import MagicMock, patch

from dsz_sync.core.exceptions import StoreError
from dsz_sync.utils.memory_guard import MemoryGuard
from dsz_sync.utils.sync_lease import ACQUIRE_LEASE_SCRIPT, SyncLease


@pytest.fixture
def fake_redis():
    """MagicMock redis with a dict backend for the lease scripts."""
    values = {}
    client = MagicMock()

    def acquire(keys, args):
        holder = values.get(keys[0])
        if holder is None or holder == args[0]:
            values[keys[0]] = args[0]
            return 1
        return 0

    def release(keys, args):
        if values.get(keys[0]) == args[0]:
            del values[keys[0]]
            return 1
        return 0

    client.register_script.side_effect = lambda script: acquire if script == ACQUIRE_LEASE_SCRIPT else release
    client.get.side_effect = values.get
    client.delete.side_effect = lambda key: values.pop(key, None)
    client.values = values
    return client


@pytest.fixture
def lease(fake_redis):
    return SyncLease(redis_client=fake_redis, name="sync_run", prefix="test")


@pytest.mark.unit
class TestSyncLease:

    def test_key_and_ttl(self, lease, fake_redis):
        lease.acquire("run-1")

        assert fake_redis.values == {"test:lease:sync_run": "run-1"}
        assert lease.ttl == 1800

    def test_owner_can_extend(self, lease):
        assert lease.acquire("run-1") is True
        assert lease.acquire("run-1") is True

    def test_other_owner_blocked(self, lease):
        lease.acquire("run-1")

        assert lease.acquire("run-2") is False
        assert lease.holder() == "run-1"

    def test_release_requires_owner(self, lease):
        lease.acquire("run-1")

        assert lease.release("run-2") is False
        assert lease.release("run-1") is True
        assert lease.holder() is None

    def test_force_release(self, lease):
        lease.acquire("run-1")
        lease.force_release()

        assert lease.acquire("run-2") is True

    def test_ttl_remaining(self, lease, fake_redis):
        fake_redis.ttl.return_value = -2
        assert lease.ttl_remaining() == 0

        fake_redis.ttl.return_value = 1200
        assert lease.ttl_remaining() == 1200

    def test_redis_errors_become_store_errors(self, fake_redis):
        fake_redis.register_script.side_effect = None
        fake_redis.register_script.return_value = MagicMock(side_effect=redis.ConnectionError("down"))
        lease = SyncLease(redis_client=fake_redis, prefix="test")

        with pytest.raises(StoreError):
            lease.acquire("run-1")


@pytest.mark.unit
class TestMemoryGuard:

    def _guard(self, rss, threshold=85.0, limit=1000):
        with patch("dsz_sync.utils.memory_guard.psutil") as mock_psutil:
            mock_psutil.Process.return_value.memory_info.return_value = MagicMock(rss=rss)
            return MemoryGuard(threshold_percent=threshold, limit_bytes=limit)

    def test_below_threshold(self):
        assert self._guard(rss=500).is_near_limit() is False

    def test_at_threshold(self):
        assert self._guard(rss=850).is_near_limit() is True

    def test_falls_back_to_system_memory(self):
        with patch("dsz_sync.utils.memory_guard.psutil") as mock_psutil:
            mock_psutil.Process.return_value.memory_info.return_value = MagicMock(rss=100)
            mock_psutil.virtual_memory.return_value = MagicMock(total=1000)
            guard = MemoryGuard(threshold_percent=50)

            assert guard.usage_percent() == 10.0
            assert guard.is_near_limit() is False

    def test_stats(self):
        guard = self._guard(rss=512 * 1024 * 1024, limit=1024 * 1024 * 1024)

        stats = guard.get_stats()

        assert stats == {"rss_mb": 512.0, "limit_mb": 1024.0, "usage_percent": 50.0, "threshold_percent": 85.0}
