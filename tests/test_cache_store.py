import pytest
from loguru import logger

from filmfusion.infra.cache import LocalBackend, TieredCache
from tests.conftest import BrokenRemoteCache, FakeRemoteCache


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


# ============================================================================
# LOCAL TIER
# ============================================================================

def test_local_entry_lives_until_ttl():
    clock = Clock()
    local = LocalBackend(timer=clock)
    local.set("k", {"v": 1}, 60)

    clock.now += 59.999
    assert local.get("k") == {"v": 1}

    clock.now += 0.002
    assert local.get("k") is None


def test_local_entry_absent_exactly_at_expiry():
    clock = Clock()
    local = LocalBackend(timer=clock)
    local.set("k", "v", 10)

    clock.now += 10
    assert local.get("k") is None
    assert not local.exists("k")


def test_expired_entry_evicted_on_read():
    clock = Clock()
    local = LocalBackend(timer=clock)
    local.set("old", 1, 5)
    local.set("fresh", 2, 500)
    assert len(local) == 2

    clock.now += 6
    assert local.get("old") is None
    assert len(local) == 1
    assert local.get("fresh") == 2


def test_writes_sweep_expired_entries():
    clock = Clock()
    local = LocalBackend(timer=clock)
    for i in range(50):
        local.set(f"short:{i}", i, 1)

    clock.now += 2
    local.set("long", "x", 100)
    assert len(local) == 1


def test_local_has_no_size_bound():
    local = LocalBackend()
    for i in range(2500):
        local.set(f"k:{i}", i, 3600)
    assert len(local) == 2500
    assert local.get("k:0") == 0


def test_set_refreshes_ttl():
    clock = Clock()
    local = LocalBackend(timer=clock)
    local.set("k", "a", 10)
    clock.now += 8
    local.set("k", "b", 10)
    clock.now += 8
    assert local.get("k") == "b"


def test_local_delete():
    local = LocalBackend()
    local.set("k", 1, 60)
    local.delete("k")
    local.delete("missing")
    assert local.get("k") is None


# ============================================================================
# TIERED CACHE
# ============================================================================

@pytest.mark.asyncio
async def test_local_only_cache_round_trip():
    cache = TieredCache()
    assert await cache.set("k", {"a": 1}, 60) is True
    assert await cache.get("k") == {"a": 1}
    assert await cache.exists("k")

    await cache.delete("k")
    assert await cache.get("k") is None
    assert not await cache.exists("k")


@pytest.mark.asyncio
async def test_tiered_ttl_expiry():
    clock = Clock()
    cache = TieredCache(local=LocalBackend(timer=clock))
    await cache.set("k", [1, 2], 30)

    clock.now += 29.5
    assert await cache.get("k") == [1, 2]
    clock.now += 1
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_set_writes_both_tiers():
    remote = FakeRemoteCache()
    cache = TieredCache(remote=remote)
    await cache.set("k", "v", 60)

    assert remote.data["k"] == "v"
    assert cache.local.get("k") == "v"


@pytest.mark.asyncio
async def test_get_prefers_remote():
    remote = FakeRemoteCache()
    cache = TieredCache(remote=remote)
    cache.local.set("k", "local", 60)
    remote.data["k"] = "remote"

    assert await cache.get("k") == "remote"
    assert cache.metrics['remote_hits'] == 1


@pytest.mark.asyncio
async def test_remote_miss_falls_through_to_local():
    remote = FakeRemoteCache()
    cache = TieredCache(remote=remote)
    await cache.set("k", "v", 60)
    remote.data.clear()  # evicted remotely, stale copy stays local

    assert await cache.get("k") == "v"
    assert await cache.exists("k")
    assert cache.metrics['local_hits'] == 1


@pytest.mark.asyncio
async def test_delete_removes_from_both_tiers():
    remote = FakeRemoteCache()
    cache = TieredCache(remote=remote)
    await cache.set("k", "v", 60)
    await cache.delete("k")

    assert "k" not in remote.data
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_broken_remote_degrades_to_local():
    remote = BrokenRemoteCache()
    cache = TieredCache(remote=remote)

    assert await cache.set("k", {"ok": True}, 60) is True
    assert await cache.get("k") == {"ok": True}
    assert await cache.exists("k")
    await cache.delete("k")
    assert await cache.get("k") is None

    assert remote.attempts > 0
    assert cache.metrics['remote_errors'] == remote.attempts


@pytest.mark.asyncio
async def test_disconnected_remote_is_skipped():
    remote = FakeRemoteCache()
    remote.is_connected = False
    cache = TieredCache(remote=remote)

    await cache.set("k", "v", 60)
    assert remote.data == {}
    assert await cache.get("k") == "v"
    assert not cache.remote_available


@pytest.mark.asyncio
async def test_close_disconnects_remote():
    remote = FakeRemoteCache()
    cache = TieredCache(remote=remote)
    await cache.close()
    assert not remote.is_connected


def test_metrics_report_tier_state():
    cache = TieredCache(remote=BrokenRemoteCache())
    metrics = cache.get_metrics()
    assert metrics['remote_connected'] is True
    assert metrics['local_entries'] == 0
    assert metrics['hit_rate'] == 0.0


@pytest.mark.asyncio
async def test_remote_failures_logged_once_per_streak():
    remote = FakeRemoteCache()
    cache = TieredCache(remote=remote)
    messages = []
    sink_id = logger.add(lambda message: messages.append(message.record), level="INFO")

    async def unavailable(*args):
        raise ConnectionError("Connection reset by peer")

    healthy_get = remote.get
    try:
        remote.get = unavailable
        for _ in range(5):
            assert await cache.get("k") is None
        remote.get = healthy_get
        await cache.get("k")
        await cache.get("k")
        remote.get = unavailable
        await cache.get("k")
    finally:
        logger.remove(sink_id)

    warnings = [r for r in messages if r['level'].name == "WARNING"]
    recoveries = [r for r in messages if "recovered" in r['message']]
    assert len(warnings) == 2
    assert len(recoveries) == 1
    assert cache.metrics['remote_errors'] == 6
