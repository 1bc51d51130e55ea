"""
Caching Layer: Redis with In-Memory Fallback

CACHE ARCHITECTURE:
===================

    ┌────────────────────────────────┐
    │          TieredCache           │
    ├────────────────────────────────┤
    │  Tier 1 - REMOTE (Redis)       │  shared by all workers, optional
    │  Tier 2 - LOCAL  (TLRUCache)   │  per process, always on
    └────────────────────────────────┘

READ:   remote first; a remote miss or ANY remote error falls through to local
WRITE:  remote best-effort, local always
DELETE: both tiers, best-effort

The tiers are not kept consistent with each other. Local can hold a copy the
remote tier has already expired or never had; it will still expire by its own
TTL. Callers must treat the cache as an optimization only: every route is
correct with the whole store empty.

LOCAL TIER EVICTION:
====================
- Per-entry expiry (expires = now + ttl), enforced on read
- Expired entries are swept whenever an entry is written
- No LRU / size bound: unbounded key growth with long TTLs is an accepted
  limitation

CONCURRENCY:
============
Only the event loop touches the local tier and no operation awaits while
mutating it, so there is no lock. Two concurrent misses for the same key both
compute and both write; last write wins (no request coalescing).
"""

import math
import time
from typing import Any, Callable, Dict, NamedTuple, Optional

from cachetools import TLRUCache
from loguru import logger

from filmfusion.infra.redis_client import RedisBackend


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _expires_at(key, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class LocalBackend:
    """In-process tier with a per-entry TTL"""

    def __init__(self, timer: Callable[[], float] = time.monotonic):
        self._entries = TLRUCache(maxsize=math.inf, ttu=_expires_at, timer=timer)

    def get(self, key: str) -> Optional[Any]:
        try:
            return self._entries[key].value
        except KeyError:
            # drop the entry if it was there but expired
            self._entries.expire()
            return None

    def set(self, key: str, value: Any, ttl_seconds: float):
        self._entries[key] = _Entry(value, ttl_seconds)

    def delete(self, key: str):
        self._entries.pop(key, None)

    def exists(self, key: str) -> bool:
        return key in self._entries

    def sweep(self):
        """Remove every expired entry"""
        self._entries.expire()

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class TieredCache:
    """
    Cache store used by the API

    The remote backend is injected (None means local-only). Remote failures
    are swallowed here and logged once per failure streak.
    """

    def __init__(
        self,
        remote: Optional[RedisBackend] = None,
        local: Optional[LocalBackend] = None,
    ):
        self.remote = remote
        self.local = local if local is not None else LocalBackend()
        self._remote_error_logged = False

        self.metrics = {
            'remote_hits': 0,
            'local_hits': 0,
            'misses': 0,
            'remote_errors': 0,
        }

    @property
    def remote_available(self) -> bool:
        return self.remote is not None and self.remote.is_connected

    def _remote_failed(self, operation: str, key: str, error: Exception):
        self.metrics['remote_errors'] += 1
        if not self._remote_error_logged:
            logger.warning(f"Remote cache {operation} failed for {key}: {error}; using in-memory tier")
            self._remote_error_logged = True

    def _remote_ok(self):
        if self._remote_error_logged:
            logger.info("Remote cache recovered")
            self._remote_error_logged = False

    async def get(self, key: str) -> Optional[Any]:
        if self.remote_available:
            try:
                value = await self.remote.get(key)
            except Exception as e:
                self._remote_failed("get", key, e)
            else:
                self._remote_ok()
                if value is not None:
                    self.metrics['remote_hits'] += 1
                    return value

        value = self.local.get(key)
        if value is not None:
            self.metrics['local_hits'] += 1
            return value

        self.metrics['misses'] += 1
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 3600) -> bool:
        if self.remote_available:
            try:
                await self.remote.set(key, value, ttl_seconds)
            except Exception as e:
                self._remote_failed("set", key, e)
            else:
                self._remote_ok()

        self.local.set(key, value, ttl_seconds)
        return True

    async def delete(self, key: str):
        if self.remote_available:
            try:
                await self.remote.delete(key)
            except Exception as e:
                self._remote_failed("delete", key, e)
            else:
                self._remote_ok()

        self.local.delete(key)

    async def exists(self, key: str) -> bool:
        if self.remote_available:
            try:
                if await self.remote.exists(key):
                    return True
            except Exception as e:
                self._remote_failed("exists", key, e)
            else:
                self._remote_ok()

        return self.local.exists(key)

    async def close(self):
        if self.remote is not None:
            await self.remote.disconnect()

    def get_metrics(self) -> Dict[str, Any]:
        """Hit/miss counters plus tier state"""
        hits = self.metrics['remote_hits'] + self.metrics['local_hits']
        total = hits + self.metrics['misses']
        return {
            'remote_connected': self.remote_available,
            'local_entries': len(self.local),
            'hit_rate': hits / total if total else 0.0,
            **self.metrics,
        }
