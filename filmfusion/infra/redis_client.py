"""
DESIGN DECISION: Redis as the Shared Tier
==========================================

Deployment: one Redis instance shared by every API worker.
The in-process tier (infra/cache.py) is per worker, so without Redis each
worker warms its own copy of the TMDB responses.

Redis is optional infrastructure:
- Disabled in development unless ENABLE_REDIS is set
- Connection attempt bounded by a short timeout (3s default)
- If it is down at startup or later, the API keeps serving from the
  in-process tier and live computation

Configuration:
- Values are JSON strings written with SETEX (TTL enforced by Redis)
- Keys come from infra/cache_keys.py
"""

import asyncio
import json
from typing import Any, Optional

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError


class RedisBackend:
    """Remote cache tier over redis-py's asyncio client"""

    def __init__(self, url: str = "redis://localhost:6379", connect_timeout: float = 3.0):
        self.url = url
        self.connect_timeout = connect_timeout
        self.client: Optional[redis.Redis] = None
        self._connected = False
        self._error_logged = False

    @property
    def is_connected(self) -> bool:
        return self._connected and self.client is not None

    async def connect(self) -> bool:
        """
        Connect and verify with PING

        Never raises: on failure the backend stays disconnected and the
        failure is logged once.
        """
        try:
            self.client = redis.from_url(
                self.url,
                socket_connect_timeout=self.connect_timeout,
                decode_responses=True,
            )
            await asyncio.wait_for(self.client.ping(), timeout=self.connect_timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            if not self._error_logged:
                logger.warning(f"Redis unavailable ({e}), using in-memory cache")
                self._error_logged = True
            self._connected = False
            if self.client is not None:
                await self._close_client()
            return False

        self._connected = True
        self._error_logged = False
        logger.info(f"Redis client connected: {self.url}")
        return True

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.client.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl_seconds: int):
        await self.client.setex(key, ttl_seconds, json.dumps(value))

    async def delete(self, key: str):
        await self.client.delete(key)

    async def exists(self, key: str) -> bool:
        return await self.client.exists(key) == 1

    async def disconnect(self):
        if self.client is None:
            return
        was_connected = self._connected
        self._connected = False
        await self._close_client()
        if was_connected:
            logger.info("Redis client disconnected")

    async def _close_client(self):
        try:
            await self.client.aclose()
        except RedisError as e:
            logger.warning(f"Error disconnecting Redis: {e}")
        finally:
            self.client = None
