"""
Response caching for route handlers

    @router.get("/trending")
    @cached(lambda category, page, **_: CacheKeys.trending(category, page), CacheTTL.TRENDING)
    async def trending(request: Request, page: int = 1, category: str = "all"):
        ...

FLOW:
=====
1. Build the key from the handler's resolved arguments (so user-scoped keys
   see the user id produced by the auth dependency)
2. HIT  → 200 with the cached JSON, handler skipped
3. MISS → run the handler, JSON-encode its return value, respond, and write
   the body to the cache in a background task after the response is sent
4. Any cache or key error → logged, handled as a miss

Only plain return values are captured. A handler that raises (4xx/5xx) or
returns its own Response is passed through untouched, so only 200 bodies
are ever cached.

The decorated handler must declare a `request: Request` parameter.

Only what the key builder uses is part of the key. The paginated user
routes key on (user id, page) and ignore `limit`, so a page cached with
limit=5 is served to a later limit=20 request until it expires or is
invalidated.
"""

import functools
from typing import Any, Callable

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from loguru import logger
from starlette.background import BackgroundTask

from filmfusion.infra.cache import TieredCache
from filmfusion.infra.cache_keys import CacheKeys


async def _store(cache: TieredCache, key: str, body: Any, ttl: int):
    try:
        await cache.set(key, body, ttl)
    except Exception as e:
        logger.warning(f"Cache set error for {key}: {e}")


def cached(key_builder: Callable[..., str], ttl: int):
    """
    Cache a handler's JSON result under `key_builder(**handler_kwargs)`

    `key_builder` may also be a plain string for a static key.
    """
    def decorator(endpoint):
        @functools.wraps(endpoint)
        async def wrapper(*args, **kwargs):
            request: Request = kwargs['request']
            cache = getattr(request.app.state, "cache", None)

            key = None
            if cache is not None:
                try:
                    key = key_builder(**kwargs) if callable(key_builder) else key_builder
                    hit = await cache.get(key)
                except Exception as e:
                    logger.warning(f"Cache middleware error: {e}")
                    key, hit = None, None

                if hit is not None:
                    logger.debug(f"Cache HIT: {key}")
                    return JSONResponse(hit)
                if key is not None:
                    logger.debug(f"Cache MISS: {key}")

            result = await endpoint(*args, **kwargs)
            if isinstance(result, Response):
                return result

            body = jsonable_encoder(result)
            background = None
            if key is not None and body:
                background = BackgroundTask(_store, cache, key, body, ttl)
            return JSONResponse(body, background=background)

        return wrapper
    return decorator


# ============================================================================
# INVALIDATION
# ============================================================================

async def invalidate_user_cache(cache: TieredCache, user_id: int):
    """
    Evict a user's page-1 recommendations, watchlist and ratings, and stats

    Only page 1 of the paginated resources is evicted; pages 2+ stay cached
    until their (short) TTL runs out.
    """
    if cache is None:
        return
    try:
        keys = [
            CacheKeys.user_recommendations(user_id, 1),
            CacheKeys.user_watchlist(user_id, 1),
            CacheKeys.user_ratings(user_id, 1),
            CacheKeys.user_stats(user_id),
        ]
        for key in keys:
            await cache.delete(key)
    except Exception as e:
        logger.warning(f"Cache invalidation error for user {user_id}: {e}")


async def invalidate_content_cache(cache: TieredCache, content_id: int, content_type: str = 'movie'):
    if cache is None:
        return
    try:
        await cache.delete(CacheKeys.content_details(content_type, content_id))
    except Exception as e:
        logger.warning(f"Content cache invalidation error for {content_type}/{content_id}: {e}")
