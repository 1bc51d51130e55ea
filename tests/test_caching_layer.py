import pytest
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from filmfusion.api.caching import cached, invalidate_content_cache, invalidate_user_cache
from filmfusion.infra.cache import TieredCache
from filmfusion.infra.cache_keys import CacheKeys
from tests.conftest import BrokenRemoteCache, auth, rate


def build_app(cache):
    app = FastAPI()
    app.state.cache = cache
    app.state.calls = 0

    @app.get("/items/{item_id}")
    @cached(lambda item_id, **_: f"item:{item_id}", 60)
    async def get_item(request: Request, item_id: int):
        request.app.state.calls += 1
        if item_id == 0:
            raise HTTPException(status_code=404, detail="Not found")
        return {'id': item_id, 'calls': request.app.state.calls}

    @app.get("/broken-key")
    @cached(lambda **_: 1 / 0, 60)
    async def broken_key(request: Request):
        request.app.state.calls += 1
        return {'calls': request.app.state.calls}

    @app.get("/raw")
    @cached("raw", 60)
    async def raw(request: Request):
        return JSONResponse({'raw': True}, status_code=202)

    return app


# ============================================================================
# DECORATOR
# ============================================================================

def test_hit_skips_handler():
    cache = TieredCache()
    client = TestClient(build_app(cache))

    first = client.get("/items/5")
    second = client.get("/items/5")

    assert first.status_code == second.status_code == 200
    assert second.json() == first.json() == {'id': 5, 'calls': 1}
    assert cache.local.get("item:5") == {'id': 5, 'calls': 1}


def test_error_responses_are_not_cached():
    cache = TieredCache()
    app = build_app(cache)
    client = TestClient(app)

    assert client.get("/items/0").status_code == 404
    assert client.get("/items/0").status_code == 404
    assert app.state.calls == 2
    assert not cache.local.exists("item:0")


def test_key_builder_error_is_a_miss():
    app = build_app(TieredCache())
    client = TestClient(app)

    assert client.get("/broken-key").json() == {'calls': 1}
    assert client.get("/broken-key").json() == {'calls': 2}


def test_handler_response_passes_through():
    cache = TieredCache()
    client = TestClient(build_app(cache))

    response = client.get("/raw")
    assert response.status_code == 202
    assert response.json() == {'raw': True}
    assert not cache.local.exists("raw")


def test_no_cache_configured():
    app = build_app(None)
    client = TestClient(app)

    assert client.get("/items/3").json() == {'id': 3, 'calls': 1}
    assert client.get("/items/3").json() == {'id': 3, 'calls': 2}


def test_broken_remote_still_serves_and_caches_locally():
    cache = TieredCache(remote=BrokenRemoteCache())
    client = TestClient(build_app(cache))

    assert client.get("/items/8").json() == {'id': 8, 'calls': 1}
    assert client.get("/items/8").json() == {'id': 8, 'calls': 1}
    assert cache.metrics['local_hits'] == 1


# ============================================================================
# INVALIDATION
# ============================================================================

@pytest.mark.asyncio
async def test_invalidate_user_cache_evicts_page_one_only():
    cache = TieredCache()
    user_keys = [
        CacheKeys.user_recommendations(7, 1),
        CacheKeys.user_watchlist(7, 1),
        CacheKeys.user_ratings(7, 1),
        CacheKeys.user_stats(7),
    ]
    survivors = [
        CacheKeys.user_recommendations(7, 2),
        CacheKeys.user_watchlist(7, 2),
        CacheKeys.user_ratings(7, 3),
        CacheKeys.user_stats(8),
        CacheKeys.user_ratings(8, 1),
    ]
    for key in user_keys + survivors:
        await cache.set(key, {'cached': key}, 300)

    await invalidate_user_cache(cache, 7)

    for key in user_keys:
        assert not await cache.exists(key)
    for key in survivors:
        assert await cache.exists(key)


@pytest.mark.asyncio
async def test_invalidate_content_cache():
    cache = TieredCache()
    await cache.set(CacheKeys.content_details('movie', 550), {'id': 550}, 300)
    await cache.set(CacheKeys.content_details('tv', 550), {'id': 550}, 300)

    await invalidate_content_cache(cache, 550)

    assert not await cache.exists(CacheKeys.content_details('movie', 550))
    assert await cache.exists(CacheKeys.content_details('tv', 550))

    await invalidate_content_cache(cache, 550, 'tv')
    assert not await cache.exists(CacheKeys.content_details('tv', 550))


@pytest.mark.asyncio
async def test_invalidation_tolerates_missing_and_broken_cache():
    await invalidate_user_cache(None, 1)
    await invalidate_content_cache(None, 1)

    cache = TieredCache(remote=BrokenRemoteCache())
    await cache.set(CacheKeys.user_stats(1), {'total_ratings': 1}, 300)
    await invalidate_user_cache(cache, 1)
    assert cache.local.get(CacheKeys.user_stats(1)) is None


# ============================================================================
# CACHE TRANSPARENCY
# ============================================================================

CACHED_ROUTES = [
    '/api/content/trending?page=1',
    '/api/content/popular?category=all',
    '/api/content/category/hollywood?page=2',
    '/api/content/search?query=matrix',
    '/api/content/genres/movie',
    '/api/content/movie/550',
    '/api/recommendations/similar/550',
]


def test_cached_routes_match_uncached(client):
    cached_bodies = {}
    for path in CACHED_ROUTES:
        client.get(path)
        response = client.get(path)
        assert response.status_code == 200, path
        cached_bodies[path] = response.json()

    client.app.state.cache = None
    for path in CACHED_ROUTES:
        response = client.get(path)
        assert response.status_code == 200, path
        assert response.json() == cached_bodies[path], path


def test_cached_user_routes_match_uncached(client):
    rate(client, 3, 10, 4)
    rate(client, 3, 11, 5)
    paths = ['/api/users/ratings', '/api/users/stats', '/api/users/watchlist', '/api/recommendations']

    cached_bodies = {}
    for path in paths:
        client.get(path, headers=auth(3))
        cached_bodies[path] = client.get(path, headers=auth(3)).json()

    client.app.state.cache = None
    for path in paths:
        assert client.get(path, headers=auth(3)).json() == cached_bodies[path], path
