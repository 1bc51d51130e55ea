"""
FastAPI Application for FilmFusion

ENDPOINTS (all under /api):
===========================
1. /recommendations      - personalized, by genre, similar
2. /users                - ratings, watchlist, stats
3. /content              - TMDB trending/popular/category/search/details
4. /health               - health check + cache state

STARTUP:
========
- Database tables created if missing
- Redis connected if enabled (3s timeout); otherwise in-memory cache only
- One TieredCache, one ContentService, one recommender per process,
  kept on app.state
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from filmfusion.api import content, recommendations, users
from filmfusion.config import Settings
from filmfusion.infra.cache import TieredCache
from filmfusion.infra.database import get_db_manager
from filmfusion.infra.redis_client import RedisBackend
from filmfusion.infra.repositories import ContentStore, RatingsStore, WatchlistStore
from filmfusion.infra.tmdb import ContentService, TMDBClient
from filmfusion.models.collaborative import CollaborativeRecommender

SLOW_REQUEST_SECONDS = 1.0


def create_app(
    settings: Optional[Settings] = None,
    tmdb_client=None,
    remote_cache=None,
) -> FastAPI:
    """
    Build the API

    `tmdb_client` and `remote_cache` replace the real TMDB client and Redis
    backend (tests pass fakes here).
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting FilmFusion API...")

        db = await get_db_manager(settings.database_url)

        remote = remote_cache
        if remote is None and settings.redis_enabled:
            remote = RedisBackend(settings.redis_url, settings.redis_connect_timeout)
        if remote is not None and not remote.is_connected:
            await remote.connect()
        if remote is None:
            logger.info("Using in-memory cache (Redis disabled)")

        cache = TieredCache(remote=remote)
        content_service = ContentService(
            tmdb_client or TMDBClient(
                api_key=settings.tmdb_api_key,
                base_url=settings.tmdb_base_url,
                timeout=settings.tmdb_timeout,
            )
        )
        ratings = RatingsStore(db)
        content_store = ContentStore(db)

        app.state.settings = settings
        app.state.db = db
        app.state.cache = cache
        app.state.content = content_service
        app.state.ratings = ratings
        app.state.watchlist = WatchlistStore(db)
        app.state.content_store = content_store
        app.state.recommender = CollaborativeRecommender(ratings, content_store, content_service)

        logger.info("API ready")
        yield

        await cache.close()
        content_service.close()
        await db.close()
        logger.info("API shutdown complete")

    app = FastAPI(
        title="FilmFusion API",
        description="Movie and TV discovery with collaborative filtering recommendations",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-User-Id"],
    )

    @app.middleware("http")
    async def log_slow_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        if duration > SLOW_REQUEST_SECONDS:
            logger.warning(f"Slow request: {request.method} {request.url.path} took {duration:.2f}s")
        return response

    app.include_router(recommendations.router, prefix="/api")
    app.include_router(users.router, prefix="/api")
    app.include_router(content.router, prefix="/api")

    @app.get("/api/health")
    async def health_check(request: Request):
        cache = request.app.state.cache
        return {
            'status': 'OK',
            'environment': settings.app_env,
            'cache': cache.get_metrics(),
        }

    return app
