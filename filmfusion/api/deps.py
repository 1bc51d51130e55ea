"""
Request dependencies

Shared services live on app.state (built in the app lifespan). Auth is
handled upstream: the gateway validates the session and forwards the user
id in the X-User-Id header.
"""

from typing import Optional

from fastapi import Header, HTTPException, Request

from filmfusion.infra.cache import TieredCache
from filmfusion.infra.repositories import ContentStore, RatingsStore, WatchlistStore
from filmfusion.infra.tmdb import ContentService
from filmfusion.models.collaborative import CollaborativeRecommender


def get_cache(request: Request) -> Optional[TieredCache]:
    return getattr(request.app.state, "cache", None)


def get_content_service(request: Request) -> ContentService:
    return request.app.state.content


def get_ratings_store(request: Request) -> RatingsStore:
    return request.app.state.ratings


def get_watchlist_store(request: Request) -> WatchlistStore:
    return request.app.state.watchlist


def get_content_store(request: Request) -> ContentStore:
    return request.app.state.content_store


def get_recommender(request: Request) -> CollaborativeRecommender:
    return request.app.state.recommender


def _parse_user_id(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user")


def require_user_id(x_user_id: Optional[str] = Header(None)) -> int:
    """Authenticated user id, 401 if absent"""
    user_id = _parse_user_id(x_user_id)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


def optional_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[int]:
    return _parse_user_id(x_user_id)
