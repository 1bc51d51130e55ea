"""
User data endpoints: ratings, watchlist, stats

Every mutation evicts the user's cached page-1 lists and stats right after
the write succeeds. Eviction failures are logged, never returned.
"""

import math

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from loguru import logger

from filmfusion.api.caching import cached, invalidate_user_cache
from filmfusion.api.deps import get_cache, get_ratings_store, get_watchlist_store, require_user_id
from filmfusion.api.schemas import RateRequest, WatchlistRequest, parse_content_id
from filmfusion.infra.cache import TieredCache
from filmfusion.infra.cache_keys import CacheKeys, CacheTTL
from filmfusion.infra.repositories import RatingsStore, WatchlistStore
from filmfusion.infra.tmdb import CONTENT_TYPES

router = APIRouter(prefix="/users", tags=["users"])


def _check_content_type(content_type: str):
    if content_type not in CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid content type")


# ============================================================================
# RATINGS
# ============================================================================

@router.post("/rate")
async def rate_content(
    body: RateRequest,
    user_id: int = Depends(require_user_id),
    ratings: RatingsStore = Depends(get_ratings_store),
    cache: TieredCache = Depends(get_cache),
):
    content_id = parse_content_id(body.contentId if body.contentId is not None else body.movieId)

    if not content_id or not body.rating:
        raise HTTPException(status_code=400, detail="Content ID and rating are required")
    if not math.isfinite(body.rating) or body.rating < 1 or body.rating > 5:
        raise HTTPException(status_code=400, detail="Rating must be between 1 and 5")
    _check_content_type(body.contentType)

    try:
        await ratings.upsert_rating(
            user_id=user_id,
            content_id=content_id,
            content_type=body.contentType,
            category=body.category,
            rating=body.rating,
            review=body.review,
        )
    except Exception as e:
        logger.error(f"Error saving rating for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to save rating")

    await invalidate_user_cache(cache, user_id)
    return {'message': 'Rating saved successfully'}


@router.get("/ratings")
@cached(lambda user_id, page, **_: CacheKeys.user_ratings(user_id, page), CacheTTL.USER_RATINGS)
async def list_ratings(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: int = Depends(require_user_id),
    ratings: RatingsStore = Depends(get_ratings_store),
):
    try:
        rows, total = await ratings.list_ratings(user_id, page=page, limit=limit)
    except Exception as e:
        logger.error(f"Error fetching ratings for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch ratings")

    return {
        'ratings': rows,
        'total': total,
        'page': page,
        'totalPages': math.ceil(total / limit),
    }


@router.get("/rating/{content_id}")
async def get_rating(
    content_id: str,
    contentType: str = Query("movie"),
    user_id: int = Depends(require_user_id),
    ratings: RatingsStore = Depends(get_ratings_store),
):
    parsed_id = parse_content_id(content_id)
    if parsed_id is None:
        raise HTTPException(status_code=400, detail="Content ID is required")

    try:
        rating = await ratings.get_rating(user_id, parsed_id, contentType)
    except Exception as e:
        logger.error(f"Error fetching rating: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch rating")

    return rating if rating is not None else {'rating': None}


# ============================================================================
# WATCHLIST
# ============================================================================

@router.post("/watchlist")
async def add_to_watchlist(
    body: WatchlistRequest,
    user_id: int = Depends(require_user_id),
    watchlist: WatchlistStore = Depends(get_watchlist_store),
    cache: TieredCache = Depends(get_cache),
):
    content_id = parse_content_id(body.contentId if body.contentId is not None else body.movieId)
    if not content_id:
        raise HTTPException(status_code=400, detail="Content ID is required")
    _check_content_type(body.contentType)

    try:
        await watchlist.add(user_id, content_id, body.contentType, body.category)
    except Exception as e:
        logger.error(f"Error adding to watchlist for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to add to watchlist")

    await invalidate_user_cache(cache, user_id)
    return {'message': 'Content added to watchlist'}


@router.delete("/watchlist/{content_id}")
@router.delete("/watchlist/{content_id}/{content_type}")
async def remove_from_watchlist(
    content_id: str,
    content_type: str = "movie",
    user_id: int = Depends(require_user_id),
    watchlist: WatchlistStore = Depends(get_watchlist_store),
    cache: TieredCache = Depends(get_cache),
):
    parsed_id = parse_content_id(content_id)
    if parsed_id is None:
        raise HTTPException(status_code=400, detail="Content ID is required")
    _check_content_type(content_type)

    try:
        await watchlist.remove(user_id, parsed_id, content_type)
    except Exception as e:
        logger.error(f"Error removing from watchlist for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to remove from watchlist")

    await invalidate_user_cache(cache, user_id)
    return {'message': 'Content removed from watchlist'}


@router.get("/watchlist")
@cached(lambda user_id, page, **_: CacheKeys.user_watchlist(user_id, page), CacheTTL.USER_WATCHLIST)
async def list_watchlist(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: int = Depends(require_user_id),
    watchlist: WatchlistStore = Depends(get_watchlist_store),
):
    try:
        movies, total = await watchlist.list_entries(user_id, page=page, limit=limit)
    except Exception as e:
        logger.error(f"Error fetching watchlist for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch watchlist")

    return {
        'movies': movies,
        'total': total,
        'page': page,
        'totalPages': math.ceil(total / limit),
        'hasMore': page * limit < total,
    }


@router.get("/watchlist/check/{content_id}")
async def check_watchlist(
    content_id: str,
    contentType: str = Query("movie"),
    user_id: int = Depends(require_user_id),
    watchlist: WatchlistStore = Depends(get_watchlist_store),
):
    parsed_id = parse_content_id(content_id)
    if parsed_id is None:
        raise HTTPException(status_code=400, detail="Content ID is required")

    try:
        found = await watchlist.contains(user_id, parsed_id, contentType)
    except Exception as e:
        logger.error(f"Error checking watchlist: {e}")
        raise HTTPException(status_code=500, detail="Failed to check watchlist")

    return {'inWatchlist': found}


# ============================================================================
# STATS
# ============================================================================

@router.get("/stats")
@cached(lambda user_id, **_: CacheKeys.user_stats(user_id), CacheTTL.USER_STATS)
async def get_stats(
    request: Request,
    user_id: int = Depends(require_user_id),
    ratings: RatingsStore = Depends(get_ratings_store),
    watchlist: WatchlistStore = Depends(get_watchlist_store),
):
    try:
        summary = await ratings.summary(user_id)
        watchlist_count = await watchlist.count(user_id)
    except Exception as e:
        logger.error(f"Error fetching stats for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch user stats")

    return {**summary, 'watchlist_count': watchlist_count}
