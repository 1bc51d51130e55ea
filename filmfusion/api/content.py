"""
Content endpoints (TMDB backed)

All read-only. Everything except /discover is cached with the TTLs in
infra/cache_keys.py. Fetching details also writes the item to content_cache,
which is what lets the recommender show it later.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.background import BackgroundTask

from filmfusion.api.caching import cached
from filmfusion.api.deps import get_content_service, get_content_store, optional_user_id
from filmfusion.infra.cache_keys import CacheKeys, CacheTTL
from filmfusion.infra.repositories import ContentStore
from filmfusion.infra.tmdb import CATEGORY_PARAMS, CONTENT_TYPES, ContentService

router = APIRouter(prefix="/content", tags=["content"])


def _check_content_type(content_type: str):
    if content_type not in CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid content type")


@router.get("/trending")
@cached(lambda category, page, **_: CacheKeys.trending(category or 'all', page), CacheTTL.TRENDING)
async def trending(
    request: Request,
    page: int = Query(1, ge=1),
    category: Optional[str] = None,
    user_id: Optional[int] = Depends(optional_user_id),
    content: ContentService = Depends(get_content_service),
):
    try:
        return await content.trending(page=page, category=category)
    except Exception as e:
        logger.error(f"Error fetching trending content: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch trending content")


@router.get("/popular")
@cached(lambda category, page, **_: CacheKeys.popular(category, page), CacheTTL.POPULAR)
async def popular(
    request: Request,
    page: int = Query(1, ge=1),
    category: str = 'all',
    user_id: Optional[int] = Depends(optional_user_id),
    content: ContentService = Depends(get_content_service),
):
    try:
        return await content.popular(page=page, category=category)
    except Exception as e:
        logger.error(f"Error fetching popular content: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch popular content")


@router.get("/category/{category}")
@cached(lambda category, page, **_: CacheKeys.category_content(category, page), CacheTTL.CATEGORY_CONTENT)
async def category_content(
    request: Request,
    category: str,
    page: int = Query(1, ge=1),
    user_id: Optional[int] = Depends(optional_user_id),
    content: ContentService = Depends(get_content_service),
):
    if category not in CATEGORY_PARAMS:
        raise HTTPException(status_code=400, detail="Invalid category")

    try:
        return await content.category(category, page=page)
    except Exception as e:
        logger.error(f"Error fetching {category} content: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch category content")


@router.get("/search")
@cached(lambda query, page, **_: CacheKeys.search(query or '', page), CacheTTL.SEARCH)
async def search(
    request: Request,
    query: Optional[str] = None,
    page: int = Query(1, ge=1),
    user_id: Optional[int] = Depends(optional_user_id),
    content: ContentService = Depends(get_content_service),
):
    if not query:
        raise HTTPException(status_code=400, detail="Search query is required")

    try:
        return await content.search(query, page=page)
    except Exception as e:
        logger.error(f"Error searching content: {e}")
        raise HTTPException(status_code=500, detail="Failed to search content")


@router.get("/genres/{content_type}")
@cached(lambda content_type, **_: CacheKeys.genres(content_type), CacheTTL.GENRES)
async def genres(
    request: Request,
    content_type: str,
    content: ContentService = Depends(get_content_service),
):
    _check_content_type(content_type)
    try:
        return await content.genres(content_type)
    except Exception as e:
        logger.error(f"Error fetching genres: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch genres")


@router.get("/discover/{content_type}")
async def discover(
    content_type: str,
    page: int = Query(1, ge=1),
    genre: Optional[str] = None,
    year: Optional[int] = None,
    sort_by: str = 'popularity.desc',
    vote_average_gte: Optional[float] = None,
    vote_average_lte: Optional[float] = None,
    category: Optional[str] = None,
    user_id: Optional[int] = Depends(optional_user_id),
    content: ContentService = Depends(get_content_service),
    content_store: ContentStore = Depends(get_content_store),
):
    _check_content_type(content_type)

    params = {
        'page': page,
        'sort_by': sort_by,
        'with_genres': genre,
        'vote_average.gte': vote_average_gte,
        'vote_average.lte': vote_average_lte,
    }
    if year:
        params['year' if content_type == 'movie' else 'first_air_date_year'] = year
    if category:
        params.update(CATEGORY_PARAMS.get(category, {}))

    try:
        data = await content.discover(content_type, **params)
    except Exception as e:
        logger.error(f"Error discovering content: {e}")
        raise HTTPException(status_code=500, detail="Failed to discover content")

    results = data.get('results', [])
    background = BackgroundTask(_remember_all, content_store, results, content_type) if results else None
    return JSONResponse(jsonable_encoder(data), background=background)


@router.get("/{content_type}/{content_id}")
@cached(
    lambda content_type, content_id, **_: CacheKeys.content_details(content_type, content_id),
    CacheTTL.CONTENT_DETAILS,
)
async def details(
    request: Request,
    content_type: str,
    content_id: int,
    user_id: Optional[int] = Depends(optional_user_id),
    content: ContentService = Depends(get_content_service),
    content_store: ContentStore = Depends(get_content_store),
):
    _check_content_type(content_type)

    try:
        data = await content.details(content_type, content_id)
    except Exception as e:
        logger.error(f"Error fetching {content_type} {content_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch content details")

    await _remember(content_store, data, content_type)
    return data


async def _remember(content_store: ContentStore, item: dict, content_type: str):
    """Write an item to content_cache; failures only logged"""
    try:
        await content_store.upsert(item, content_type, item.get('category', 'hollywood'))
    except Exception as e:
        logger.warning(f"Error caching content {item.get('id')}: {e}")


async def _remember_all(content_store: ContentStore, items: list, content_type: str):
    """Batch write after the response is sent; failures only logged"""
    try:
        await content_store.upsert_many(items, content_type)
    except Exception as e:
        logger.warning(f"Error caching {len(items)} discovered items: {e}")
