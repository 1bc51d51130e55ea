"""
Recommendation endpoints

GET /recommendations                   personalized (collaborative filtering)
GET /recommendations/by-genre/{id}     top rated movies in a genre
GET /recommendations/similar/{id}      TMDB "similar" list for a movie
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from loguru import logger

from filmfusion.api.caching import cached
from filmfusion.api.deps import get_content_service, get_recommender, optional_user_id, require_user_id
from filmfusion.infra.cache_keys import CacheKeys, CacheTTL
from filmfusion.infra.tmdb import ContentService
from filmfusion.models.collaborative import CollaborativeRecommender

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.get("")
@cached(
    lambda user_id, page, **_: CacheKeys.user_recommendations(user_id, page),
    CacheTTL.USER_RECOMMENDATIONS,
)
async def get_recommendations(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: int = Depends(require_user_id),
    recommender: CollaborativeRecommender = Depends(get_recommender),
):
    """
    Personalized recommendations

    Users with fewer than 3 movie ratings, or with no qualifying candidates,
    get the popular list (algorithm = popular_fallback).
    """
    try:
        return await recommender.recommend(user_id, page=page, limit=limit)
    except Exception as e:
        logger.error(f"Error generating recommendations for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate recommendations")


@router.get("/by-genre/{genre_id}")
async def get_genre_recommendations(
    genre_id: int,
    page: int = Query(1, ge=1),
    user_id: int = Depends(require_user_id),
    content: ContentService = Depends(get_content_service),
):
    try:
        data = await content.movies_by_genre(genre_id, page=page)
    except Exception as e:
        logger.error(f"Error getting genre recommendations: {e}")
        raise HTTPException(status_code=500, detail="Failed to get genre recommendations")

    return {
        'recommendations': data.get('results', []),
        'total': data.get('total_results', 0),
        'page': page,
        'algorithm': 'genre_based',
    }


@router.get("/similar/{movie_id}")
@cached(lambda movie_id, page, **_: CacheKeys.similar(movie_id, page), CacheTTL.SIMILAR)
async def get_similar(
    request: Request,
    movie_id: int,
    page: int = Query(1, ge=1),
    user_id: Optional[int] = Depends(optional_user_id),
    content: ContentService = Depends(get_content_service),
):
    try:
        data = await content.similar_movies(movie_id, page=page)
    except Exception as e:
        logger.error(f"Error getting similar movies for {movie_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get similar movies")

    return {
        'recommendations': data.get('results', []),
        'total': data.get('total_results', 0),
        'page': page,
        'algorithm': 'content_based',
    }
