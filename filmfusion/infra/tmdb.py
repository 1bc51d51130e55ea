"""
TMDB access

TMDBClient is a thin blocking wrapper over requests. ContentService is what
the routes use: it runs client calls in the threadpool so the event loop is
never blocked, fans out parallel calls with asyncio.gather, and shapes
TMDB's payloads (category tags, merged movie/TV lists, pagination).
"""

import asyncio
from typing import Any, Dict, List, Optional

import requests
from fastapi.concurrency import run_in_threadpool
from loguru import logger

CONTENT_TYPES = ("movie", "tv")
PAGE_SIZE = 20

# TMDB discover filters per site category
CATEGORY_PARAMS = {
    'k_drama': {'with_origin_country': 'KR', 'with_original_language': 'ko'},
    'anime': {'with_origin_country': 'JP', 'with_original_language': 'ja'},
    'bollywood': {'with_origin_country': 'IN', 'with_original_language': 'hi'},
    'south': {'with_original_language': 'ta|te|ml|kn'},
    'hollywood': {'with_origin_country': 'US|GB|CA|AU'},
    'web_series': {},
}

SOUTH_INDIAN_LANGUAGES = ('ta', 'te', 'ml', 'kn')


class TMDBError(Exception):
    """Any failure talking to TMDB"""


class TMDBClient:
    """Blocking TMDB API client"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.themoviedb.org/3",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = {k: v for k, v in (params or {}).items() if v is not None}
        query['api_key'] = self.api_key
        try:
            response = self.session.get(f"{self.base_url}{path}", params=query, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"TMDB API error on {path}: {e}")
            raise TMDBError(f"Failed to fetch data from TMDB: {path}") from e

    def close(self):
        self.session.close()


def determine_category(item: Dict[str, Any], content_type: str) -> str:
    """Site category from origin country and original language"""
    origin_country = item.get('origin_country') or []
    language = item.get('original_language') or ''

    if 'KR' in origin_country or language == 'ko':
        return 'k_drama'
    if 'JP' in origin_country or language == 'ja':
        return 'anime'
    if language in SOUTH_INDIAN_LANGUAGES:
        return 'south'
    if language == 'hi' or 'IN' in origin_country:
        return 'bollywood'
    if content_type == 'tv':
        return 'web_series'
    return 'hollywood'


def add_category_tags(items: List[Dict[str, Any]], content_type: str) -> List[Dict[str, Any]]:
    return [
        {**item, 'content_type': content_type, 'category': determine_category(item, content_type)}
        for item in items
    ]


def _by_popularity(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(items, key=lambda item: item.get('popularity') or 0, reverse=True)


class ContentService:
    """Async content provider over TMDB"""

    def __init__(self, client: TMDBClient):
        self.client = client

    async def fetch(self, path: str, **params) -> Dict[str, Any]:
        return await run_in_threadpool(self.client.get_json, path, params)

    async def _movies_and_tv(self, movie_path: str, tv_path: str, **params) -> Dict[str, Any]:
        movies_data, tv_data = await asyncio.gather(
            self.fetch(movie_path, **params),
            self.fetch(tv_path, **params),
        )
        items = add_category_tags(movies_data.get('results', []), 'movie') + \
            add_category_tags(tv_data.get('results', []), 'tv')
        return {
            'items': _by_popularity(items),
            'total_pages': max(movies_data.get('total_pages', 0), tv_data.get('total_pages', 0)),
            'total_results': movies_data.get('total_results', 0) + tv_data.get('total_results', 0),
        }

    async def trending(self, page: int = 1, category: Optional[str] = None) -> Dict[str, Any]:
        merged = await self._movies_and_tv('/trending/movie/week', '/trending/tv/week', page=page)
        items = merged['items']
        if category and category != 'all':
            items = [item for item in items if item['category'] == category]
        return {
            'page': page,
            'results': items[:PAGE_SIZE],
            'total_pages': merged['total_pages'],
            'total_results': merged['total_results'],
        }

    async def popular(self, page: int = 1, category: str = 'all') -> Dict[str, Any]:
        merged = await self._movies_and_tv('/movie/popular', '/tv/popular', page=page)
        items = merged['items']
        if category != 'all':
            items = [item for item in items if item['category'] == category]
        return {
            'page': page,
            'results': items[:PAGE_SIZE],
            'total_pages': merged['total_pages'],
            'total_results': merged['total_results'],
        }

    async def category(self, category: str, page: int = 1) -> Dict[str, Any]:
        """
        Highly rated content for one site category

        TMDB pages are 20 items; enough of them (at most 5) are fetched to
        slice out the requested page locally.
        """
        filters = CATEGORY_PARAMS.get(category, {})
        pages_to_fetch = min(5, page + 2)
        discover = {'sort_by': 'vote_average.desc', 'vote_count.gte': 100, **filters}

        async def discover_all(content_type: str) -> List[Dict[str, Any]]:
            responses = await asyncio.gather(*[
                self.fetch(f'/discover/{content_type}', page=tmdb_page, **discover)
                for tmdb_page in range(1, pages_to_fetch + 1)
            ])
            results = [item for response in responses for item in response.get('results', [])]
            return add_category_tags(results, content_type)

        if category == 'web_series':
            content = await discover_all('tv')
        elif category == 'k_drama':
            movies, tv_shows = await asyncio.gather(discover_all('movie'), discover_all('tv'))
            content = sorted(movies + tv_shows, key=lambda item: item.get('vote_average') or 0, reverse=True)
        else:
            content = await discover_all('movie')

        start = (page - 1) * PAGE_SIZE
        end = start + PAGE_SIZE
        return {
            'page': page,
            'results': content[start:end],
            'category': category,
            'total_results': len(content),
            'has_more': end < len(content),
        }

    async def search(self, query: str, page: int = 1) -> Dict[str, Any]:
        merged = await self._movies_and_tv('/search/movie', '/search/tv', query=query, page=page)
        return {
            'page': page,
            'results': merged['items'],
            'total_pages': merged['total_pages'],
            'total_results': merged['total_results'],
        }

    async def details(self, content_type: str, content_id: int) -> Dict[str, Any]:
        data = await self.fetch(f'/{content_type}/{content_id}', append_to_response='credits,videos,similar')
        return {**data, 'content_type': content_type, 'category': determine_category(data, content_type)}

    async def genres(self, content_type: str) -> Dict[str, Any]:
        return await self.fetch(f'/genre/{content_type}/list')

    async def discover(self, content_type: str, **params) -> Dict[str, Any]:
        data = await self.fetch(f'/discover/{content_type}', **params)
        return {**data, 'results': add_category_tags(data.get('results', []), content_type)}

    async def similar_movies(self, movie_id: int, page: int = 1) -> Dict[str, Any]:
        return await self.fetch(f'/movie/{movie_id}/similar', page=page)

    async def movies_by_genre(self, genre_id: int, page: int = 1) -> Dict[str, Any]:
        return await self.fetch(
            '/discover/movie',
            with_genres=genre_id,
            sort_by='vote_average.desc',
            page=page,
            **{'vote_count.gte': 100},
        )

    async def popular_movies(self, page: int = 1) -> Dict[str, Any]:
        """Popularity provider for the recommender's fallback"""
        return await self.fetch('/movie/popular', page=page)

    def close(self):
        self.client.close()
