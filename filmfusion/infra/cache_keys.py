"""
Cache Key Registry

One key builder per cached resource, plus the TTL for each resource kind.

KEY FORMAT:
===========
    <resource>:<dimension>[:<dimension>...]

Every free-text dimension (category, search query, content type) is
percent-encoded, so no component can contain the ':' separator and two
different parameter tuples can never produce the same key. Numeric
dimensions (ids, pages) are normalized through int().

TTL TABLE:
==========
- Slow-changing TMDB data (details, genres): 24 hours
- Lists (popular, category, similar): 1 hour
- Fast-moving lists (trending, search): 30 minutes
- User data (watchlist, ratings): 5 minutes, stats: 10 minutes
  These are also evicted explicitly after a mutation; the short TTL only
  bounds staleness for pages the invalidation helpers do not touch.
"""

from urllib.parse import quote


def _text(value) -> str:
    return quote(str(value), safe="")


def _num(value) -> int:
    return int(value)


class CacheKeys:
    """Canonical cache keys"""

    # TMDB-backed responses
    @staticmethod
    def trending(category: str, page: int) -> str:
        return f"trending:{_text(category)}:{_num(page)}"

    @staticmethod
    def popular(category: str, page: int) -> str:
        return f"popular:{_text(category)}:{_num(page)}"

    @staticmethod
    def category_content(category: str, page: int) -> str:
        return f"category:{_text(category)}:{_num(page)}"

    @staticmethod
    def content_details(content_type: str, content_id: int) -> str:
        return f"details:{_text(content_type)}:{_num(content_id)}"

    @staticmethod
    def search(query: str, page: int) -> str:
        return f"search:{_text(query)}:{_num(page)}"

    @staticmethod
    def genres(content_type: str) -> str:
        return f"genres:{_text(content_type)}"

    @staticmethod
    def similar(movie_id: int, page: int) -> str:
        return f"similar:{_num(movie_id)}:{_num(page)}"

    # User-specific data
    @staticmethod
    def user_recommendations(user_id: int, page: int) -> str:
        return f"recommendations:{_num(user_id)}:{_num(page)}"

    @staticmethod
    def user_watchlist(user_id: int, page: int) -> str:
        return f"watchlist:{_num(user_id)}:{_num(page)}"

    @staticmethod
    def user_ratings(user_id: int, page: int) -> str:
        return f"ratings:{_num(user_id)}:{_num(page)}"

    @staticmethod
    def user_stats(user_id: int) -> str:
        return f"stats:{_num(user_id)}"


class CacheTTL:
    """TTL per resource kind, in seconds"""
    TRENDING = 1800
    POPULAR = 3600
    CATEGORY_CONTENT = 3600
    CONTENT_DETAILS = 86400
    SEARCH = 1800
    GENRES = 86400
    USER_RECOMMENDATIONS = 1800
    USER_WATCHLIST = 300
    USER_RATINGS = 300
    USER_STATS = 600
    SIMILAR = 3600
