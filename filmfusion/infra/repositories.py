"""
Query layer over the ratings, watchlist and content_cache tables

Each store takes the DatabaseManager and opens one session per call.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite

from filmfusion.infra.database import ContentCache, DatabaseManager, Rating, WatchlistEntry


def _insert_for(db: DatabaseManager):
    """Dialect insert() that supports ON CONFLICT"""
    if db.dialect_name == "postgresql":
        return postgresql.insert
    return sqlite.insert


class RatingsStore:

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def get_ratings(self, user_id: int, content_type: str = "movie") -> List[Tuple[int, float]]:
        """(content_id, rating) for one user"""
        async with self.db.async_session() as session:
            result = await session.execute(
                select(Rating.content_id, Rating.rating)
                .where(Rating.user_id == user_id, Rating.content_type == content_type)
            )
            return [(row.content_id, row.rating) for row in result]

    async def get_all_other_ratings(self, user_id: int, content_type: str = "movie") -> List[Tuple[int, int, float]]:
        """(user_id, content_id, rating) for every user except `user_id`"""
        async with self.db.async_session() as session:
            result = await session.execute(
                select(Rating.user_id, Rating.content_id, Rating.rating)
                .where(Rating.user_id != user_id, Rating.content_type == content_type)
            )
            return [(row.user_id, row.content_id, row.rating) for row in result]

    async def upsert_rating(
        self,
        user_id: int,
        content_id: int,
        content_type: str,
        category: str,
        rating: float,
        review: Optional[str] = None,
    ):
        insert = _insert_for(self.db)
        now = datetime.utcnow()
        stmt = insert(Rating).values(
            user_id=user_id,
            content_id=content_id,
            content_type=content_type,
            category=category,
            rating=rating,
            review=review,
            timestamp=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['user_id', 'content_id', 'content_type'],
            set_={
                'rating': stmt.excluded.rating,
                'review': stmt.excluded.review,
                'category': stmt.excluded.category,
                'timestamp': stmt.excluded.timestamp,
            },
        )
        async with self.db.async_session() as session:
            await session.execute(stmt)
            await session.commit()

    async def get_rating(self, user_id: int, content_id: int, content_type: str = "movie") -> Optional[Dict]:
        async with self.db.async_session() as session:
            result = await session.execute(
                select(Rating.rating, Rating.review, Rating.timestamp)
                .where(
                    Rating.user_id == user_id,
                    Rating.content_id == content_id,
                    Rating.content_type == content_type,
                )
            )
            row = result.first()
            if row is None:
                return None
            return {'rating': row.rating, 'review': row.review, 'timestamp': row.timestamp}

    async def list_ratings(self, user_id: int, page: int = 1, limit: int = 20) -> Tuple[List[Dict], int]:
        """A page of the user's ratings (newest first) joined with cached titles, plus the total"""
        offset = (page - 1) * limit
        async with self.db.async_session() as session:
            result = await session.execute(
                select(
                    Rating.content_id,
                    Rating.content_type,
                    Rating.rating,
                    Rating.review,
                    Rating.timestamp,
                    ContentCache.title,
                    ContentCache.poster_path,
                )
                .outerjoin(
                    ContentCache,
                    (Rating.content_id == ContentCache.content_id)
                    & (Rating.content_type == ContentCache.content_type),
                )
                .where(Rating.user_id == user_id)
                .order_by(Rating.timestamp.desc(), Rating.id.desc())
                .limit(limit)
                .offset(offset)
            )
            rows = [
                {
                    'movie_id': row.content_id,
                    'content_type': row.content_type,
                    'rating': row.rating,
                    'review': row.review,
                    'timestamp': row.timestamp,
                    'title': row.title,
                    'poster_path': row.poster_path,
                }
                for row in result
            ]

            total = await session.scalar(
                select(func.count()).select_from(Rating).where(Rating.user_id == user_id)
            )
        return rows, total or 0

    async def summary(self, user_id: int) -> Dict:
        async with self.db.async_session() as session:
            result = await session.execute(
                select(func.count(Rating.id), func.avg(Rating.rating))
                .where(Rating.user_id == user_id)
            )
            count, average = result.one()
        return {
            'total_ratings': count or 0,
            'average_rating': round(float(average), 2) if average is not None else None,
        }


class WatchlistStore:

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def add(self, user_id: int, content_id: int, content_type: str, category: str):
        """Insert, or do nothing if the entry already exists"""
        insert = _insert_for(self.db)
        stmt = insert(WatchlistEntry).values(
            user_id=user_id,
            content_id=content_id,
            content_type=content_type,
            category=category,
            added_at=datetime.utcnow(),
        ).on_conflict_do_nothing(index_elements=['user_id', 'content_id', 'content_type'])
        async with self.db.async_session() as session:
            await session.execute(stmt)
            await session.commit()

    async def remove(self, user_id: int, content_id: int, content_type: str = "movie") -> int:
        async with self.db.async_session() as session:
            result = await session.execute(
                delete(WatchlistEntry).where(
                    WatchlistEntry.user_id == user_id,
                    WatchlistEntry.content_id == content_id,
                    WatchlistEntry.content_type == content_type,
                )
            )
            await session.commit()
            return result.rowcount

    async def contains(self, user_id: int, content_id: int, content_type: str = "movie") -> bool:
        async with self.db.async_session() as session:
            found = await session.scalar(
                select(WatchlistEntry.id).where(
                    WatchlistEntry.user_id == user_id,
                    WatchlistEntry.content_id == content_id,
                    WatchlistEntry.content_type == content_type,
                )
            )
        return found is not None

    async def list_entries(self, user_id: int, page: int = 1, limit: int = 20) -> Tuple[List[Dict], int]:
        offset = (page - 1) * limit
        async with self.db.async_session() as session:
            result = await session.execute(
                select(
                    WatchlistEntry.content_id,
                    WatchlistEntry.content_type,
                    WatchlistEntry.added_at,
                    ContentCache.title,
                    ContentCache.poster_path,
                    ContentCache.overview,
                    ContentCache.vote_average,
                )
                .outerjoin(
                    ContentCache,
                    (WatchlistEntry.content_id == ContentCache.content_id)
                    & (WatchlistEntry.content_type == ContentCache.content_type),
                )
                .where(WatchlistEntry.user_id == user_id)
                .order_by(WatchlistEntry.added_at.desc(), WatchlistEntry.id.desc())
                .limit(limit)
                .offset(offset)
            )
            rows = [
                {
                    'id': row.content_id,
                    'content_type': row.content_type,
                    'title': row.title,
                    'poster_path': row.poster_path,
                    'overview': row.overview,
                    'vote_average': row.vote_average,
                    'added_at': row.added_at,
                }
                for row in result
            ]

            total = await session.scalar(
                select(func.count()).select_from(WatchlistEntry).where(WatchlistEntry.user_id == user_id)
            )
        return rows, total or 0

    async def count(self, user_id: int) -> int:
        async with self.db.async_session() as session:
            total = await session.scalar(
                select(func.count()).select_from(WatchlistEntry).where(WatchlistEntry.user_id == user_id)
            )
        return total or 0


class ContentStore:

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def lookup_by_ids(self, content_ids: Sequence[int], content_type: str = "movie") -> List[Dict]:
        """Cached summaries for the given ids; ids not in the table are absent from the result"""
        if not content_ids:
            return []
        async with self.db.async_session() as session:
            result = await session.execute(
                select(ContentCache).where(
                    ContentCache.content_id.in_(list(content_ids)),
                    ContentCache.content_type == content_type,
                )
            )
            return [row.to_summary() for row in result.scalars()]

    async def upsert(self, item: Dict, content_type: str, category: str):
        """Write (or refresh) one TMDB item in content_cache"""
        await self.upsert_many([{**item, 'category': category}], content_type)

    async def upsert_many(self, items: Sequence[Dict], content_type: str, category: Optional[str] = None):
        """
        Write (or refresh) a batch of TMDB items in one statement

        Each item's own 'category' tag wins over `category`. Repeated ids keep
        the last occurrence, since one upsert can't touch a row twice.
        """
        now = datetime.utcnow()
        rows = {}
        for item in items:
            rows[item['id']] = _content_row(item, content_type, item.get('category') or category or 'hollywood', now)
        if not rows:
            return

        insert = _insert_for(self.db)
        stmt = insert(ContentCache).values(list(rows.values()))
        stmt = stmt.on_conflict_do_update(
            index_elements=['content_id', 'content_type'],
            set_={k: stmt.excluded[k] for k in CONTENT_COLUMNS if k not in ('content_id', 'content_type')},
        )
        async with self.db.async_session() as session:
            await session.execute(stmt)
            await session.commit()


CONTENT_COLUMNS = (
    'content_id', 'content_type', 'category', 'title', 'name', 'overview',
    'poster_path', 'backdrop_path', 'release_date', 'first_air_date', 'genre_ids',
    'vote_average', 'vote_count', 'popularity', 'origin_country', 'original_language',
    'cached_at',
)


def _content_row(item: Dict, content_type: str, category: str, cached_at: datetime) -> Dict:
    return {
        'content_id': item['id'],
        'content_type': content_type,
        'category': category,
        'title': item.get('title') or item.get('name') or 'Unknown Title',
        'name': item.get('name'),
        'overview': item.get('overview') or '',
        'poster_path': item.get('poster_path'),
        'backdrop_path': item.get('backdrop_path'),
        'release_date': item.get('release_date') or None,
        'first_air_date': item.get('first_air_date') or None,
        'genre_ids': item.get('genre_ids') or [g['id'] for g in item.get('genres', [])],
        'vote_average': item.get('vote_average') or 0,
        'vote_count': item.get('vote_count') or 0,
        'popularity': item.get('popularity') or 0,
        'origin_country': item.get('origin_country') or [],
        'original_language': item.get('original_language') or '',
        'cached_at': cached_at,
    }
