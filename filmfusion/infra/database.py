"""
Database Layer using SQLAlchemy (async)

SYSTEM DESIGN DECISION: SQLite for dev, PostgreSQL for production
==================================================================

The same models run on both:
- Development/tests: sqlite+aiosqlite (file based, zero setup)
- Production: postgresql+asyncpg via DATABASE_URL

UPSERTS:
========
Ratings and watchlist rows are unique per (user_id, content_id, content_type).
Writes go through INSERT ... ON CONFLICT against that constraint, so two
concurrent writes for the same triple can never create a duplicate row.
Both SQLite and PostgreSQL dialects support the clause.
"""

import os
from datetime import datetime

from loguru import logger
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# ============================================================================
# DATA MODELS
# ============================================================================

class Rating(Base):
    """A user's 1-5 score for a movie or TV show"""
    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    content_id = Column(Integer, nullable=False)
    content_type = Column(String(10), nullable=False, default="movie")
    category = Column(String(30), nullable=False, default="hollywood")
    rating = Column(Float, nullable=False)
    review = Column(Text)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    # INDEX STRATEGY: recommender scans all ratings of one content type
    __table_args__ = (
        UniqueConstraint('user_id', 'content_id', 'content_type', name='uq_rating_user_content'),
        Index('idx_ratings_type_user', 'content_type', 'user_id'),
        Index('idx_ratings_user_time', 'user_id', 'timestamp'),
    )


class WatchlistEntry(Base):
    """Content a user saved for later"""
    __tablename__ = "watchlist"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    content_id = Column(Integer, nullable=False)
    content_type = Column(String(10), nullable=False, default="movie")
    category = Column(String(30), nullable=False, default="hollywood")
    added_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'content_id', 'content_type', name='uq_watchlist_user_content'),
        Index('idx_watchlist_user_time', 'user_id', 'added_at'),
    )


class ContentCache(Base):
    """
    Denormalized TMDB content, written when details are fetched

    The recommender resolves recommended ids through this table only, so
    content nobody has opened yet cannot be recommended.
    """
    __tablename__ = "content_cache"

    content_id = Column(Integer, primary_key=True)
    content_type = Column(String(10), primary_key=True)
    category = Column(String(30))
    title = Column(String(500), nullable=False)
    name = Column(String(500))
    overview = Column(Text, default="")
    poster_path = Column(String(255))
    backdrop_path = Column(String(255))
    release_date = Column(String(20))
    first_air_date = Column(String(20))
    genre_ids = Column(JSON, default=list)
    vote_average = Column(Float, default=0)
    vote_count = Column(Integer, default=0)
    popularity = Column(Float, default=0)
    origin_country = Column(JSON, default=list)
    original_language = Column(String(10), default="")
    cached_at = Column(DateTime, default=datetime.utcnow)

    def to_summary(self) -> dict:
        """ContentSummary shape returned by the recommendations endpoint"""
        return {
            'id': self.content_id,
            'content_type': self.content_type,
            'category': self.category,
            'title': self.title,
            'name': self.name,
            'overview': self.overview,
            'poster_path': self.poster_path,
            'backdrop_path': self.backdrop_path,
            'release_date': self.release_date,
            'first_air_date': self.first_air_date,
            'genre_ids': self.genre_ids or [],
            'vote_average': self.vote_average,
            'vote_count': self.vote_count,
            'popularity': self.popularity,
            'origin_country': self.origin_country or [],
            'original_language': self.original_language,
        }


# ============================================================================
# DATABASE MANAGER
# ============================================================================

def _set_sqlite_pragmas(dbapi_connection, connection_record):
    # journal mode can't change inside a transaction, so set it per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


class DatabaseManager:
    """
    Database connection manager

    - Async engine + session factory
    - Connection pooling on server databases (5 + 10 overflow)
    - WAL mode on SQLite for concurrent reads
    """

    def __init__(self, database_url: str = "sqlite+aiosqlite:///data/filmfusion.db"):
        self.database_url = database_url
        url = make_url(database_url)
        self.is_sqlite = url.get_backend_name() == "sqlite"

        engine_kwargs = {'echo': False}
        if self.is_sqlite:
            # Create data directory if it doesn't exist
            if url.database and url.database != ":memory:":
                directory = os.path.dirname(url.database)
                if directory:
                    os.makedirs(directory, exist_ok=True)
        else:
            engine_kwargs.update(pool_size=5, max_overflow=10, pool_pre_ping=True)

        self.engine = create_async_engine(database_url, **engine_kwargs)
        if self.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _set_sqlite_pragmas)

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def init_db(self):
        """Create tables"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info(f"Database ready ({self.dialect_name})")

    async def close(self):
        """Close database connections"""
        await self.engine.dispose()


async def get_db_manager(database_url: str) -> DatabaseManager:
    """Create a database manager with its tables in place"""
    manager = DatabaseManager(database_url)
    await manager.init_db()
    return manager
