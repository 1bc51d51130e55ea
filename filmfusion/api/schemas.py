"""
Request bodies

Types are kept loose on purpose: contentId may be a slug ("20453-3-idiots")
and range checks happen in the handlers so they can answer 400 with a
specific message.
"""

from typing import Optional, Union

from pydantic import BaseModel, Field


class RateRequest(BaseModel):
    """Body of POST /users/rate"""
    contentId: Optional[Union[int, str]] = Field(None, description="Content id or slug")
    movieId: Optional[Union[int, str]] = Field(None, description="Legacy alias of contentId")
    contentType: str = Field("movie", description="movie or tv")
    category: str = Field("hollywood", description="Site category")
    rating: Optional[float] = Field(None, description="Score, 1 to 5")
    review: Optional[str] = None


class WatchlistRequest(BaseModel):
    """Body of POST /users/watchlist"""
    contentId: Optional[Union[int, str]] = None
    movieId: Optional[Union[int, str]] = None
    contentType: str = "movie"
    category: str = "hollywood"


def parse_content_id(raw) -> Optional[int]:
    """
    Numeric content id from an id or slug

    "20453-3-idiots" -> 20453. Returns None for anything unusable.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.split('-')[0]
    try:
        content_id = int(raw)
    except (TypeError, ValueError):
        return None
    return content_id if content_id > 0 else None
