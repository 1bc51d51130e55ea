"""
Shared fixtures: a fake TMDB client, fake remote cache tiers, and an app
wired to a temporary SQLite database.
"""

import re
from collections import Counter

import pytest
from fastapi.testclient import TestClient

from filmfusion.app import create_app
from filmfusion.config import Settings
from filmfusion.infra.tmdb import TMDBError

DETAILS_PATH = re.compile(r"^/(movie|tv)/(\d+)$")


class FakeTMDBClient:
    """Canned TMDB responses with a per-path call counter"""

    def __init__(self):
        self.calls = Counter()
        self.fail = False
        self.closed = False

    def count(self, path: str) -> int:
        return self.calls[path]

    def get_json(self, path, params=None):
        self.calls[path] += 1
        if self.fail:
            raise TMDBError(f"Failed to fetch data from TMDB: {path}")

        params = params or {}
        page = int(params.get('page', 1))

        match = DETAILS_PATH.match(path)
        if match:
            content_type, content_id = match.group(1), int(match.group(2))
            return {
                'id': content_id,
                'title' if content_type == 'movie' else 'name': f"Title {content_id}",
                'overview': f"Overview {content_id}",
                'poster_path': f"/poster{content_id}.jpg",
                'genres': [{'id': 18, 'name': 'Drama'}],
                'vote_average': 7.5,
                'vote_count': 1000,
                'popularity': 50.0,
                'original_language': 'en',
                'origin_country': ['US'],
            }

        if path.startswith('/genre/'):
            return {'genres': [{'id': 28, 'name': 'Action'}, {'id': 18, 'name': 'Drama'}]}

        base = 1000 if '/tv' in path else 0
        results = [
            {
                'id': base + page * 100 + i,
                'title': f"Item {base + page * 100 + i}",
                'popularity': float(100 - i),
                'vote_average': 8.0 - i * 0.1,
                'original_language': 'en',
                'origin_country': ['US'],
            }
            for i in range(20)
        ]
        return {'page': page, 'results': results, 'total_pages': 5, 'total_results': 100}

    def close(self):
        self.closed = True


class FakeRemoteCache:
    """Healthy remote tier backed by a dict (no expiry)"""

    def __init__(self):
        self.data = {}
        self.is_connected = True

    async def connect(self):
        self.is_connected = True
        return True

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ttl_seconds):
        self.data[key] = value

    async def delete(self, key):
        self.data.pop(key, None)

    async def exists(self, key):
        return key in self.data

    async def disconnect(self):
        self.is_connected = False


class BrokenRemoteCache:
    """Remote tier that claims to be connected but fails every operation"""

    is_connected = True

    def __init__(self):
        self.attempts = 0

    async def connect(self):
        return True

    async def _fail(self, *args):
        self.attempts += 1
        raise ConnectionError("Connection reset by peer")

    get = set = delete = exists = _fail

    async def disconnect(self):
        pass


@pytest.fixture
def settings(tmp_path):
    return Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")


@pytest.fixture
def tmdb():
    return FakeTMDBClient()


@pytest.fixture
def client(settings, tmdb):
    app = create_app(settings, tmdb_client=tmdb)
    with TestClient(app) as test_client:
        yield test_client


def auth(user_id: int) -> dict:
    return {'X-User-Id': str(user_id)}


def rate(client, user_id: int, content_id: int, rating: float, content_type: str = 'movie'):
    response = client.post(
        '/api/users/rate',
        json={'contentId': content_id, 'contentType': content_type, 'rating': rating},
        headers=auth(user_id),
    )
    assert response.status_code == 200, response.text
    return response
