import os

# Settings are read at import time and the API key is required.
os.environ.setdefault("TMDB_API_KEY", "test-key")

import httpx
import pytest


class DummyClient:
    def __init__(self, responses):
        # responses: dict of url to httpx.Response, or an exception to raise
        self.responses = responses
        self.calls = []

    async def get(self, url, params=None, headers=None):
        self.calls.append({"url": url, "params": params, "headers": headers})
        resp = self.responses.get(url)
        if isinstance(resp, Exception):
            raise resp
        if resp is None:
            return httpx.Response(404, json={"status_message": "not stubbed"})
        return resp


@pytest.fixture
def dummy_client():
    def make(responses):
        return DummyClient(responses)
    return make


def tmdb_movie(movie_id, genre_ids=(), **overrides):
    item = {
        "id": movie_id,
        "title": f"Movie {movie_id}",
        "overview": "An overview",
        "release_date": "1999-10-15",
        "poster_path": f"/poster{movie_id}.jpg",
        "backdrop_path": None,
        "vote_average": 8.4,
        "vote_count": 1000,
        "genre_ids": list(genre_ids),
        "popularity": 61.4,
    }
    item.update(overrides)
    return item


def tmdb_page(items, page=1, total_pages=5, total_results=100):
    return {
        "page": page,
        "results": items,
        "total_pages": total_pages,
        "total_results": total_results,
    }
