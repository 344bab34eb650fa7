"""Test configuration and fixtures"""

import json
import logging

import pytest
from typing import Any, Callable, List, NamedTuple, Optional

from spotimine.apis.accounts import Account
from spotimine.apis.constants import API_BASE

FAR_FUTURE = 4102444800  # 2100-01-01


class FakeResponse:
    """Just enough of requests.Response for the client code."""

    def __init__(self, status_code: int = 200, json_data: Any = None, headers: Optional[dict] = None, text: Optional[str] = None):
        self.status_code = status_code
        self.headers = headers or {}
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ""
        self.text = text
        self.content = text.encode("utf-8")

    def json(self):
        return json.loads(self.text)


class Call(NamedTuple):
    method: str
    path: str
    headers: dict
    params: dict
    json: Any


class FakeApi:
    """
    Stand-in for requests.request. Tests set `handler(method, path, params, body)`
    to return a FakeResponse; every call is recorded in `calls`.
    """

    def __init__(self):
        self.calls: List[Call] = []
        self.handler: Optional[Callable[..., FakeResponse]] = None

    def __call__(self, method, url, headers=None, params=None, json=None, data=None, timeout=None):
        path = url[len(API_BASE) + 1 :] if url.startswith(API_BASE) else url
        self.calls.append(Call(method, path, dict(headers or {}), dict(params or {}), json))
        return self.handler(method, path, dict(params or {}), json)

    def calls_to(self, method: str, path: str) -> List[Call]:
        return [c for c in self.calls if c.method == method and c.path == path]


@pytest.fixture(autouse=True)
def _reset_logging():
    """setup_logging() detaches the package logger from the root; undo that between tests."""
    yield
    pkg = logging.getLogger("spotimine")
    for handler in list(pkg.handlers):
        pkg.removeHandler(handler)
    pkg.propagate = True
    pkg.setLevel(logging.NOTSET)


@pytest.fixture
def fake_api(monkeypatch):
    api = FakeApi()
    monkeypatch.setattr("spotimine.apis.client.requests.request", api)
    return api


@pytest.fixture
def account():
    """A valid (not expired) account"""
    return Account(access_token="access-1", expires_at=FAR_FUTURE, refresh_token="refresh-1", scope="user-library-read")


@pytest.fixture
def expired_account():
    return Account(access_token="stale", expires_at=1000, refresh_token="refresh-1", scope="user-library-read")


def _artist_json(n: int = 1) -> dict:
    return {"name": f"Artist {n}", "uri": f"spotify:artist:a{n}"}


def _track_json(n: int = 1) -> dict:
    return {
        "name": f"Song {n}",
        "uri": f"spotify:track:t{n}",
        "duration_ms": 180000 + n,
        "explicit": False,
        "artists": [_artist_json(1)],
        "album": {"name": "Test Album", "uri": "spotify:album:al1", "artists": [_artist_json(1)]},
    }


def _entry_json(n: int = 1, added_at: str = "2023-01-01T00:00:00Z") -> dict:
    return {"added_at": added_at, "track": _track_json(n)}


def _playlist_json(track_numbers=(), total: Optional[int] = None, **overrides) -> dict:
    items = [_entry_json(n) for n in track_numbers]
    data = {
        "name": "Test Playlist",
        "description": "A playlist",
        "public": False,
        "collaborative": False,
        "followers": {"total": 3},
        "uri": "spotify:playlist:p1",
        "owner": {"id": "owner-1"},
        "tracks": {"items": items, "total": len(items) if total is None else total},
    }
    data.update(overrides)
    return data


@pytest.fixture
def track_json():
    return _track_json


@pytest.fixture
def entry_json():
    return _entry_json


@pytest.fixture
def playlist_json():
    return _playlist_json
