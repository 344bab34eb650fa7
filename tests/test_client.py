"""Test the resilient API client: auth headers, retries and error mapping"""

from unittest.mock import Mock

import pytest
import requests

from spotimine.apis.client import _api_json, _api_request, _current_user_id
from spotimine.apis.errors import (
    ClientError,
    ForbiddenError,
    InvalidJSONError,
    ServerError,
    TokenRefreshError,
    TransportError,
    UnknownStatusError,
)

from conftest import FakeResponse


def _sequence(*responses):
    queue = list(responses)
    return lambda method, path, params, body: queue.pop(0)


@pytest.fixture
def token_post(monkeypatch):
    post = Mock(return_value=FakeResponse(200, {"access_token": "access-2", "expires_in": 3600}))
    monkeypatch.setattr("spotimine.apis.oauth.requests.post", post)
    return post


class TestApiRequest:
    def test_attaches_bearer_token(self, fake_api, account):
        fake_api.handler = _sequence(FakeResponse(200, {"id": "me"}))
        _api_request("GET", "me", account)
        assert fake_api.calls[0].headers["Authorization"] == "Bearer access-1"
        assert fake_api.calls[0].path == "me"

    def test_expired_token_is_refreshed_before_sending(self, fake_api, expired_account, token_post):
        fake_api.handler = _sequence(FakeResponse(200, {}))
        _api_request("GET", "me", expired_account)
        assert token_post.call_count == 1
        assert fake_api.calls[0].headers["Authorization"] == "Bearer access-2"

    def test_401_refreshes_and_retries_once(self, fake_api, account, token_post):
        fake_api.handler = _sequence(FakeResponse(401, {"error": "expired"}), FakeResponse(200, {"ok": True}))
        resp = _api_request("GET", "me", account)
        assert resp.json() == {"ok": True}
        assert token_post.call_count == 1
        assert [c.headers["Authorization"] for c in fake_api.calls] == ["Bearer access-1", "Bearer access-2"]

    def test_second_401_is_raised(self, fake_api, account, token_post):
        fake_api.handler = _sequence(FakeResponse(401, text="no"), FakeResponse(401, text="still no"))
        with pytest.raises(ClientError) as exc:
            _api_request("GET", "me", account)
        assert exc.value.status == 401
        assert len(fake_api.calls) == 2
        assert token_post.call_count == 1

    def test_401_with_failed_refresh(self, fake_api, account, monkeypatch):
        monkeypatch.setattr(
            "spotimine.apis.oauth.requests.post", Mock(return_value=FakeResponse(400, {"error": "invalid_grant"}))
        )
        fake_api.handler = _sequence(FakeResponse(401, text="no"))
        with pytest.raises(TokenRefreshError):
            _api_request("GET", "me", account)

    def test_403_is_terminal(self, fake_api, account):
        account.id = "user-42"
        fake_api.handler = _sequence(FakeResponse(403, text="forbidden"))
        with pytest.raises(ForbiddenError, match="user-42") as exc:
            _api_request("GET", "me", account)
        assert "re-adding" in str(exc.value)
        assert len(fake_api.calls) == 1

    def test_429_waits_retry_after_then_retries(self, fake_api, account):
        fake_api.handler = _sequence(
            FakeResponse(429, text="slow down", headers={"Retry-After": "2"}),
            FakeResponse(200, {"items": [1, 2]}),
        )
        sleep = Mock()
        assert _api_json("GET", "me/tracks", account, sleep=sleep) == {"items": [1, 2]}
        sleep.assert_called_once_with(2)
        assert len(fake_api.calls) == 2
        assert fake_api.calls[0] == fake_api.calls[1]

    def test_423_defaults_to_five_seconds(self, fake_api, account):
        fake_api.handler = _sequence(FakeResponse(423, text="locked"), FakeResponse(200, {}))
        sleep = Mock()
        _api_request("PUT", "me/tracks", account, json_body={"ids": ["a"]}, sleep=sleep)
        sleep.assert_called_once_with(5)

    def test_rate_limit_keeps_retrying(self, fake_api, account):
        fake_api.handler = _sequence(
            *[FakeResponse(429, headers={"Retry-After": "1"}) for _ in range(4)], FakeResponse(200, {})
        )
        sleep = Mock()
        _api_request("GET", "me", account, sleep=sleep)
        assert sleep.call_count == 4

    @pytest.mark.parametrize(
        "status, error",
        [(400, ClientError), (404, ClientError), (500, ServerError), (503, ServerError), (302, UnknownStatusError)],
    )
    def test_terminal_statuses(self, fake_api, account, status, error):
        fake_api.handler = _sequence(FakeResponse(status, text="body text"))
        with pytest.raises(error) as exc:
            _api_request("GET", "me", account)
        assert exc.value.status == status
        assert exc.value.body == "body text"
        assert len(fake_api.calls) == 1

    def test_transport_error(self, fake_api, account):
        def boom(*args):
            raise requests.ConnectionError("offline")

        fake_api.handler = boom
        with pytest.raises(TransportError):
            _api_request("GET", "me", account)

    def test_absolute_url_is_used_as_is(self, fake_api, account):
        fake_api.handler = _sequence(FakeResponse(200, {}))
        _api_request("GET", "https://example.test/next-page", account)
        assert fake_api.calls[0].path == "https://example.test/next-page"


class TestApiJson:
    def test_invalid_json(self, fake_api, account):
        fake_api.handler = _sequence(FakeResponse(200, text="<html>"))
        with pytest.raises(InvalidJSONError):
            _api_json("GET", "me", account)

    def test_empty_body(self, fake_api, account):
        fake_api.handler = _sequence(FakeResponse(200, text=""))
        assert _api_json("DELETE", "me/tracks", account) is None

    def test_current_user_id_is_cached_and_persisted(self, fake_api, account):
        account.persist = Mock()
        fake_api.handler = _sequence(FakeResponse(200, {"id": "user-1", "display_name": "User"}))
        assert _current_user_id(account) == "user-1"
        assert _current_user_id(account) == "user-1"
        assert len(fake_api.calls) == 1
        account.persist.assert_called_once_with()
