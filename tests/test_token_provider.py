"""Access token providers"""
import json
from datetime import datetime, timedelta, timezone

import pytest
import requests

from adlaunch.core.clock import utcnow
from adlaunch.core.exceptions import AuthError, TransientNetworkError
from adlaunch.core.token_provider import OAuthRefreshTokenProvider, StaticTokenProvider

from conftest import FakeClock


class FakeResponse:
    def __init__(self, status_code=200, payload=None, reason="OK"):
        self.status_code = status_code
        self._payload = payload
        self.reason = reason
        self.content = json.dumps(payload).encode() if payload is not None else b""
        self.text = self.content.decode()

    def json(self):
        return self._payload


class FakeTokenSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.posts = []

    def post(self, url, data=None, timeout=None):
        self.posts.append((url, data))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def provider(session, clock):
    return OAuthRefreshTokenProvider("client", "secret", "refresh-1", clock=clock, session=session)


def test_static_token():
    assert StaticTokenProvider("system-user-token").get_valid_token() == "system-user-token"

    with pytest.raises(AuthError):
        StaticTokenProvider("").get_valid_token()


def test_refresh_is_cached_until_close_to_expiry():
    clock = FakeClock()
    session = FakeTokenSession(
        FakeResponse(payload={"access_token": "tok-1", "expires_in": 3600}),
        FakeResponse(payload={"access_token": "tok-2", "expires_in": 3600}),
    )
    tokens = provider(session, clock)

    assert tokens.get_valid_token() == "tok-1"
    clock.advance(3000)
    assert tokens.get_valid_token() == "tok-1"
    assert len(session.posts) == 1

    # Inside the 60 second refresh window
    clock.advance(550)
    assert tokens.get_valid_token() == "tok-2"
    assert len(session.posts) == 2
    assert session.posts[0][1]["grant_type"] == "refresh_token"
    assert session.posts[0][1]["refresh_token"] == "refresh-1"


def test_custom_refresh_skew():
    clock = FakeClock()
    session = FakeTokenSession(
        FakeResponse(payload={"access_token": "tok-1", "expires_in": 600}),
        FakeResponse(payload={"access_token": "tok-2", "expires_in": 600}),
    )
    tokens = OAuthRefreshTokenProvider(
        "client", "secret", "refresh-1", refresh_skew=timedelta(minutes=5), clock=clock, session=session
    )

    tokens.get_valid_token()
    clock.advance(301)
    assert tokens.get_valid_token() == "tok-2"


def test_rejected_refresh_is_auth_error():
    session = FakeTokenSession(FakeResponse(400, {"error": "invalid_grant"}, reason="Bad Request"))

    with pytest.raises(AuthError) as exc_info:
        provider(session, FakeClock()).get_valid_token()

    assert exc_info.value.platform_code == "invalid_grant"
    assert exc_info.value.retryable is False


def test_token_endpoint_outage_is_transient():
    session = FakeTokenSession(FakeResponse(503, None, reason="Service Unavailable"))

    with pytest.raises(TransientNetworkError):
        provider(session, FakeClock()).get_valid_token()


def test_network_failure_is_transient():
    session = FakeTokenSession(requests.ConnectionError("connection reset"))

    with pytest.raises(TransientNetworkError):
        provider(session, FakeClock()).get_valid_token()


def test_missing_refresh_token():
    tokens = OAuthRefreshTokenProvider("client", "secret", "", session=FakeTokenSession())

    with pytest.raises(AuthError):
        tokens.get_valid_token()


def test_default_clock_is_naive_utc():
    now = utcnow()
    expected = datetime.now(timezone.utc).replace(tzinfo=None)

    assert now.tzinfo is None
    assert abs(expected - now) < timedelta(seconds=5)
    assert OAuthRefreshTokenProvider("client", "secret", "refresh-1")._clock is utcnow
