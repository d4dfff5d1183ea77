import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from babysitter.core.errors import AuthError
from babysitter.services.credentials import CredentialCache, TokenGrant

TOKEN_URL = "https://auth.example.test/token"


class Clock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


def _token_transport(calls, status=200, expires_in=3600):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if status != 200:
            return httpx.Response(status, text="invalid_client")
        return httpx.Response(200, json={"access_token": f"tok-{len(calls)}", "expires_in": expires_in})

    return httpx.MockTransport(handler)


def _cache(calls, clock, **kwargs):
    cache = CredentialCache(margin_seconds=300, timeout=5, transport=_token_transport(calls, **kwargs), clock=clock)
    cache.register("airthings", TokenGrant.client_credentials(TOKEN_URL, "cid", "secret", "read:device:current_values"))
    return cache


def test_token_is_cached_until_margin():
    calls, clock = [], Clock()
    cache = _cache(calls, clock)

    assert asyncio.run(cache.get_token("airthings")) == "tok-1"
    assert cache.token("airthings").expires_at == clock.now + timedelta(seconds=3300)

    clock.now += timedelta(seconds=3299)
    assert asyncio.run(cache.get_token("airthings")) == "tok-1"
    assert len(calls) == 1

    clock.now += timedelta(seconds=1)
    assert asyncio.run(cache.get_token("airthings")) == "tok-2"
    assert len(calls) == 2


def test_grant_form_is_posted():
    calls, clock = [], Clock()
    cache = _cache(calls, clock)

    asyncio.run(cache.get_token("airthings"))

    body = calls[0].content.decode()
    assert calls[0].url == TOKEN_URL
    assert "grant_type=client_credentials" in body
    assert "client_id=cid" in body
    assert "scope=read%3Adevice%3Acurrent_values" in body


def test_refresh_token_grant_form():
    grant = TokenGrant.refresh_token(TOKEN_URL, "cid", "secret", "rt-1")
    assert grant.form["grant_type"] == "refresh_token"
    assert grant.form["refresh_token"] == "rt-1"


def test_failed_exchange_raises_auth_error():
    calls, clock = [], Clock()
    cache = _cache(calls, clock, status=401)

    with pytest.raises(AuthError, match="401"):
        asyncio.run(cache.get_token("airthings"))
    assert cache.token("airthings") is None


def test_unregistered_api_raises_auth_error():
    cache = CredentialCache(transport=_token_transport([]))
    with pytest.raises(AuthError):
        asyncio.run(cache.get_token("nest"))


def test_concurrent_callers_share_one_exchange():
    calls, clock = [], Clock()
    cache = _cache(calls, clock)

    async def run():
        return await asyncio.gather(*(cache.get_token("airthings") for _ in range(5)))

    tokens = asyncio.run(run())

    assert tokens == ["tok-1"] * 5
    assert len(calls) == 1


def test_invalidate_forces_refresh():
    calls, clock = [], Clock()
    cache = _cache(calls, clock)

    asyncio.run(cache.get_token("airthings"))
    cache.invalidate("airthings")
    assert asyncio.run(cache.get_token("airthings")) == "tok-2"
