from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import httpx

from ..core.config import settings
from ..core.errors import AuthError
from ..core.timeutil import now_utc
from ..domain.models import CredentialToken

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


@dataclass(frozen=True)
class TokenGrant:
    """Token endpoint plus the form body to POST to it."""

    token_url: str
    form: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def client_credentials(
        cls, token_url: str, client_id: str, client_secret: str, scope: str | None = None
    ) -> "TokenGrant":
        form = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
        }
        if scope:
            form["scope"] = scope
        return cls(token_url=token_url, form=form)

    @classmethod
    def refresh_token(
        cls, token_url: str, client_id: str, client_secret: str, refresh_token: str
    ) -> "TokenGrant":
        return cls(
            token_url=token_url,
            form={
                "grant_type": "refresh_token",
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
            },
        )


class CredentialCache:
    """Bearer tokens per external API, refreshed shortly before they expire.

    One instance per process; tokens live in memory only. Refreshes for the
    same API are serialized so concurrent callers share one exchange.
    """

    def __init__(
        self,
        margin_seconds: int | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._margin = settings.token_margin_seconds if margin_seconds is None else margin_seconds
        self._timeout = settings.http_timeout_seconds if timeout is None else timeout
        self._transport = transport
        self._clock = clock
        self._grants: Dict[str, TokenGrant] = {}
        self._tokens: Dict[str, CredentialToken] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def register(self, api_id: str, grant: TokenGrant) -> None:
        self._grants[api_id] = grant
        self._tokens.pop(api_id, None)

    def token(self, api_id: str) -> Optional[CredentialToken]:
        return self._tokens.get(api_id)

    def invalidate(self, api_id: str) -> None:
        self._tokens.pop(api_id, None)

    def _fresh(self, api_id: str) -> Optional[str]:
        tok = self._tokens.get(api_id)
        if tok is not None and self._clock() < tok.expires_at:
            return tok.access_token
        return None

    async def get_token(self, api_id: str) -> str:
        cached = self._fresh(api_id)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(api_id, asyncio.Lock())
        async with lock:
            # Another caller may have refreshed while we waited
            cached = self._fresh(api_id)
            if cached is not None:
                return cached
            tok = await self._exchange(api_id)
            self._tokens[api_id] = tok
            return tok.access_token

    async def _exchange(self, api_id: str) -> CredentialToken:
        grant = self._grants.get(api_id)
        if grant is None:
            raise AuthError(f"No credentials registered for {api_id}")

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(grant.token_url, data=grant.form)
        except httpx.HTTPError as e:
            raise AuthError(f"Token request for {api_id} failed: {e}") from e

        if not resp.is_success:
            raise AuthError(f"Token request failed: {resp.status_code} - {resp.text}")

        try:
            data = resp.json()
            access_token = data["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError(f"Malformed token response for {api_id}") from e

        expires_in = int(data.get("expires_in") or DEFAULT_EXPIRES_IN)
        expires_at = self._clock() + timedelta(seconds=expires_in - self._margin)
        logger.info("Refreshed %s token (valid until %s)", api_id, expires_at.isoformat())
        return CredentialToken(access_token=access_token, expires_at=expires_at)
