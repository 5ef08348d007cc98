from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from ..core.config import Settings
from .errors import AuthError, CatalogError, UpstreamNetworkError, error_for_response
from .executor import RequestExecutor

logger = logging.getLogger("spotify.auth")


@dataclass(frozen=True, slots=True)
class AccessToken:
    value: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class CredentialManager:
    """Owns the service-level client-credentials token.

    The token is refreshed lazily under a lock; callers that queued behind a
    refresh see the new token without a second exchange, or the same
    ``AuthError`` when that exchange failed.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        token_url: str = "https://accounts.spotify.com/api/token",
        timeout: float = 15.0,
        executor: RequestExecutor | None = None,
        clock: Callable[[], float] = time.time,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.timeout = timeout
        self._executor = executor or RequestExecutor()
        self._clock = clock
        self._http = http_client
        self._token: AccessToken | None = None
        self._lock = asyncio.Lock()
        # bumped after every exchange; lets queued callers see a failure they waited on
        self._exchanges = 0
        self._failure: AuthError | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "CredentialManager":
        executor = RequestExecutor(
            max_attempts=settings.http_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )
        return cls(
            settings.spotify_client_id,
            settings.spotify_client_secret,
            token_url=settings.spotify_token_url,
            timeout=settings.http_timeout_seconds,
            executor=executor,
            **kwargs,
        )

    @property
    def token(self) -> Optional[AccessToken]:
        return self._token

    def invalidate(self) -> None:
        self._token = None

    async def get_token(self) -> AccessToken:
        token = self._token
        if token is not None and token.is_valid(self._clock()):
            return token

        seen = self._exchanges
        async with self._lock:
            token = self._token
            if token is not None and token.is_valid(self._clock()):
                return token
            failure = self._failure
            if failure is not None and self._exchanges != seen:
                raise AuthError(
                    failure.detail, status=failure.status, operation=failure.operation, attempts=failure.attempts
                ) from failure
            if not self.client_id or not self.client_secret:
                raise AuthError("missing spotify client credentials")
            try:
                payload = await self._executor.execute("client_credentials_grant", self._exchange)
            except CatalogError as exc:
                logger.error("client credentials exchange failed", extra={"error": str(exc)})
                self._exchanges += 1
                self._failure = AuthError(
                    exc.detail, status=exc.status, operation=exc.operation, attempts=exc.attempts
                )
                raise self._failure from exc

            self._exchanges += 1
            self._failure = None
            value = payload.get("access_token")
            if not value:
                raise AuthError("token response did not contain an access_token")
            expires_in = float(payload.get("expires_in", 3600))
            self._token = AccessToken(value=value, expires_at=self._clock() + expires_in)
            logger.info("obtained client credentials token", extra={"expires_in": expires_in})
            return self._token

    async def _exchange(self, _token: str | None) -> Dict[str, Any]:
        data = {"grant_type": "client_credentials"}
        auth = (self.client_id, self.client_secret)
        try:
            if self._http is not None:
                resp = await self._http.post(self.token_url, data=data, auth=auth)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(self.token_url, data=data, auth=auth)
        except httpx.TransportError as exc:
            raise UpstreamNetworkError(f"network error: {exc}") from exc
        if resp.status_code != 200:
            raise error_for_response(resp)
        return resp.json()
