from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Sequence

import httpx

from ..core.config import Settings
from .auth import CredentialManager
from .errors import UpstreamNetworkError, error_for_response
from .executor import RequestExecutor

API_BASE = "https://api.spotify.com/v1"

AUDIO_FEATURES_MAX_IDS = 100
ARTISTS_MAX_IDS = 50
PLAYLIST_FIELDS = "id,name,description,images,owner(id,display_name),snapshot_id,tracks.total,external_urls"
PLAYLIST_TRACK_FIELDS = (
    "items(added_at,track(id,name,uri,duration_ms,popularity,preview_url,external_urls,"
    "album(id,name,images),artists(id,name))),next"
)

logger = logging.getLogger("spotify.client")


@dataclass(slots=True)
class SpotifyClient:
    """Catalog transport: one method per upstream endpoint, every call retried by the executor."""

    executor: RequestExecutor
    base_url: str = API_BASE
    timeout: float = 15.0
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient | None = field(init=False, repr=False, default=None)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
            transport=self.transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, credentials: CredentialManager | None = None) -> "SpotifyClient":
        credentials = credentials or CredentialManager.from_settings(settings)
        executor = RequestExecutor(
            credentials,
            max_attempts=settings.http_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )
        return cls(executor=executor, base_url=settings.spotify_api_base, timeout=settings.http_timeout_seconds)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        client = self._client
        if client is None:
            raise RuntimeError("spotify client is closed")

        # Strip leading slash to avoid double slashes with base_url; absolute "next" links pass through
        clean_url = url if url.startswith("http") else url.lstrip("/")

        async def call(token: str | None) -> Dict[str, Any]:
            headers = {"Authorization": f"Bearer {token}"} if token else None
            try:
                response = await client.request(method, clean_url, params=params, headers=headers)
            except httpx.TransportError as exc:
                raise UpstreamNetworkError(f"network error: {exc}") from exc
            if response.status_code >= 400:
                raise error_for_response(response)
            if response.content:
                return response.json()
            return {}

        return await self.executor.execute(operation, call)

    async def get_playlist(self, playlist_id: str) -> Dict[str, Any]:
        return await self._request(
            "get_playlist", "GET", f"/playlists/{playlist_id}", params={"fields": PLAYLIST_FIELDS}
        )

    async def iter_playlist_tracks(self, playlist_id: str, batch_size: int = 100) -> AsyncIterator[Dict[str, Any]]:
        url = f"/playlists/{playlist_id}/tracks"
        params: Dict[str, Any] | None = {"limit": batch_size, "fields": PLAYLIST_TRACK_FIELDS}
        while True:
            data = await self._request("get_playlist_tracks", "GET", url, params=params)
            for item in data.get("items", []) or []:
                if not item or not item.get("track"):
                    continue
                yield item
            next_url = data.get("next")
            if not next_url:
                break
            url = next_url
            params = None

    async def get_audio_features_chunk(self, track_ids: Sequence[str]) -> List[Dict[str, Any] | None]:
        if len(track_ids) > AUDIO_FEATURES_MAX_IDS:
            raise ValueError(f"at most {AUDIO_FEATURES_MAX_IDS} ids per audio-features request")
        data = await self._request(
            "get_audio_features", "GET", "/audio-features", params={"ids": ",".join(track_ids)}
        )
        return list(data.get("audio_features") or [])

    async def get_artists_chunk(self, artist_ids: Sequence[str]) -> List[Dict[str, Any] | None]:
        if len(artist_ids) > ARTISTS_MAX_IDS:
            raise ValueError(f"at most {ARTISTS_MAX_IDS} ids per artists request")
        data = await self._request("get_artists", "GET", "/artists", params={"ids": ",".join(artist_ids)})
        return list(data.get("artists") or [])

    async def get_recommendations(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        logger.info("recommendations request", extra={"params": params})
        data = await self._request("get_recommendations", "GET", "/recommendations", params=params)
        tracks = data.get("tracks", []) or []
        logger.info("recommendations returned %s tracks", len(tracks))
        return tracks

    async def search_tracks(self, query: str, *, limit: int = 10) -> List[Dict[str, Any]]:
        data = await self._request(
            "search_tracks",
            "GET",
            "/search",
            params={"q": query, "type": "track", "limit": max(1, min(limit, 50))},
        )
        return (data.get("tracks") or {}).get("items", []) or []
