from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Sequence, TypeVar

from ..cache import keys
from ..cache.redis import CacheService
from ..core.config import Settings, get_settings
from ..schemas.analysis import RecommendationOptions
from ..spotify.client import ARTISTS_MAX_IDS, AUDIO_FEATURES_MAX_IDS, SpotifyClient

T = TypeVar("T")

logger = logging.getLogger("catalog")


def chunked(ids: Sequence[str], size: int) -> List[List[str]]:
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(ids[start: start + size]) for start in range(0, len(ids), size)]


async def gather_or_cancel(*aws: Awaitable[Any]) -> List[Any]:
    """``asyncio.gather`` that cancels and drains the remaining awaitables once one fails."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def fetch_in_chunks(
    ids: Sequence[str],
    size: int,
    fetch_chunk: Callable[[List[str]], Awaitable[Sequence[T]]],
) -> List[T]:
    """Fetch every chunk concurrently and concatenate the results in chunk order.

    The first chunk failure cancels the rest and propagates; no partial result
    is returned.
    """
    chunks = chunked(ids, size)
    if not chunks:
        return []
    results = await gather_or_cancel(*(fetch_chunk(chunk) for chunk in chunks))
    merged: List[T] = []
    for part in results:
        merged.extend(part)
    return merged


class CatalogService:
    """Cache-first access to playlists, tracks, audio features, artists and recommendations."""

    def __init__(self, client: SpotifyClient, cache: CacheService, settings: Settings | None = None) -> None:
        self.client = client
        self.cache = cache
        self.settings = settings or get_settings()

    @classmethod
    def from_settings(cls, settings: Settings) -> "CatalogService":
        return cls(SpotifyClient.from_settings(settings), CacheService.from_settings(settings), settings)

    async def close(self) -> None:
        await self.client.close()
        await self.cache.close()

    async def _remember(self, key: str, value: Any, ttl: int) -> None:
        # best effort; CacheService logs its own failures
        stored = await self.cache.set(key, value, ttl)
        if not stored and self.cache.available:
            logger.debug("cache write skipped", extra={"key": key})

    async def get_playlist(self, playlist_id: str) -> Dict[str, Any]:
        key = keys.playlist_key(playlist_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached
        playlist = await self.client.get_playlist(playlist_id)
        await self._remember(key, playlist, self.settings.cache_ttl_playlist)
        return playlist

    async def get_playlist_tracks(self, playlist_id: str) -> List[Dict[str, Any]]:
        key = keys.tracks_key(playlist_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached
        items = [
            item
            async for item in self.client.iter_playlist_tracks(
                playlist_id, batch_size=self.settings.playlist_page_size
            )
        ]
        await self._remember(key, items, self.settings.cache_ttl_tracks)
        return items

    async def get_audio_features(self, track_ids: Sequence[str]) -> List[Dict[str, Any] | None]:
        """One entry per requested id, in request order; ``None`` where the catalog has no features."""
        ids = [track_id for track_id in track_ids if track_id]
        if not ids:
            return []
        key = keys.audio_features_key(ids)
        cached = await self.cache.get(key)
        if isinstance(cached, dict) and all(track_id in cached for track_id in ids):
            return [cached[track_id] for track_id in ids]

        features = await fetch_in_chunks(ids, AUDIO_FEATURES_MAX_IDS, self.client.get_audio_features_chunk)
        logger.info("fetched audio features", extra={"requested": len(ids), "returned": len(features)})
        await self._remember(key, dict(zip(ids, features)), self.settings.cache_ttl_audio_features)
        return features

    async def get_artists(self, artist_ids: Sequence[str]) -> List[Dict[str, Any]]:
        ids = list(dict.fromkeys(a for a in artist_ids if a))
        if not ids:
            return []
        key = keys.artists_key(ids)
        cached = await self.cache.get(key)
        if isinstance(cached, dict) and all(artist_id in cached for artist_id in ids):
            return [cached[artist_id] for artist_id in ids if cached[artist_id]]

        artists = await fetch_in_chunks(ids, ARTISTS_MAX_IDS, self.client.get_artists_chunk)
        await self._remember(key, dict(zip(ids, artists)), self.settings.cache_ttl_artists)
        return [artist for artist in artists if artist]

    async def get_recommendations(
        self, options: RecommendationOptions | Mapping[str, Any]
    ) -> List[Dict[str, Any]]:
        if isinstance(options, RecommendationOptions):
            params = options.to_params()
        else:
            params = {k: v for k, v in options.items() if v is not None}
        key = keys.recommendations_key(params)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached
        tracks = await self.client.get_recommendations(params)
        await self._remember(key, tracks, self.settings.cache_ttl_recommendations)
        return tracks

    async def search_tracks(self, query: str, *, limit: int = 10) -> List[Dict[str, Any]]:
        return await self.client.search_tracks(query, limit=limit)
