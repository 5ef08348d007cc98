from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from pydantic import ValidationError

from ..cache import keys
from ..schemas.analysis import BattleReport, BattleSide, PlaylistAnalysis, SharedTrack, TopTrack
from ..spotify.parsing import parse_playlist_id
from . import analysis
from .catalog import CatalogService, gather_or_cancel
from .features import AudioFeatures, valid_features
from .strategies import RecommendationStrategy, generate_recommendation_strategy

logger = logging.getLogger("playlists")

TOP_TRACKS = 5
SHARED_GENRES_LIMIT = 10
SEED_TRACKS = 2


@dataclass(slots=True)
class PlaylistData:
    playlist: Dict[str, Any]
    items: List[Dict[str, Any]]
    features: List[AudioFeatures]
    artists: List[Dict[str, Any]]

    @property
    def tracks(self) -> List[Dict[str, Any]]:
        return [item["track"] for item in self.items if item.get("track")]

    @property
    def track_ids(self) -> List[str]:
        return [track["id"] for track in self.tracks if track.get("id")]

    @property
    def genre_counts(self) -> Dict[str, int]:
        return analysis.count_genres(self.artists)

    @property
    def first_artist_names(self) -> List[str]:
        return [((track.get("artists") or [{}])[0] or {}).get("name", "") for track in self.tracks]


def resolve_playlist_id(ref: str) -> str:
    """Accept a bare playlist id, an open.spotify.com URL or a spotify: URI."""
    ref = ref.strip()
    if "/" in ref or ":" in ref:
        return parse_playlist_id(ref)
    return ref


def _artist_ids(items: List[Dict[str, Any]]) -> List[str]:
    ids: Dict[str, None] = {}
    for item in items:
        for artist in (item.get("track") or {}).get("artists") or []:
            if artist and artist.get("id"):
                ids[artist["id"]] = None
    return list(ids)


def _image(images: Any, index: int = 0) -> str | None:
    if isinstance(images, list) and len(images) > index:
        return (images[index] or {}).get("url")
    return None


async def load_playlist(catalog: CatalogService, playlist_id: str) -> PlaylistData:
    playlist_id = resolve_playlist_id(playlist_id)
    playlist, items = await gather_or_cancel(
        catalog.get_playlist(playlist_id),
        catalog.get_playlist_tracks(playlist_id),
    )
    track_ids = [item["track"]["id"] for item in items if (item.get("track") or {}).get("id")]
    features, artists = await gather_or_cancel(
        catalog.get_audio_features(track_ids),
        catalog.get_artists(_artist_ids(items)),
    )
    valid = valid_features(features)
    logger.info(
        "loaded playlist",
        extra={"playlist_id": playlist_id, "tracks": len(items), "with_features": len(valid)},
    )
    return PlaylistData(playlist=playlist, items=items, features=valid, artists=artists)


async def analyze_playlist(catalog: CatalogService, playlist_id: str) -> PlaylistAnalysis:
    playlist_id = resolve_playlist_id(playlist_id)
    key = keys.analysis_key(playlist_id)
    cached = await catalog.cache.get(key)
    if cached is not None:
        try:
            return PlaylistAnalysis.model_validate(cached)
        except ValidationError:
            logger.warning("discarding stale cached analysis", extra={"key": key})

    data = await load_playlist(catalog, playlist_id)
    genre_counts = data.genre_counts
    health = analysis.calculate_health(data.features, len(data.items), len(genre_counts))
    playlist = data.playlist

    result = PlaylistAnalysis(
        playlist_id=playlist_id,
        playlist_name=playlist.get("name", ""),
        owner=(playlist.get("owner") or {}).get("display_name"),
        cover_url=_image(playlist.get("images")),
        track_count=(playlist.get("tracks") or {}).get("total", len(data.items)),
        audio_dna=analysis.audio_dna(data.features),
        personality=analysis.determine_personality(data.features, list(genre_counts)),
        genre_distribution=analysis.genre_distribution(genre_counts),
        subgenres=analysis.classify_subgenres(genre_counts),
        health=health,
        rating=analysis.calculate_rating(health.score, len(data.items)),
        evolution=analysis.analyze_playlist_evolution(data.features),
        top_tracks=[
            TopTrack(
                name=track.get("name", ""),
                artist=name,
                album_art=_image((track.get("album") or {}).get("images"), 2),
            )
            for track, name in zip(data.tracks[:TOP_TRACKS], data.first_artist_names[:TOP_TRACKS])
        ],
    )
    await catalog.cache.set(key, result.model_dump(mode="json"), catalog.settings.cache_ttl_analysis)
    return result


def _battle_side(playlist_id: str, data: PlaylistData, score: int) -> BattleSide:
    playlist = data.playlist
    return BattleSide(
        playlist_id=playlist_id,
        name=playlist.get("name", ""),
        owner=(playlist.get("owner") or {}).get("display_name"),
        image=_image(playlist.get("images")),
        tracks=(playlist.get("tracks") or {}).get("total", len(data.items)),
        score=score,
    )


async def compare_playlists(catalog: CatalogService, playlist_a: str, playlist_b: str) -> BattleReport:
    """Head-to-head of two playlists; both sides are fetched concurrently."""
    playlist_a, playlist_b = resolve_playlist_id(playlist_a), resolve_playlist_id(playlist_b)
    data_a, data_b = await gather_or_cancel(
        load_playlist(catalog, playlist_a),
        load_playlist(catalog, playlist_b),
    )
    genres_a, genres_b = data_a.genre_counts, data_b.genre_counts
    score_a = analysis.calculate_health(data_a.features, len(data_a.items), len(genres_a)).score
    score_b = analysis.calculate_health(data_b.features, len(data_b.items), len(genres_b)).score

    if score_a == score_b:
        winner = "tie"
    else:
        winner = "playlist1" if score_a > score_b else "playlist2"

    artist_by_title: Dict[str, str] = {}
    for track, artist in zip(data_a.tracks, data_a.first_artist_names):
        artist_by_title.setdefault(track.get("name", ""), artist)
    titles_a = [track.get("name", "") for track in data_a.tracks]
    titles_b = [track.get("name", "") for track in data_b.tracks]

    return BattleReport(
        playlist1=_battle_side(playlist_a, data_a, score_a),
        playlist2=_battle_side(playlist_b, data_b, score_b),
        compatibility_score=analysis.calculate_compatibility(data_a.features, data_b.features),
        winner=winner,
        shared_artists=[
            name for name in analysis.shared_items(data_a.first_artist_names, data_b.first_artist_names) if name
        ],
        shared_genres=analysis.shared_items(genres_a, genres_b)[:SHARED_GENRES_LIMIT],
        shared_tracks=[
            SharedTrack(title=title, artist=artist_by_title.get(title, ""))
            for title in analysis.shared_items(titles_a, titles_b)
            if title
        ],
        audio_data=analysis.battle_audio_comparison(data_a.features, data_b.features),
    )


async def recommend_for_playlist(
    catalog: CatalogService,
    playlist_id: str,
    strategy: str | RecommendationStrategy | None,
    target_count: int = 20,
) -> List[Dict[str, Any]]:
    data = await load_playlist(catalog, playlist_id)
    options = generate_recommendation_strategy(
        data.features,
        data.genre_counts,
        strategy,
        target_count,
        seed_tracks=data.track_ids[:SEED_TRACKS],
    )
    return await catalog.get_recommendations(options)
