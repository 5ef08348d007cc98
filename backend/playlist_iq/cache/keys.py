from __future__ import annotations

from typing import Any, Iterable, Mapping


def playlist_key(playlist_id: str) -> str:
    return f"playlist:{playlist_id}"


def tracks_key(playlist_id: str) -> str:
    return f"tracks:{playlist_id}"


def analysis_key(playlist_id: str) -> str:
    return f"analysis:{playlist_id}"


def _sorted_ids(ids: Iterable[str]) -> str:
    return ",".join(sorted(ids))


def audio_features_key(track_ids: Iterable[str]) -> str:
    return f"audio_features:{_sorted_ids(track_ids)}"


def artists_key(artist_ids: Iterable[str]) -> str:
    return f"artists:{_sorted_ids(artist_ids)}"


def recommendations_key(options: Mapping[str, Any]) -> str:
    rendered = "|".join(f"{key}:{options[key]}" for key in sorted(options))
    return f"recommendations:{rendered}"
