from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import numpy as np

FEATURE_KEYS = (
    "energy",
    "danceability",
    "valence",
    "acousticness",
    "instrumentalness",
    "tempo",
    "liveness",
    "speechiness",
)

# compatibility / personality operate on these; tempo is not on a [0, 1] scale
MOOD_KEYS = ("energy", "danceability", "valence", "acousticness", "instrumentalness")


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if np.isnan(result):
        return default
    return result


@dataclass(frozen=True, slots=True)
class AudioFeatures:
    energy: float = 0.0
    danceability: float = 0.0
    valence: float = 0.0
    acousticness: float = 0.0
    instrumentalness: float = 0.0
    tempo: float = 0.0
    liveness: float = 0.0
    speechiness: float = 0.0

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AudioFeatures":
        return cls(**{name: _as_float(payload.get(name)) for name in FEATURE_KEYS})

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def valid_features(items: Iterable[AudioFeatures | Mapping[str, Any] | None]) -> List[AudioFeatures]:
    """Drop tracks without a feature record and coerce provider payloads."""
    out: List[AudioFeatures] = []
    for item in items:
        if item is None:
            continue
        if isinstance(item, AudioFeatures):
            out.append(item)
        elif isinstance(item, Mapping):
            out.append(AudioFeatures.from_payload(item))
    return out


def feature_column(features: Sequence[AudioFeatures], key: str) -> np.ndarray:
    return np.array([getattr(f, key) for f in features], dtype=np.float64)


def mean_of(features: Sequence[AudioFeatures], key: str, default: float = 0.0) -> float:
    if not features:
        return default
    return float(np.mean(feature_column(features, key)))


def average_features(features: Iterable[AudioFeatures | Mapping[str, Any] | None]) -> Dict[str, float]:
    valid = valid_features(features)
    return {key: mean_of(valid, key) for key in MOOD_KEYS}


def mood_vector(features: Iterable[AudioFeatures | Mapping[str, Any] | None]) -> np.ndarray:
    averages = average_features(features)
    return np.array([averages[key] for key in MOOD_KEYS], dtype=np.float64)
