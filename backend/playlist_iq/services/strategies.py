from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Dict, List, Mapping, Sequence

from ..schemas.analysis import RecommendationOptions
from .analysis import FeatureInput, rank_genres
from .features import mean_of, valid_features

logger = logging.getLogger("analysis.strategies")

MAX_SEEDS = 5
MAX_LIMIT = 100

# profile used when a playlist has no usable feature records
NEUTRAL_PROFILE = {
    "energy": 0.5,
    "danceability": 0.5,
    "valence": 0.5,
    "acousticness": 0.3,
    "instrumentalness": 0.0,
}

MOOD_ENERGY_SPREAD = 0.15
RARE_MAX_POPULARITY = 40
FAMILIAR_MIN_POPULARITY = 60
SHORT_SESSION_MAX_DURATION_MS = 210_000
SHORT_SESSION_MAX_LIMIT = 10
SHORT_SESSION_ENERGY_LIFT = 0.1
ENERGY_PIVOT = 0.5
ENERGY_SHIFT = 0.25
ENERGY_FLOOR_SHIFT = 0.1
INSTRUMENTAL_HEADROOM = 0.2


class RecommendationStrategy(str, enum.Enum):
    BEST_NEXT_TRACK = "best_next_track"
    MOOD_SAFE_PICK = "mood_safe_pick"
    RARE_MATCH = "rare_match"
    RETURN_TO_FAMILIAR = "return_to_familiar"
    SHORT_SESSION = "short_session"
    ENERGY_ADJUSTMENT = "energy_adjustment"

    @classmethod
    def parse(cls, value: "str | RecommendationStrategy | None") -> "RecommendationStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            logger.warning("unknown recommendation strategy %r, using mood_safe_pick", value)
            return cls.MOOD_SAFE_PICK


def clamp_feature(value: float, spread: float = 0.1) -> float:
    """Clamp a target to [0, 1].

    ``spread`` is accepted but not applied; the result is always the plain
    unit-interval clamp. It is also rounded to three decimals, so profiles
    that differ only by float noise yield identical request parameters and
    recommendation cache keys.
    """
    return round(min(1.0, max(0.0, value)), 3)


def _profile(features: FeatureInput) -> Dict[str, float]:
    valid = valid_features(features)
    if not valid:
        return dict(NEUTRAL_PROFILE)
    return {key: mean_of(valid, key) for key in NEUTRAL_PROFILE}


def _ordered_genres(genres: Mapping[str, int] | Sequence[str]) -> List[str]:
    if isinstance(genres, Mapping):
        names = [name for name, _ in rank_genres(genres)]
    else:
        names = list(genres)
    return list(dict.fromkeys(name.lower() for name in names if name))


def _best_next_track(p: Dict[str, float], genres: List[str]) -> Dict[str, Any]:
    return {
        "target_energy": clamp_feature(p["energy"]),
        "target_danceability": clamp_feature(p["danceability"]),
        "target_valence": clamp_feature(p["valence"]),
        "seed_genres": genres[:2],
    }


def _mood_safe_pick(p: Dict[str, float], genres: List[str]) -> Dict[str, Any]:
    return {
        "target_valence": clamp_feature(p["valence"]),
        "min_energy": clamp_feature(p["energy"] - MOOD_ENERGY_SPREAD, MOOD_ENERGY_SPREAD),
        "max_energy": clamp_feature(p["energy"] + MOOD_ENERGY_SPREAD, MOOD_ENERGY_SPREAD),
        "target_acousticness": clamp_feature(p["acousticness"]),
        "seed_genres": genres[:3],
    }


def _rare_match(p: Dict[str, float], genres: List[str]) -> Dict[str, Any]:
    return {
        "target_energy": clamp_feature(p["energy"]),
        "target_valence": clamp_feature(p["valence"]),
        "min_instrumentalness": clamp_feature(p["instrumentalness"]),
        "max_popularity": RARE_MAX_POPULARITY,
        # least common genres first
        "seed_genres": list(reversed(genres))[:2],
    }


def _return_to_familiar(p: Dict[str, float], genres: List[str]) -> Dict[str, Any]:
    return {
        "target_energy": clamp_feature(p["energy"]),
        "target_danceability": clamp_feature(p["danceability"]),
        "target_valence": clamp_feature(p["valence"]),
        "min_popularity": FAMILIAR_MIN_POPULARITY,
        "seed_genres": genres[:1],
    }


def _short_session(p: Dict[str, float], genres: List[str]) -> Dict[str, Any]:
    return {
        "target_energy": clamp_feature(p["energy"] + SHORT_SESSION_ENERGY_LIFT),
        "target_danceability": clamp_feature(p["danceability"]),
        "max_duration_ms": SHORT_SESSION_MAX_DURATION_MS,
        "seed_genres": genres[:2],
    }


def _energy_adjustment(p: Dict[str, float], genres: List[str]) -> Dict[str, Any]:
    energy = p["energy"]
    if energy < ENERGY_PIVOT:
        options: Dict[str, Any] = {
            "target_energy": clamp_feature(energy + ENERGY_SHIFT),
            "min_energy": clamp_feature(energy + ENERGY_FLOOR_SHIFT),
        }
    else:
        options = {
            "target_energy": clamp_feature(energy - ENERGY_SHIFT),
            "max_energy": clamp_feature(energy - ENERGY_FLOOR_SHIFT),
        }
    options.update(
        target_valence=clamp_feature(p["valence"]),
        max_instrumentalness=clamp_feature(p["instrumentalness"] + INSTRUMENTAL_HEADROOM),
        seed_genres=genres[:2],
    )
    return options


STRATEGIES: Dict[RecommendationStrategy, Callable[[Dict[str, float], List[str]], Dict[str, Any]]] = {
    RecommendationStrategy.BEST_NEXT_TRACK: _best_next_track,
    RecommendationStrategy.MOOD_SAFE_PICK: _mood_safe_pick,
    RecommendationStrategy.RARE_MATCH: _rare_match,
    RecommendationStrategy.RETURN_TO_FAMILIAR: _return_to_familiar,
    RecommendationStrategy.SHORT_SESSION: _short_session,
    RecommendationStrategy.ENERGY_ADJUSTMENT: _energy_adjustment,
}


def _limit_seeds(tracks: List[str], artists: List[str], genres: List[str]) -> tuple[List[str], List[str], List[str]]:
    # provider accepts five seeds in total; tracks first, then artists, then genres
    remaining = MAX_SEEDS
    tracks = tracks[:remaining]
    remaining -= len(tracks)
    artists = artists[:remaining]
    remaining -= len(artists)
    return tracks, artists, genres[:remaining]


def generate_recommendation_strategy(
    features: FeatureInput,
    genres: Mapping[str, int] | Sequence[str],
    strategy: "str | RecommendationStrategy | None",
    target_count: int = 20,
    *,
    seed_tracks: Sequence[str] | None = None,
    seed_artists: Sequence[str] | None = None,
) -> RecommendationOptions:
    """Upstream recommendation constraints derived from the playlist's current averages."""
    kind = RecommendationStrategy.parse(strategy)
    options = STRATEGIES[kind](_profile(features), _ordered_genres(genres))

    limit = max(1, min(int(target_count), MAX_LIMIT))
    if kind is RecommendationStrategy.SHORT_SESSION:
        limit = min(limit, SHORT_SESSION_MAX_LIMIT)

    tracks, artists, seed_genres = _limit_seeds(
        list(dict.fromkeys(t for t in (seed_tracks or []) if t)),
        list(dict.fromkeys(a for a in (seed_artists or []) if a)),
        options.pop("seed_genres", []),
    )
    return RecommendationOptions(
        limit=limit,
        seed_tracks=tracks or None,
        seed_artists=artists or None,
        seed_genres=seed_genres or None,
        **options,
    )
