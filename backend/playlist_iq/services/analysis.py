"""Playlist scoring.

Everything in this module is pure: inputs are already-fetched audio feature
records and genre data, outputs are the pydantic models the API layer returns.
Feature sequences may contain ``None`` for tracks without a feature record;
those are dropped before any aggregation.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import numpy as np

from ..schemas.analysis import (
    AudioComparison,
    AudioDna,
    EvolutionReport,
    GenreShare,
    HealthScore,
    Personality,
    Rating,
    Subgenre,
)
from .features import MOOD_KEYS, AudioFeatures, feature_column, mean_of, mood_vector, valid_features

FeatureInput = Iterable[AudioFeatures | Mapping[str, Any] | None]

logger = logging.getLogger("analysis")

COMPATIBILITY_WEIGHTS = np.array([0.25, 0.20, 0.20, 0.15, 0.20], dtype=np.float64)  # MOOD_KEYS order
LOGISTIC_STEEPNESS = 5.0
LOGISTIC_MIDPOINT = 0.5
TREND_THRESHOLD = 0.1
MIN_EVOLUTION_TRACKS = 3

HEALTH_STATUSES = (
    (90, "Exceptional"),
    (75, "Great"),
    (60, "Good"),
    (40, "Average"),
)
MASTERPIECE_RATING = 4.8
RATING_DESCRIPTIONS = (
    (MASTERPIECE_RATING, "Masterpiece curation."),
    (4.5, "Highly curated selection."),
    (4.0, "Well balanced mix."),
    (3.0, "Good potential."),
)

EXPERIMENTALIST = Personality(
    type="The Experimentalist",
    description=(
        "You explore the outer edges of sound. Conventions don't bind you; "
        "you seek textures and atmospheres over catchy hooks."
    ),
)
MOOD_DRIVEN = Personality(
    type="Mood-Driven",
    description=(
        "Music is an emotional amplifier for you. You curate soundscapes that "
        "perfectly match or alter your internal state."
    ),
)
ECLECTIC = Personality(
    type="The Eclectic",
    description=(
        "Why choose one lane? You cruise through genres with ease, finding the "
        "common thread between folk, pop, and rock."
    ),
)
TREND_AWARE = Personality(
    type="Trend-Aware",
    description="You have your finger on the pulse. Your playlist keeps the energy high and the vibes current.",
)


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def calculate_health(features: FeatureInput, total_tracks: int, unique_genres: int) -> HealthScore:
    """Weighted blend of flow (energy consistency), genre variety and engagement."""
    valid = valid_features(features)
    if not valid:
        return HealthScore(score=0, status="Unknown")

    energy_std = float(np.std(feature_column(valid, "energy")))
    flow = 100.0 if energy_std < 0.2 else max(0.0, 100.0 - (energy_std - 0.2) * 200.0)

    # one genre per five tracks is full marks
    variety = min(100.0, unique_genres / total_tracks * 500.0) if total_tracks > 0 else 0.0

    engagement = mean_of(valid, "danceability") * 100.0

    score = int(_round_half_up(flow * 0.4 + variety * 0.3 + engagement * 0.3))
    score = max(0, min(100, score))

    status = "Needs Work"
    for threshold, label in HEALTH_STATUSES:
        if score >= threshold:
            status = label
            break
    return HealthScore(score=score, status=status)


def determine_personality(features: FeatureInput, genres: Sequence[str] = ()) -> Personality:
    """First matching rule wins; ``genres`` does not influence the classification yet."""
    valid = valid_features(features)
    if not valid:
        return TREND_AWARE

    energy = mean_of(valid, "energy")
    valence = mean_of(valid, "valence")
    dance = mean_of(valid, "danceability")
    acoustic = mean_of(valid, "acousticness")
    instrumental = mean_of(valid, "instrumentalness")

    if instrumental > 0.3 or (energy > 0.8 and dance < 0.4):
        return EXPERIMENTALIST
    if acoustic > 0.5 or valence < 0.3 or valence > 0.8:
        return MOOD_DRIVEN
    if energy > 0.4 and acoustic > 0.3:
        return ECLECTIC
    return TREND_AWARE


def rank_genres(genre_counts: Mapping[str, int]) -> List[tuple[str, int]]:
    # stable: ties keep insertion order
    return sorted(genre_counts.items(), key=lambda item: -item[1])


def classify_subgenres(genre_counts: Mapping[str, int]) -> List[Subgenre]:
    """Genres ranked 4th to 9th; the top three are treated as the broad main genres."""
    return [Subgenre(name=name, value=count) for name, count in rank_genres(genre_counts)[3:9]]


def calculate_rating(health_score: float, track_count: int) -> Rating:
    base = health_score / 20.0
    if track_count < 10:
        base *= 0.9
    if track_count > 500:
        base *= 0.95
    rating = _round_half_up(min(5.0, max(1.0, base)), 1)
    if rating >= MASTERPIECE_RATING:
        # the masterpiece band is shown as a full five stars
        rating = 5.0

    description = "Solid collection."
    for threshold, label in RATING_DESCRIPTIONS:
        if rating >= threshold:
            description = label
            break
    return Rating(rating=rating, description=description)


def _logistic(x: float) -> float:
    return 1.0 / (1.0 + math.exp(-LOGISTIC_STEEPNESS * (x - LOGISTIC_MIDPOINT)))


_LOGISTIC_LOW = _logistic(0.0)
_LOGISTIC_HIGH = _logistic(1.0)


def calculate_compatibility(features_a: FeatureInput, features_b: FeatureInput) -> int:
    """0-100 compatibility of two playlists' averaged mood vectors.

    Weighted cosine similarity squashed through a logistic curve, rescaled so
    that similarity 0 maps to 0 and similarity 1 maps to 100.
    """
    a = mood_vector(features_a)
    b = mood_vector(features_b)
    w = COMPATIBILITY_WEIGHTS

    mag_a = math.sqrt(float(np.sum(w * a * a)))
    mag_b = math.sqrt(float(np.sum(w * b * b)))
    if mag_a == 0.0 or mag_b == 0.0:
        return 0

    similarity = float(np.sum(w * a * b)) / (mag_a * mag_b)
    similarity = min(1.0, max(0.0, similarity))
    squashed = (_logistic(similarity) - _LOGISTIC_LOW) / (_LOGISTIC_HIGH - _LOGISTIC_LOW)
    return int(max(0, min(100, _round_half_up(squashed * 100.0))))


def _trend(first: Sequence[AudioFeatures], second: Sequence[AudioFeatures], key: str) -> str:
    delta = mean_of(second, key) - mean_of(first, key)
    if abs(delta) < TREND_THRESHOLD:
        return "stable"
    return "increasing" if delta > 0 else "decreasing"


def analyze_playlist_evolution(features: FeatureInput) -> EvolutionReport:
    """Compare the first and second half of the running order."""
    valid = valid_features(features)
    if len(valid) < MIN_EVOLUTION_TRACKS:
        return EvolutionReport(recommendations=["Add more tracks to see how your playlist evolves over time."])

    middle = len(valid) // 2
    first, second = valid[:middle], valid[middle:]
    report = EvolutionReport(
        energy_trend=_trend(first, second, "energy"),
        mood_trend=_trend(first, second, "valence"),
        complexity_trend=_trend(first, second, "instrumentalness"),
    )

    tips: List[str] = []
    if report.energy_trend == report.mood_trend == report.complexity_trend == "stable":
        tips.append("Your playlist keeps a consistent vibe from start to finish.")
    if report.energy_trend == "stable":
        tips.append("Energy stays level throughout; try building toward a peak near the end.")
    if report.mood_trend == "stable":
        tips.append("The mood barely shifts; a few brighter or darker tracks would add contrast.")
    if report.complexity_trend == "stable":
        tips.append("Mix in some instrumental or vocal-heavy tracks to vary the texture.")
    report.recommendations = tips
    return report


def count_genres(artists: Iterable[Mapping[str, Any] | None]) -> Dict[str, int]:
    """Occurrences of every genre across the given artists, first letter capitalised."""
    counts: Dict[str, int] = {}
    for artist in artists:
        if not artist:
            continue
        for genre in artist.get("genres") or []:
            if not genre:
                continue
            name = genre[0].upper() + genre[1:]
            counts[name] = counts.get(name, 0) + 1
    return counts


def genre_distribution(genre_counts: Mapping[str, int], top: int = 5) -> List[GenreShare]:
    total = sum(genre_counts.values())
    return [
        GenreShare(name=name, value=int(_round_half_up(count / total * 100)) if total else 0)
        for name, count in rank_genres(genre_counts)[:top]
    ]


def audio_dna(features: FeatureInput) -> AudioDna:
    valid = valid_features(features)
    if not valid:
        return AudioDna()
    values = {key: int(_round_half_up(mean_of(valid, key) * 100)) for key in MOOD_KEYS}
    return AudioDna(tempo=int(_round_half_up(mean_of(valid, "tempo"))), **values)


BATTLE_SUBJECTS = (
    ("Energy", "energy"),
    ("Dance", "danceability"),
    ("Valence", "valence"),
    ("Acoustic", "acousticness"),
    ("Instr.", "instrumentalness"),
)


def battle_audio_comparison(features_a: FeatureInput, features_b: FeatureInput) -> List[AudioComparison]:
    dna_a = audio_dna(features_a)
    dna_b = audio_dna(features_b)
    return [
        AudioComparison(subject=subject, a=getattr(dna_a, key), b=getattr(dna_b, key))
        for subject, key in BATTLE_SUBJECTS
    ]


def shared_items(left: Iterable[str], right: Iterable[str]) -> List[str]:
    """Items present on both sides, in left-hand order, without duplicates."""
    other = set(right)
    return [item for item in dict.fromkeys(left) if item in other]
