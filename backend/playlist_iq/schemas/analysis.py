from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class RecommendationOptions(BaseModel):
    limit: Optional[int] = Field(None, ge=1, le=100)
    seed_genres: Optional[List[str]] = None
    seed_tracks: Optional[List[str]] = None
    seed_artists: Optional[List[str]] = None
    target_energy: Optional[float] = None
    min_energy: Optional[float] = None
    max_energy: Optional[float] = None
    target_danceability: Optional[float] = None
    target_valence: Optional[float] = None
    target_acousticness: Optional[float] = None
    min_instrumentalness: Optional[float] = None
    max_instrumentalness: Optional[float] = None
    min_popularity: Optional[int] = Field(None, ge=0, le=100)
    max_popularity: Optional[int] = Field(None, ge=0, le=100)
    max_duration_ms: Optional[int] = Field(None, gt=0)

    def to_params(self) -> Dict[str, Any]:
        """Query parameters for the upstream call; unset keys are not sent."""
        params: Dict[str, Any] = {}
        for key, value in self.model_dump(exclude_none=True).items():
            if isinstance(value, list):
                if not value:
                    continue
                value = ",".join(value)
            params[key] = value
        return params


class HealthScore(BaseModel):
    score: int = Field(..., ge=0, le=100)
    status: str


class Personality(BaseModel):
    type: str
    description: str


class Subgenre(BaseModel):
    name: str
    value: int


class Rating(BaseModel):
    rating: float = Field(..., ge=1.0, le=5.0)
    description: str


Trend = Literal["increasing", "decreasing", "stable"]


class EvolutionReport(BaseModel):
    energy_trend: Trend = "stable"
    mood_trend: Trend = "stable"
    complexity_trend: Trend = "stable"
    recommendations: List[str] = []


class AudioDna(BaseModel):
    energy: int = 0
    danceability: int = 0
    valence: int = 0
    acousticness: int = 0
    instrumentalness: int = 0
    tempo: int = 0


class GenreShare(BaseModel):
    name: str
    value: int


class TopTrack(BaseModel):
    name: str
    artist: str
    album_art: Optional[str] = None


class PlaylistAnalysis(BaseModel):
    playlist_id: str
    playlist_name: str
    owner: Optional[str] = None
    cover_url: Optional[str] = None
    track_count: int = 0
    audio_dna: AudioDna
    personality: Personality
    genre_distribution: List[GenreShare] = []
    subgenres: List[Subgenre] = []
    health: HealthScore
    rating: Rating
    evolution: EvolutionReport
    top_tracks: List[TopTrack] = []


class BattleSide(BaseModel):
    playlist_id: str
    name: str
    owner: Optional[str] = None
    image: Optional[str] = None
    tracks: int = 0
    score: int = 0


class SharedTrack(BaseModel):
    title: str
    artist: str


class AudioComparison(BaseModel):
    subject: str
    a: int
    b: int
    full_mark: int = 100


class BattleReport(BaseModel):
    playlist1: BattleSide
    playlist2: BattleSide
    compatibility_score: int = Field(..., ge=0, le=100)
    winner: Literal["playlist1", "playlist2", "tie"]
    shared_artists: List[str] = []
    shared_genres: List[str] = []
    shared_tracks: List[SharedTrack] = []
    audio_data: List[AudioComparison] = []
