from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="BACKEND_", extra="allow")

    environment: str = "development"
    log_level: str = "INFO"
    redis_url: str = ""
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_api_base: str = "https://api.spotify.com/v1"
    spotify_token_url: str = "https://accounts.spotify.com/api/token"
    http_timeout_seconds: float = 15.0
    http_retries: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0
    playlist_page_size: int = 100
    cache_ttl_playlist: int = 3600
    cache_ttl_tracks: int = 3600
    cache_ttl_audio_features: int = 3600
    cache_ttl_artists: int = 7200
    cache_ttl_recommendations: int = 900
    cache_ttl_analysis: int = 1800
    allow_origins: List[str] = ["*"]

    @field_validator("http_retries")
    @classmethod
    def _at_least_one_attempt(cls, v: int) -> int:
        return max(1, v)

    @field_validator("redis_url", mode="before")
    @classmethod
    def _strip_url(cls, v: str | None) -> str:
        return (v or "").strip()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
