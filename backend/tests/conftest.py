from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from playlist_iq.core.config import Settings
from playlist_iq.spotify.auth import AccessToken


class StubRedis:
    """In-memory stand-in for redis.asyncio.Redis (string values only)."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def set(self, key: str, value: str) -> bool:
        self.data[key] = value
        self.ttls[key] = None
        return True

    async def delete(self, key: str) -> int:
        return 1 if self.data.pop(key, None) is not None else 0

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None


class BrokenRedis:
    async def _fail(self, *args: Any, **kwargs: Any) -> Any:
        raise RedisConnectionError("Error 111 connecting to redis:6379. Connection refused.")

    get = setex = set = delete = ping = aclose = _fail


class StubCredentials:
    def __init__(self, value: str = "test-token") -> None:
        self.value = value
        self.calls = 0
        self.invalidations = 0

    async def get_token(self) -> AccessToken:
        self.calls += 1
        return AccessToken(value=self.value, expires_at=float("inf"))

    def invalidate(self) -> None:
        self.invalidations += 1


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def feature(
    energy: float = 0.5,
    danceability: float = 0.5,
    valence: float = 0.5,
    acousticness: float = 0.2,
    instrumentalness: float = 0.0,
    tempo: float = 120.0,
    liveness: float = 0.1,
    speechiness: float = 0.05,
    **extra: Any,
) -> Dict[str, Any]:
    payload = {
        "energy": energy,
        "danceability": danceability,
        "valence": valence,
        "acousticness": acousticness,
        "instrumentalness": instrumentalness,
        "tempo": tempo,
        "liveness": liveness,
        "speechiness": speechiness,
    }
    payload.update(extra)
    return payload


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, redis_url="", spotify_client_id="id", spotify_client_secret="secret")


@pytest.fixture
def stub_redis() -> StubRedis:
    return StubRedis()


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def credentials() -> StubCredentials:
    return StubCredentials()


def ids(prefix: str, count: int) -> List[str]:
    return [f"{prefix}{index:04d}" for index in range(count)]


def split_ids(value: str) -> List[str]:
    return value.split(",") if value else []

