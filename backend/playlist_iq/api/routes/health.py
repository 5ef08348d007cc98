from __future__ import annotations

from fastapi import APIRouter, Depends

from ...cache.redis import CacheService
from ...schemas.health import HealthResponse
from ..deps import get_cache

router = APIRouter(prefix="/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def get_health(cache: CacheService = Depends(get_cache)) -> HealthResponse:
    return HealthResponse(ok=True, cache=await cache.ping())
