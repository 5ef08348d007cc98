from __future__ import annotations

from fastapi import Depends, Request

from ..cache.redis import CacheService
from ..services.catalog import CatalogService


async def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


async def get_cache(catalog: CatalogService = Depends(get_catalog)) -> CacheService:
    return catalog.cache
