from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import health
from .core.config import get_settings
from .core.logging import setup_logging
from .services.catalog import CatalogService


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    app.state.catalog = CatalogService.from_settings(settings)
    try:
        yield
    finally:
        await app.state.catalog.close()


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level, environment=settings.environment)
    app = FastAPI(
        title="Playlist IQ Backend",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.include_router(health.router)
    return app


app = create_app()
