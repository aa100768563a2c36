from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, settings
from .registry import RoomRegistry
from .routers import rooms as rooms_router
from .routers import websockets as ws_router
from .schemas import HealthResponse
from .state import get_registry

logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)


def create_app(registry: Optional[RoomRegistry] = None, config: Settings = settings) -> FastAPI:
    """Build the FastAPI application around one room registry."""
    registry = registry or RoomRegistry(
        code_length=config.room_code_length,
        room_ttl=config.room_ttl_seconds,
        sweep_interval=config.sweep_interval_seconds,
        grace_seconds=config.disconnect_grace_seconds,
        max_name_length=config.max_name_length,
        min_players=config.required_players,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Gamehub backend starting up...")
        registry.start_sweeper()
        yield
        await registry.shutdown()
        logger.info("Backend shutting down.")

    app = FastAPI(title="Gamehub Backend", version="0.1.0", lifespan=lifespan)
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(registry: RoomRegistry = Depends(get_registry)):
        return HealthResponse(
            rooms=registry.room_count,
            connections=registry.connection_count,
            timestamp=time.time(),
        )

    # Register routers
    app.include_router(rooms_router.router, prefix="/api")
    app.include_router(ws_router.router)
    return app


app = create_app()

__all__ = ["app", "create_app"]


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("gamehub.app:app", host="0.0.0.0", port=8000)
