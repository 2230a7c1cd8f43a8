"""FastAPI application bootstrap and lifecycle wiring."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.controllers.auth_controller import router as auth_router
from backend.controllers.export_controller import router as export_router
from backend.controllers.participant_controller import router as participant_router
from backend.controllers.room_controller import router as room_router
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import RoomAllocationService
from backend.services.auth_service import AuthService
from backend.services.directory_service import DirectoryLookupService
from backend.services.participant_service import ParticipantService
from backend.services.rate_limiter import SlidingWindowRateLimiter
from backend.services.report_service import ReportService
from backend.services.room_service import RoomInventoryService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the app with every service created here and parked on ``app.state``."""
    settings = settings or get_settings()

    repository = DataRepository(settings)
    auth_service = AuthService(repository=repository, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allowed_origins),
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(auth_router)
    app.include_router(participant_router)
    app.include_router(room_router)
    app.include_router(export_router)

    @app.get("/api/health", tags=["health"])
    async def health() -> dict[str, object]:
        return {
            "status": "ok",
            "service": settings.app_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    app.state.settings = settings
    app.state.repository = repository
    app.state.auth_service = auth_service
    app.state.login_rate_limiter = SlidingWindowRateLimiter.for_login(settings)
    app.state.participant_service = ParticipantService(repository=repository, settings=settings)
    app.state.allocation_service = RoomAllocationService(repository=repository, settings=settings)
    app.state.room_service = RoomInventoryService(repository=repository, settings=settings)
    app.state.report_service = ReportService(repository=repository, settings=settings)
    app.state.directory_service = DirectoryLookupService(settings=settings)

    return app


def startup(app: FastAPI) -> None:
    """Idempotent: create schema, then seed inventory and default operators if missing."""
    settings: Settings = app.state.settings
    repository: DataRepository = app.state.repository
    auth_service: AuthService = app.state.auth_service

    repository.initialize_database()
    if settings.seed_default_inventory:
        repository.seed_default_rooms()
    auth_service.ensure_default_operators()
    logger.info("Startup complete (%s environment)", settings.environment)


app = create_app()
