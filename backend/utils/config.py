"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return tuple(item.strip().rstrip("/") for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    app_name: str = "Event Check-in & Room Allocation API"
    app_version: str = "1.0.0"
    environment: str = "development"
    log_level: str = "INFO"

    database_path: Path = Path("data/checkin.db")
    sqlite_busy_timeout_seconds: float = 10.0

    token_secret: str = "change-me-in-production"
    token_ttl_seconds: int = 24 * 60 * 60

    login_rate_limit_window_seconds: int = 15 * 60
    login_rate_limit_max_attempts: int = 5

    cors_allowed_origins: tuple[str, ...] = (
        "http://localhost:3000",
        "http://localhost:5173",
    )

    directory_lookup_url: str | None = None
    directory_lookup_timeout_seconds: float = 5.0
    directory_id_prefix: str = ""

    default_room_capacity: int = 50
    seed_default_inventory: bool = True

    default_operators: tuple[tuple[str, str, str, str], ...] = field(
        default=(
            ("admin", "admin123", "ADMIN", "Admin User"),
            ("coordinator", "coord123", "COORDINATOR", "Coordinator User"),
        )
    )

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process from environment variables."""
    return Settings(
        app_name=os.getenv("APP_NAME", Settings.app_name),
        app_version=os.getenv("APP_VERSION", Settings.app_version),
        environment=os.getenv("APP_ENV", Settings.environment),
        log_level=os.getenv("LOG_LEVEL", Settings.log_level),
        database_path=Path(os.getenv("DATABASE_PATH", str(Settings.database_path))),
        sqlite_busy_timeout_seconds=_env_float(
            "SQLITE_BUSY_TIMEOUT_SECONDS", Settings.sqlite_busy_timeout_seconds
        ),
        token_secret=os.getenv("TOKEN_SECRET", Settings.token_secret),
        token_ttl_seconds=_env_int("TOKEN_TTL_SECONDS", Settings.token_ttl_seconds),
        login_rate_limit_window_seconds=_env_int(
            "LOGIN_RATE_LIMIT_WINDOW_SECONDS", Settings.login_rate_limit_window_seconds
        ),
        login_rate_limit_max_attempts=_env_int(
            "LOGIN_RATE_LIMIT_MAX_ATTEMPTS", Settings.login_rate_limit_max_attempts
        ),
        cors_allowed_origins=_env_list(
            "CORS_ALLOWED_ORIGINS", Settings.cors_allowed_origins
        ),
        directory_lookup_url=os.getenv("DIRECTORY_LOOKUP_URL") or None,
        directory_lookup_timeout_seconds=_env_float(
            "DIRECTORY_LOOKUP_TIMEOUT_SECONDS", Settings.directory_lookup_timeout_seconds
        ),
        directory_id_prefix=os.getenv("DIRECTORY_ID_PREFIX", Settings.directory_id_prefix),
        default_room_capacity=_env_int("DEFAULT_ROOM_CAPACITY", Settings.default_room_capacity),
        seed_default_inventory=os.getenv("SEED_DEFAULT_INVENTORY", "true").lower()
        in {"1", "true", "yes"},
    )
