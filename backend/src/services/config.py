"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "story_graph.db"
DEFAULT_CORS_ORIGINS = "https://admin.spiritbrewgame.com"


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    db_path: Path = Field(default=DEFAULT_DB_PATH, description="SQLite story database file")
    cors_allowed_origins: List[str] = Field(
        default_factory=lambda: [DEFAULT_CORS_ORIGINS],
        description="Origins allowed to call the API from a browser",
    )
    rate_limit_requests: int = Field(
        default=60, gt=0, description="Requests allowed per client per window"
    )
    rate_limit_window_seconds: float = Field(
        default=60.0, gt=0, description="Length of the rate limit window"
    )
    request_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Deadline for building one graph"
    )
    graph_fetch_mode: Literal["bulk", "lazy"] = Field(
        default="bulk",
        description="Prefetch the whole node set, or fetch nodes one by one",
    )
    seed_demo_data: bool = Field(
        default=False, description="Insert the demo storyline at startup"
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    @field_validator("db_path", mode="before")
    @classmethod
    def _normalize_db_path(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            raise ValueError("STORY_DB_PATH cannot be empty")
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | List[str] | None) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [origin.strip().rstrip("/") for origin in value if origin and origin.strip()]

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = (value or "INFO").strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL: {value}")
        return level


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


def _read_bool(key: str, default: str) -> bool:
    return (_read_env(key, default) or default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    return AppConfig(
        db_path=_read_env("STORY_DB_PATH", str(DEFAULT_DB_PATH)),
        cors_allowed_origins=_read_env("CORS_ALLOWED_ORIGINS", DEFAULT_CORS_ORIGINS),
        rate_limit_requests=_read_env("RATE_LIMIT_REQUESTS", "60"),
        rate_limit_window_seconds=_read_env("RATE_LIMIT_WINDOW_SECONDS", "60"),
        request_timeout_seconds=_read_env("REQUEST_TIMEOUT_SECONDS", "10"),
        graph_fetch_mode=(_read_env("GRAPH_FETCH_MODE", "bulk") or "bulk").strip().lower(),
        seed_demo_data=_read_bool("SEED_DEMO_DATA", "false"),
        log_level=_read_env("LOG_LEVEL", "INFO"),
    )


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


__all__ = ["AppConfig", "get_config", "reload_config", "PROJECT_ROOT", "DEFAULT_DB_PATH"]
