from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str = "INFO"
    log_dir: str = "logs"
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    scheduler_enabled: bool = True
    recurrence_check_minutes: int = 60
    recurrence_lookback_hours: int = 24
    recurrence_check_delay_minutes: int = 5
    queue_max_attempts: int = 3
    queue_backoff_seconds: float = 2.0


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    load_env()

    database_url = os.getenv("DATABASE_URL", "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")

    return Settings(
        database_url=database_url,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR", "logs"),
        api_host=os.getenv("API_HOST", "127.0.0.1"),
        api_port=int(os.getenv("API_PORT", "8000")),
        scheduler_enabled=_env_flag("SCHEDULER_ENABLED", True),
        recurrence_check_minutes=int(os.getenv("RECURRENCE_CHECK_MINUTES", "60")),
        recurrence_lookback_hours=int(os.getenv("RECURRENCE_LOOKBACK_HOURS", "24")),
        recurrence_check_delay_minutes=int(os.getenv("RECURRENCE_CHECK_DELAY_MINUTES", "5")),
        queue_max_attempts=int(os.getenv("QUEUE_MAX_ATTEMPTS", "3")),
        queue_backoff_seconds=float(os.getenv("QUEUE_BACKOFF_SECONDS", "2")),
    )
