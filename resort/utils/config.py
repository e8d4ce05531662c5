"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Process configuration; the per-resort settings record lives in the store."""

    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    admin_token: Optional[str]
    session_ttl_seconds: int
    timezone: str

    telegram_api_base_url: str
    telegram_timeout_seconds: float
    telegram_bot_token: Optional[str]
    telegram_operator_chat_id: Optional[str]
    telegram_webhook_secret: Optional[str]

    menu_page_size: int
    menu_grid_columns: int
    seed_demo_data: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_path = Path(
        _env_str("DATABASE_PATH", str(PROJECT_ROOT / "data" / "resort.db"))
    )
    return Settings(
        app_name=_env_str("APP_NAME", "Resort Reservation Core"),
        app_version=_env_str("APP_VERSION", "0.1.0"),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        database_path=database_path,
        admin_token=_env_optional("ADMIN_TOKEN"),
        session_ttl_seconds=_env_int("SESSION_TTL_SECONDS", 12 * 60 * 60),
        timezone=_env_str("RESORT_TIMEZONE", "Asia/Ulaanbaatar"),
        telegram_api_base_url=_env_str(
            "TELEGRAM_API_BASE_URL", "https://api.telegram.org"
        ),
        telegram_timeout_seconds=_env_float("TELEGRAM_TIMEOUT_SECONDS", 10.0),
        telegram_bot_token=_env_optional("TELEGRAM_BOT_TOKEN"),
        telegram_operator_chat_id=_env_optional("TELEGRAM_OPERATOR_CHAT_ID"),
        telegram_webhook_secret=_env_optional("TELEGRAM_WEBHOOK_SECRET"),
        menu_page_size=_env_int("MENU_PAGE_SIZE", 8),
        menu_grid_columns=2,
        seed_demo_data=_env_bool("SEED_DEMO_DATA", True),
    )
