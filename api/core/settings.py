"""
Environment-driven settings.

Every value is read from the process environment when asked for, so tests
can monkeypatch `os.environ` without reloading modules.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_FILES_DIR = "./files"

# 16 MiB
DEFAULT_MAX_UPLOAD_BYTES = 16 * 1024 * 1024


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def app_env() -> str:
    return _env_str("APP_ENV", "development").lower()


def log_level() -> str:
    return _env_str("LOG_LEVEL", "info").upper()


def files_dir() -> Path:
    """
    Root of the content-addressed asset store.
    """
    return Path(_env_str("FILES_DIR", DEFAULT_FILES_DIR))


def max_upload_bytes() -> int:
    """
    Upper bound for a single buffered upload. Invalid values raise.
    """
    raw = os.environ.get("MAX_UPLOAD_BYTES", "").strip()
    if not raw:
        return DEFAULT_MAX_UPLOAD_BYTES

    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError("Invalid MAX_UPLOAD_BYTES. It must be an integer.") from exc

    if value <= 0:
        raise ValueError("Invalid MAX_UPLOAD_BYTES. It must be > 0.")

    return value


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "")
    origins = [item.strip() for item in raw.split(",") if item.strip()]
    return origins or ["http://localhost:5173", "http://127.0.0.1:5173"]


def jwt_secret() -> str:
    # Development default only; production deployments set JWT_SECRET.
    return _env_str("JWT_SECRET", "dev-change-this-secret")


def jwt_algorithm() -> str:
    return _env_str("JWT_ALG", "HS256")


def access_token_expire_minutes() -> int:
    return _env_int("ACCESS_TOKEN_EXPIRE_MIN", 60)


def refresh_token_expire_days() -> int:
    return _env_int("REFRESH_TOKEN_EXPIRE_DAYS", 30)


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return url


def db_pool_max_size() -> int:
    return max(_env_int("DB_POOL_MAX_SIZE", 5), 1)
