# backend/backoffice/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/backoffice.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///backoffice.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = _env_list(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    )

    # Upper bound for one sale's unit of work (lock wait + statements)
    POS_COMMIT_TIMEOUT_SECONDS = _env_int("POS_COMMIT_TIMEOUT_SECONDS", 10)
    POS_COMMIT_RETRY_ATTEMPTS = _env_int("POS_COMMIT_RETRY_ATTEMPTS", 3)

    POS_TRANSACTION_PREFIX = os.environ.get("POS_TRANSACTION_PREFIX", "TXN")
    POS_LOW_STOCK_THRESHOLD = _env_int("POS_LOW_STOCK_THRESHOLD", 10)
    POS_HISTORY_DEFAULT_LIMIT = _env_int("POS_HISTORY_DEFAULT_LIMIT", 20)
    POS_HISTORY_MAX_LIMIT = _env_int("POS_HISTORY_MAX_LIMIT", 100)

    # Per-subscriber buffer for real-time channels; overflow drops events
    POS_EVENT_QUEUE_SIZE = _env_int("POS_EVENT_QUEUE_SIZE", 256)
    POS_EVENT_KEEPALIVE_SECONDS = _env_int("POS_EVENT_KEEPALIVE_SECONDS", 15)
