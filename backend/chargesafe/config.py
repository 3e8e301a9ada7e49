# backend/chargesafe/config.py
from __future__ import annotations
import os


def _split_origins(value: str | None) -> list[str]:
    if not value:
        return []
    return [origin.strip() for origin in value.split(",") if origin.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/chargesafe.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///chargesafe.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Front-desk clients allowed to call the API from a browser
    CORS_ORIGINS = _split_origins(os.environ.get("CORS_ORIGINS")) or [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    ]

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Shop-wide currency used when a shop registers without choosing one
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "NGN")

    # Seconds between keepalive comments on /api/stream
    STREAM_HEARTBEAT_SECONDS = int(os.environ.get("STREAM_HEARTBEAT_SECONDS", "15"))
