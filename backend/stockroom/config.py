# backend/stockroom/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockroom.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockroom.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Single operator account. ADMIN_PASSWORD_HASH (bcrypt) wins over ADMIN_PASSWORD.
    ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "Praya")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "Praya")
    ADMIN_PASSWORD_HASH = os.environ.get("ADMIN_PASSWORD_HASH")

    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))

    # Zone used for "today" / "current month" presets and report day bounds
    STOCK_TIMEZONE = os.environ.get("STOCK_TIMEZONE", "UTC")

    # Legacy behaviour: drop approved returns instead of keeping them as approved
    DELETE_APPROVED_RETURNS = _env_bool("DELETE_APPROVED_RETURNS", False)

    MAX_IMPORT_ROWS = int(os.environ.get("MAX_IMPORT_ROWS", "5000"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
