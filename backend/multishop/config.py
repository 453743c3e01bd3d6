# backend/multishop/config.py
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

    # SQLite DB stored in backend/instance/multishop.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///multishop.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Identity provider
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    SESSION_LIFETIME_HOURS = int(os.environ.get("SESSION_LIFETIME_HOURS", "24"))
    RESET_CHALLENGE_MINUTES = int(os.environ.get("RESET_CHALLENGE_MINUTES", "30"))

    # Ledger and fan-out
    NOTIFICATION_FEED_LIMIT = int(os.environ.get("NOTIFICATION_FEED_LIMIT", "50"))
    STORE_RETRY_ATTEMPTS = int(os.environ.get("STORE_RETRY_ATTEMPTS", "3"))
    INVENTORY_ALLOW_NEGATIVE_STOCK = _env_bool("INVENTORY_ALLOW_NEGATIVE_STOCK", True)

    # Offline warm-start cache; None means <instance_path>/cache
    LOCAL_CACHE_DIR = os.environ.get("LOCAL_CACHE_DIR")

    # Browser origins allowed to call the API, comma-separated; empty disables CORS
    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get("CORS_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    ]
