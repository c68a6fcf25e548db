# backend/salesapi/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Signing key for bearer tokens, read from the environment only
    TOKEN_SECRET_KEY = os.environ.get("TOKEN_SECRET_KEY") or os.environ.get("SECRET_KEY")
    TOKEN_TTL_SECONDS = int(os.environ.get("TOKEN_TTL_SECONDS", "28800"))  # 8 hours

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # SQLite DB stored in backend/instance/salesapi.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///salesapi.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound on how long a unit of work waits for a row lock
    LOCK_TIMEOUT_MS = int(os.environ.get("LOCK_TIMEOUT_MS", "5000"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Include exception text in 500 responses (development only)
    EXPOSE_INTERNAL_ERRORS = _env_bool("EXPOSE_INTERNAL_ERRORS")
