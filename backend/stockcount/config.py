# backend/stockcount/config.py
from __future__ import annotations
import os


def _origins(raw: str) -> set[str]:
    return {o.strip() for o in raw.split(",") if o.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockcount.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockcount.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # User whose products and barcodes form the shared master catalog.
    # Every lookup and every import goes through this identity.
    CATALOG_OWNER_USER_ID = int(os.environ.get("CATALOG_OWNER_USER_ID", "1"))

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    EXPORT_FILENAME_PREFIX = os.environ.get("EXPORT_FILENAME_PREFIX", "contagem")

    CORS_ALLOWED_ORIGINS = _origins(os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    ))
