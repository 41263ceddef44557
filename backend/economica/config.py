# backend/economica/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/economica.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///economica.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Cart summary tax, in basis points (1600 = 16%)
    CART_TAX_RATE_BPS = _int_env("CART_TAX_RATE_BPS", 0)

    # Client-supplied totals must match the computed total within this many cents
    CHECKOUT_TOTAL_TOLERANCE_CENTS = _int_env("CHECKOUT_TOTAL_TOLERANCE_CENTS", 1)

    SALES_PAGE_SIZE = _int_env("SALES_PAGE_SIZE", 50)
    SALES_MAX_PAGE_SIZE = _int_env("SALES_MAX_PAGE_SIZE", 200)

    # Attempts for optimistic-lock / database-lock retries
    DB_RETRY_ATTEMPTS = _int_env("DB_RETRY_ATTEMPTS", 3)

    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    ]
