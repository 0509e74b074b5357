# backend/grosave/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/grosave.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///grosave.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # GroCoin economy
    MONTHLY_COIN_ALLOCATION = int(os.environ.get("MONTHLY_COIN_ALLOCATION", "4000"))
    MAX_BONUS_COINS_PER_MONTH = int(os.environ.get("MAX_BONUS_COINS_PER_MONTH", "500"))

    # Pickup slots provisioned on first use get this capacity
    DEFAULT_SLOT_CAPACITY = int(os.environ.get("DEFAULT_SLOT_CAPACITY", "15"))

    # One-time passwords (process-local store)
    OTP_TTL_SECONDS = int(os.environ.get("OTP_TTL_SECONDS", "300"))
    # Dev only: echo the OTP back in the send-otp response
    EXPOSE_OTP = _env_bool("EXPOSE_OTP", "true")

    # Reservations must carry a client idempotency token when enabled
    REQUIRE_IDEMPOTENCY_KEY = _env_bool("REQUIRE_IDEMPOTENCY_KEY")

    IMPACT_RANGE_DAYS = int(os.environ.get("IMPACT_RANGE_DAYS", "30"))

    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
