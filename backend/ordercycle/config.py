# backend/ordercycle/config.py
from __future__ import annotations
import os


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ordercycle.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ordercycle.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # "Start of today" and the YYMMDD part of document numbers follow this zone
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "Asia/Seoul")

    # Category governed by the cutoff window and the daily cycle
    WATCHED_CATEGORY = os.environ.get("WATCHED_CATEGORY", "daily_food")

    # Purchase order duplicate guard: +/- window around the cycle's last confirmation
    DUPLICATE_WINDOW_SECONDS = _env_int("DUPLICATE_WINDOW_SECONDS", 60)
    AUTO_RESET_HOURS = _env_int("AUTO_RESET_HOURS", 17)

    TRANSACTION_RETRY_ATTEMPTS = _env_int("TRANSACTION_RETRY_ATTEMPTS", 3)
    TRANSACTION_RETRY_BACKOFF = _env_float("TRANSACTION_RETRY_BACKOFF", 0.1)

    # Outbound supplier messaging
    SMS_PROVIDER = os.environ.get("SMS_PROVIDER", "log")  # log | http
    SMS_API_URL = os.environ.get("SMS_API_URL")
    SMS_API_KEY = os.environ.get("SMS_API_KEY")
    SMS_SENDER = os.environ.get("SMS_SENDER")
    SMS_TIMEOUT_SECONDS = _env_float("SMS_TIMEOUT_SECONDS", 10.0)
    SMS_SEND_INTERVAL_SECONDS = _env_float("SMS_SEND_INTERVAL_SECONDS", 0.5)
    SMS_COMPANY_NAME = os.environ.get("SMS_COMPANY_NAME", "Daily Order")
    SMS_COMPANY_PHONE = os.environ.get("SMS_COMPANY_PHONE", "")

    # `flask system seed-demo` refuses to run unless this is set
    DEBUG_SEED_ENABLED = _env_bool("DEBUG_SEED_ENABLED")
