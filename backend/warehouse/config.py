# backend/warehouse/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/warehouse.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///warehouse.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # |variance| below this is "minor"; 0 is always "exact"
    RECONCILIATION_MINOR_VARIANCE = int(os.environ.get("RECONCILIATION_MINOR_VARIANCE", "5"))

    # When False, a shipment that cannot be fully covered by lots is rejected
    ALLOW_SHIPMENT_SHORTFALL = _env_bool("ALLOW_SHIPMENT_SHORTFALL", True)

    FUTURE_TOLERANCE_MINUTES = int(os.environ.get("FUTURE_TOLERANCE_MINUTES", "2"))
