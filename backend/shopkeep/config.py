# backend/shopkeep/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopkeep.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopkeep.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("SHOPKEEP_LOG_LEVEL", "INFO")

    # Display only; all amounts are stored in minor units (cents).
    CURRENCY_CODE = os.environ.get("SHOPKEEP_CURRENCY", "KES")

    # When False, a sale that asks for more than the batches hold is refused
    # instead of deducting what is available.
    ALLOW_OVERSELL = _env_flag("SHOPKEEP_ALLOW_OVERSELL", True)

    DEFAULT_REORDER_LEVEL = int(os.environ.get("SHOPKEEP_DEFAULT_REORDER_LEVEL", "10"))

    # Pricing for products created from an imported receipt (cost x markup).
    RECEIPT_RETAIL_MARKUP = os.environ.get("SHOPKEEP_RECEIPT_RETAIL_MARKUP", "1.30")
    RECEIPT_WHOLESALE_MARKUP = os.environ.get("SHOPKEEP_RECEIPT_WHOLESALE_MARKUP", "1.15")
    RECEIPT_DEFAULT_CATEGORY = "feeds"
    RECEIPT_DEFAULT_UNIT = "pieces"

    # bcrypt cost factor for password and PIN hashes
    BCRYPT_ROUNDS = int(os.environ.get("SHOPKEEP_BCRYPT_ROUNDS", "12"))
