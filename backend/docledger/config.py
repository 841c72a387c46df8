# backend/docledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/docledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///docledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Unit-of-work retry limit for lock/version conflicts
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
    LEDGER_RETRY_BACKOFF_SECONDS = float(os.environ.get("LEDGER_RETRY_BACKOFF_SECONDS", "0.1"))

    # Document defaults (VAT in basis points: 1500 = 15%)
    LEDGER_DEFAULT_VAT_RATE_BPS = int(os.environ.get("LEDGER_DEFAULT_VAT_RATE_BPS", "1500"))
    LEDGER_DEFAULT_VAT_MODE = os.environ.get("LEDGER_DEFAULT_VAT_MODE", "exclusive")
    LEDGER_DEFAULT_PAYMENT_TERMS_DAYS = int(os.environ.get("LEDGER_DEFAULT_PAYMENT_TERMS_DAYS", "30"))
    LEDGER_DEFAULT_QUOTE_VALIDITY_DAYS = int(os.environ.get("LEDGER_DEFAULT_QUOTE_VALIDITY_DAYS", "30"))
