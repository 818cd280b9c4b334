# backend/pharmapos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pharmapos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///pharmapos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Display only; amounts are stored as integer minor units
    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "Le")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Retries for lock/deadlock failures while posting sales and adjustments
    SUBMIT_RETRY_ATTEMPTS = int(os.environ.get("SUBMIT_RETRY_ATTEMPTS", "3"))
