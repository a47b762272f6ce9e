# backend/backoffice/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/backoffice.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Fallback selling price when an item has none: cost + 30%
    DEFAULT_MARKUP_PERCENT = int(os.environ.get("DEFAULT_MARKUP_PERCENT", "30"))

    # Display-only split of retained earnings (percent, must total 100)
    PARTNERSHIP_SHARES = {"partner_1": 40, "partner_2": 60}

    LEDGER_PAGE_SIZE = 200
