# backend/shopstock/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopstock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopstock.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ledger writes are retried on lock/version conflicts (see services/concurrency.py)
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "5"))
    LEDGER_RETRY_BACKOFF = float(os.environ.get("LEDGER_RETRY_BACKOFF", "0.05"))

    # Restock threshold for ledger entries whose product has no minimum configured
    DEFAULT_MINIMUM_QUANTITY = int(os.environ.get("DEFAULT_MINIMUM_QUANTITY", "100"))

    # Outbox: max events handed to the publisher per dispatch pass
    EVENT_DISPATCH_BATCH = int(os.environ.get("EVENT_DISPATCH_BATCH", "200"))

    # Callable(event: OutboxEvent) -> None; None means "log only"
    EVENT_PUBLISHER = None
