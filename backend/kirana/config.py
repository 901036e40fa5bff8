# backend/kirana/config.py
from __future__ import annotations
import os


class Config:
    # SQLite DB stored in backend/instance/kirana.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///kirana.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds the driver waits on a locked database before giving up
    SQLITE_BUSY_TIMEOUT = float(os.environ.get("SQLITE_BUSY_TIMEOUT", "15"))
    SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": SQLITE_BUSY_TIMEOUT}}

    WRITE_RETRY_ATTEMPTS = int(os.environ.get("WRITE_RETRY_ATTEMPTS", "3"))
    WRITE_RETRY_BACKOFF = float(os.environ.get("WRITE_RETRY_BACKOFF", "0.05"))

    # Thread pool used to re-run live queries after a commit
    REFRESH_WORKERS = int(os.environ.get("REFRESH_WORKERS", "4"))
    # Seconds a scheduled refresh waits so back-to-back commits fold into one re-run
    REFRESH_COALESCE_WINDOW = float(os.environ.get("REFRESH_COALESCE_WINDOW", "0.05"))
    # Pending updates kept per subscription; the oldest is dropped when full
    SUBSCRIPTION_BUFFER = int(os.environ.get("SUBSCRIPTION_BUFFER", "64"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    # Optional executor (anything with submit(fn)); None means the store owns
    # a ThreadPoolExecutor of REFRESH_WORKERS threads
    REFRESH_EXECUTOR = None
