# backend/kirana/__init__.py
from __future__ import annotations

import logging
import os

from flask import Flask, current_app

from .config import Config
from .extensions import db, migrate
from .schema import install_sqlite_pragmas
from .store import LedgerStore

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)

    logging.getLogger("kirana").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    with app.app_context():
        install_sqlite_pragmas(db.engine)
        init_store(app, executor=app.config.get("REFRESH_EXECUTOR"))

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def init_store(app: Flask, executor=None) -> LedgerStore:
    """Build the LedgerStore on the app's engine. Call inside an app context."""
    store = LedgerStore(
        db.engine,
        executor=executor,
        refresh_workers=app.config["REFRESH_WORKERS"],
        coalesce_window=app.config["REFRESH_COALESCE_WINDOW"],
        subscription_buffer=app.config["SUBSCRIPTION_BUFFER"],
        retry_attempts=app.config["WRITE_RETRY_ATTEMPTS"],
        retry_backoff=app.config["WRITE_RETRY_BACKOFF"],
    )
    app.extensions["kirana"] = store
    return store


def get_store(app: Flask | None = None) -> LedgerStore:
    app = app or current_app
    return app.extensions["kirana"]
