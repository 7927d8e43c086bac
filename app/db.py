from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine
import os
import sqlite3
import logging
from constants import CONFIG_DIR
from utils import now_utc

# Retrieve main logger
logger = logging.getLogger("main")

db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite pragmas for concurrent scrape workers"""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return

    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def create_app_context(database_uri=None):
    """Create a minimal Flask app that carries the SQLAlchemy binding"""
    if database_uri is None:
        from settings import load_settings

        database_uri = load_settings()["database"]["url"]

    if database_uri.startswith("sqlite:///") and not database_uri.startswith("sqlite:////"):
        os.makedirs(CONFIG_DIR, exist_ok=True)

    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {"pool_pre_ping": True}
    db.init_app(app)
    return app


def init_db(app):
    """Create missing tables (local and test databases; no migrations)"""
    with app.app_context():
        db.create_all()
        logger.info("Database tables verified")


def to_dict(db_results):
    return {c.name: getattr(db_results, c.name) for c in db_results.__table__.columns}


# Re-export so callers can use: from db import Games
from models.games import Games  # noqa: E402
