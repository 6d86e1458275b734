"""Engine, session factory and idempotent schema bootstrap for the SQLite store."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from market_sync.core.config import settings
from market_sync.core.logging import get_logger
from market_sync.models import Base, TokenCategory

log = get_logger("db")

DEFAULT_CATEGORIES = [
    {"id": "base-ecosystem", "name": "Base Ecosystem", "description": "Tokens native to the Base ecosystem"},
    {"id": "base-meme-coins", "name": "Base Meme Coins", "description": "Meme tokens on the Base network"},
]


def _set_sqlite_pragmas(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA synchronous = NORMAL")
    finally:
        cursor.close()


def make_engine(database_url: str) -> Engine:
    """Create an engine with foreign keys and WAL enabled on every connection.

    In-memory URLs share a single connection so every session sees the same data.
    """
    url = make_url(database_url)
    kwargs: dict = {"connect_args": {"check_same_thread": False}}

    if url.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
    else:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, **kwargs)
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def make_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


def init_db(bind: Engine) -> None:
    """Create all tables if missing and seed the default categories."""
    Base.metadata.create_all(bind)

    factory = make_session_factory(bind)
    with factory() as db, db.begin():
        stmt = insert(TokenCategory).values(DEFAULT_CATEGORIES).on_conflict_do_nothing()
        db.execute(stmt)
    log.info("Market database initialized successfully")


engine = make_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)
