"""SQLAlchemy engine and session setup."""

import os
from pathlib import Path
from typing import Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from job_ingestion.config import DEFAULT_DATABASE_URL


def get_database_url(url: Optional[str] = None) -> str:
    url = url or os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)
    # Some hosts hand out postgres:// but SQLAlchemy 2.x requires postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def create_db_engine(url: Optional[str] = None) -> Engine:
    """Engine for ``url`` (or DATABASE_URL), creating the SQLite directory if needed."""
    url = get_database_url(url)
    connect_args = {}
    if url.startswith("sqlite"):
        # Sources sync on worker threads
        connect_args["check_same_thread"] = False
        db_path = url.split("///", 1)[-1]
        if db_path and db_path != ":memory:" and "///" in url:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, pool_pre_ping=True, echo=False, connect_args=connect_args)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass
