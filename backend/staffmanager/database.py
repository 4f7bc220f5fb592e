from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import settings

DATABASE_URL = f"sqlite:///{settings.sqlite_path}"


def enable_sqlite_foreign_keys(target: Engine) -> Engine:
    """Turn on foreign key enforcement for every connection SQLite hands out.

    SQLite ships with the constraints declared but unchecked; an activity or
    invoice pointing at a missing mission would otherwise be stored silently.
    """

    @event.listens_for(target, "connect")
    def _set_foreign_keys(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()

    return target


def make_engine(url: str = DATABASE_URL) -> Engine:
    return enable_sqlite_foreign_keys(
        create_engine(
            url,
            connect_args={"check_same_thread": False},
            future=True,
        )
    )


engine = make_engine()

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def db_session() -> Generator:
    """Session scope for batch work: commit on success, roll back on any error."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
