"""Database engine setup.

For test runs (ENV=test) an in-memory SQLite database shared by every
connection is used, so logic tests need no PostgreSQL driver.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from rentbooks.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str | None) -> Engine:
    raw_url = url or "sqlite:///./storage/dev.db"
    if raw_url.startswith("sqlite") and ":memory:" in raw_url:
        # One connection for the whole process, otherwise every session sees an empty database
        return create_engine(
            raw_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if raw_url.startswith("sqlite"):
        return create_engine(raw_url, future=True, connect_args={"check_same_thread": False})
    # Pool pre-ping: verify connection health before use
    return create_engine(
        raw_url,
        future=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        pool_pre_ping=True,
    )


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Generator[Session, None, None]:
    """Commit everything done inside the block, or nothing at all.

    Used for multi-row writes (installment plans, composite transactions,
    confirmations) that must never be observed half-done.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("Rolled back partial write", exc_info=True)
        raise
