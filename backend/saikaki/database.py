"""
Database connection and session management.
Handles SQLAlchemy setup, connection pooling, and session lifecycle.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from .config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs(dsn: str) -> Dict[str, Any]:
    """
    Pool settings per backend.
    - in-memory SQLite (tests): one shared connection, or each thread sees an empty DB
    - file SQLite: default pool, one connection per session, writers wait on the file lock
    - everything else: QueuePool with pre-ping and recycle
    """
    url = make_url(dsn)
    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            return {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            }
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {
        "poolclass": QueuePool,
        "pool_size": 20,
        "max_overflow": 30,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


# ---- Engine ----
engine = create_engine(
    settings.DATABASE_URL,
    future=True,
    echo=settings.SQL_ECHO,
    **_engine_kwargs(settings.DATABASE_URL),
)

# ---- Session factory ----
# expire_on_commit=False keeps attributes accessible after repo commits
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    future=True,
)

from .models import Base  # noqa: E402


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a DB session.
    - On normal exit: commits (no-op if repos already committed).
    - On exception: rollbacks.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context(
    factory: Optional[Callable[[], Session]] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for manual session management (record store, scripts).
    Mirrors get_db() semantics.
    """
    db = (factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception as e:
        logger.error(f"Database context error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def create_all() -> None:
    """Create tables directly from metadata (tests and local SQLite without Alembic)."""
    Base.metadata.create_all(bind=engine)


def redacted_dsn(dsn: str) -> str:
    """
    Redact password in a DATABASE_URL for safe logging.
    """
    try:
        url = make_url(dsn)
        safe = url.set(password="***") if url.password else url
        return str(safe)
    except Exception:
        return "<unparsable DSN>"


def log_where_am_i() -> None:
    """
    Open a short-lived connection and log which backend/database we actually hit.
    Safe to call in app startup.
    """
    ds = redacted_dsn(settings.DATABASE_URL)
    try:
        with engine.connect() as conn:
            url = conn.engine.url
            logger.warning(
                f"DB connected -> dsn={ds} | backend={url.get_backend_name()} | db={url.database}"
            )
    except Exception as e:
        logger.error(f"DB introspection failed for dsn={ds}: {e}")
