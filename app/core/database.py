"""
Database engine, session factory and declarative base.
"""
import logging
from contextlib import contextmanager
from typing import Generator, Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


def _build_engine(url: str):
    if url.startswith("sqlite"):
        # Single shared connection so an in-memory database survives across sessions
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, pool_pre_ping=True, pool_size=10, max_overflow=20)


engine = _build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Yield a DB session per request and always close it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def _store_guard(db: Session, action: str, kind: str, message: Optional[str] = None) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Store %s failed (%s): %s", kind, action, e)
        raise StoreUnavailable(message)


def write_guard(db: Session, action: str):
    """
    Wrap a store write: on SQLAlchemyError roll back, log, and raise
    StoreUnavailable so nothing is half-applied.
    """
    return _store_guard(db, action, "write")


def read_guard(db: Session, action: str):
    """Same as write_guard for reads; the session is left usable for the next frame."""
    return _store_guard(db, action, "read", "Failed to load messages. Please try again.")
