"""
SQLAlchemy engine and session. Supports PostgreSQL and SQLite (local work and tests).
One session per request via get_db; multi-statement atomic units go through transaction().
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from suficiencia.config import settings

logger = logging.getLogger(__name__)

_is_sqlite = "sqlite" in settings.database_url
if _is_sqlite:
    _engine_kwargs = {"connect_args": {"check_same_thread": False}}
else:
    _engine_kwargs = {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "pool_timeout": settings.db_pool_timeout,
    }
engine = create_engine(settings.database_url, echo=False, **_engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_sqlite_db():
    """When using SQLite: create tables. Call once at app startup; PostgreSQL uses Alembic."""
    if not _is_sqlite:
        return
    # Import all models so they register with Base before create_all
    from suficiencia import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("SQLite schema ready (%d tables)", len(Base.metadata.tables))


def get_db():
    """Dependency: yield a DB session, close after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session):
    """Run a block as one atomic unit: commit on success, rollback on any exception."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
