"""Database engine and session management."""

from typing import Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from pixtag.settings import settings


def get_engine_kwargs(database_url: Optional[str] = None) -> Dict[str, Any]:
    """Engine options for ``database_url``, defaulting to the configured URL."""
    database_url = database_url or settings.database_url
    kwargs: Dict[str, Any] = {
        "pool_pre_ping": settings.db_pool_pre_ping,
        "pool_recycle": settings.db_pool_recycle,
    }
    # SQLite uses a single-connection pool that takes no sizing.
    if not database_url.startswith("sqlite"):
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow
    return kwargs


def build_engine(database_url: Optional[str] = None) -> Engine:
    database_url = database_url or settings.database_url
    return create_engine(database_url, **get_engine_kwargs(database_url))


engine = build_engine()
SessionLocal = sessionmaker(bind=engine)


def get_db():
    """Yield a request-scoped session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
