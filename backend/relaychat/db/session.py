"""Engine and session factory for the optional message store."""

from __future__ import annotations

import logging
from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from relaychat.config import get_settings
from relaychat.models.base import Base

logger = logging.getLogger(__name__)


@lru_cache
def get_engine() -> Engine | None:
    """Return the configured engine, or None when no store is configured."""

    settings = get_settings()
    if not settings.database_url:
        logger.warning("DATABASE_URL is not set; chat history will not be saved.")
        return None
    return create_engine(settings.database_url, pool_pre_ping=True, future=True)


@lru_cache
def get_sessionmaker() -> sessionmaker[Session] | None:
    engine = get_engine()
    if engine is None:
        return None
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def init_db() -> bool:
    """Create tables if a store is configured. Returns whether one is."""

    engine = get_engine()
    if engine is None:
        return False
    Base.metadata.create_all(engine)
    return True
