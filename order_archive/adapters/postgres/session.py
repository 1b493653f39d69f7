"""Postgres session management.

The engine is created lazily from ``database_url``. A missing URL is a
"not configured" state, never an import-time failure.
"""
import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from order_archive.settings import settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Optional[Engine]:
    global _engine
    if _engine is None and settings.database_url:
        try:
            _engine = create_engine(settings.database_url, pool_pre_ping=True)
            logger.info("Initialized order store database engine")
        except Exception as e:
            logger.error(f"Failed to create DB engine: {e}")
            _engine = None
    return _engine


def get_session_factory() -> Optional[sessionmaker]:
    """Return a sessionmaker, or None when the order store is not configured."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine()
        if engine is None:
            logger.warning("No order database configured. Orders will not be persisted.")
            return None
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return _session_factory


def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
