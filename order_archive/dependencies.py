"""Dependency Injection Module.

Collaborators are constructed once in the application lifespan and held on
``app.state``; request handlers reach them through these getters so tests can
swap them with ``app.dependency_overrides``.
"""
import logging
from typing import Optional

from fastapi import Request

from order_archive.adapters.memory_store.stores import MemoryOrderStore
from order_archive.adapters.postgres.order_store import PostgresOrderStore
from order_archive.adapters.postgres.session import get_session_factory
from order_archive.domain.interfaces import ArchiveClient, OrderStore
from order_archive.domain.orders.authorizer import RetrievalAuthorizer
from order_archive.domain.orders.orchestrator import ArchivalOrchestrator
from order_archive.settings import Settings

logger = logging.getLogger(__name__)


def build_order_store(settings: Settings) -> Optional[OrderStore]:
    """Postgres when configured, in-memory in dev mode, otherwise None (not configured)."""
    if settings.store_configured:
        factory = get_session_factory()
        if factory is not None:
            return PostgresOrderStore(factory)
    if settings.dev_mode:
        logger.warning("DEV_MODE: using in-memory order store")
        return MemoryOrderStore()
    logger.warning("DATABASE_URL not configured. Orders will not be persisted.")
    return None


def get_archive_client(request: Request) -> ArchiveClient:
    return request.app.state.archive_client


def get_order_store(request: Request) -> Optional[OrderStore]:
    return request.app.state.order_store


def get_orchestrator(request: Request) -> ArchivalOrchestrator:
    return request.app.state.orchestrator


def get_authorizer(request: Request) -> RetrievalAuthorizer:
    return request.app.state.authorizer
