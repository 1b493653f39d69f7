import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text

from order_archive.adapters.postgres.session import get_engine
from order_archive.dependencies import get_archive_client, get_order_store
from order_archive.domain.interfaces import ArchiveClient, OrderStore
from order_archive.settings import settings

router = APIRouter()
logger = logging.getLogger(__name__)


def _ping_database() -> None:
    engine = get_engine()
    if engine is None:
        raise RuntimeError("engine unavailable")
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


@router.get("/health/live")
async def liveness():
    """Liveness probe: Service is running."""
    return {"status": "ok", "checks": {"api": "ok"}}


@router.get("/health/ready")
async def readiness(
    store: Optional[OrderStore] = Depends(get_order_store),
    archive_client: ArchiveClient = Depends(get_archive_client),
):
    """Readiness probe.

    Missing configuration degrades features and is reported, not failed. Only
    a configured but unreachable database makes the service unready.
    """
    health = {"status": "ok", "checks": {}}

    # 1. Order store
    if settings.store_configured:
        try:
            await asyncio.to_thread(_ping_database)
            health["checks"]["postgres"] = "ok"
        except Exception as e:
            logger.error(f"Health check failed (postgres): {e}")
            health["checks"]["postgres"] = "failed"
            health["status"] = "failed"
    elif store is not None:
        health["checks"]["order_store"] = "memory"
    else:
        health["checks"]["order_store"] = "not_configured"

    # 2. Archive
    health["checks"]["archive"] = "ok" if archive_client.is_configured else "not_configured"
    health["checks"]["network"] = archive_client.network

    if health["status"] == "failed":
        raise HTTPException(status_code=503, detail=health)

    return health
