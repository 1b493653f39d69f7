"""Client-side polling for a deferred CID backfill."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


async def poll_for_cid(
    fetch: Callable[[], Awaitable[Optional[Dict[str, Any]]]],
    max_attempts: int = 24,
    interval: float = 5.0,
    backoff: float = 1.5,
    max_interval: float = 30.0,
) -> Optional[Dict[str, Any]]:
    """Call ``fetch`` until the order view carries a CID.

    Stops early when archival is reported as failed, and after
    ``max_attempts`` regardless. A null CID is "not ready", never an error.
    Returns the last view fetched.
    """
    view: Optional[Dict[str, Any]] = None
    delay = interval
    for attempt in range(1, max_attempts + 1):
        view = await fetch()
        if view and view.get("cid"):
            logger.info(f"CID available after {attempt} poll(s): {view['cid'][:8]}...")
            return view
        if view and view.get("archivalStatus") == "failed":
            logger.warning(f"Archival reported failed after {attempt} poll(s)")
            return view
        if attempt < max_attempts:
            await asyncio.sleep(delay)
            delay = min(delay * backoff, max_interval)

    logger.warning(f"CID still pending after {max_attempts} poll(s)")
    return view
