"""Archive Reconciliation Job (Safety Net).

Deferred uploads are never retried automatically. This sweep:
1. Lists orders with ``cid`` still null, archival pending or failed, older
   than the stale threshold.
2. Logs each one so an operator can see what is stuck.
3. Optionally re-triggers archival for rows that hold wallet material.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from order_archive.domain.errors import ArchiveError, OrderStoreError
from order_archive.domain.interfaces import OrderStore
from order_archive.domain.orders.orchestrator import ArchivalOrchestrator

logger = logging.getLogger(__name__)


class ArchiveReconciler:
    def __init__(
        self,
        store: Optional[OrderStore],
        orchestrator: ArchivalOrchestrator,
        stale_after_seconds: int = 900,
        retrigger: bool = False,
        batch_size: int = 50,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.stale_after_seconds = stale_after_seconds
        self.retrigger = retrigger
        self.batch_size = batch_size

    async def run(self) -> Dict[str, int]:
        """Run a single reconciliation pass."""
        summary = {"scanned": 0, "retriggered": 0, "archived": 0, "failed": 0, "skipped": 0}
        if self.store is None:
            logger.warning("Archive reconcile: order store not configured")
            return summary

        cutoff = datetime.now(timezone.utc) - timedelta(seconds=self.stale_after_seconds)
        logger.info(f"Starting archive reconciliation. Cutoff: {cutoff}")

        try:
            stuck = await asyncio.to_thread(self.store.list_unarchived, cutoff, self.batch_size)
        except OrderStoreError as e:
            logger.error(f"Archive reconcile: listing failed: {e}")
            return summary

        for record in stuck:
            summary["scanned"] += 1
            logger.warning(
                f"Order {record.order_id} has no CID "
                f"(status={record.archival_status.value}, attempts={record.archival_attempts})"
            )
            if not self.retrigger:
                continue
            if not record.wallet_address or not record.wallet_signature:
                summary["skipped"] += 1
                continue

            summary["retriggered"] += 1
            try:
                archive = await self.orchestrator.rearchive(record)
                summary["archived"] += 1
                logger.info(f"Reconciled {record.order_id} -> CID {archive.cid[:8]}...")
            except ArchiveError as e:
                summary["failed"] += 1
                logger.error(f"Re-archive failed for {record.order_id}: {e}")

        logger.info(f"Archive reconciliation complete: {summary}")
        return summary


async def archive_reconcile_worker(
    shutdown_event: asyncio.Event,
    reconciler: ArchiveReconciler,
    interval_seconds: int = 300,
):
    """
    Background worker that runs the reconciler on an interval,
    respecting the shutdown event.
    """
    logger.info("Starting Archive Reconcile Worker")

    while not shutdown_event.is_set():
        try:
            await reconciler.run()
        except Exception as e:
            logger.error(f"Error in archive reconcile worker: {e}", exc_info=True)

        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue
