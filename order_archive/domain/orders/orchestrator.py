"""Archival Orchestrator.

Turns an accepted order into an encrypted, content-addressed archive without
blocking order confirmation on storage network latency.

Per order: created -> encrypting -> uploading -> archived(cid) | failed.
Archival and persistence are best-effort side channels around the one fact
that matters to the buyer: the order was accepted.
"""
import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Set

from opentelemetry import trace

from order_archive.domain.crypto import cipher
from order_archive.domain.crypto.kdf import DEFAULT_ITERATIONS, derive_key, generate_salt
from order_archive.domain.crypto.models import EncryptedEnvelope
from order_archive.domain.errors import (
    ArchiveError,
    ConfigurationError,
    MissingKeyMaterialError,
    OrderConflictError,
    OrderStoreError,
)
from order_archive.domain.interfaces import (
    ArchivalStatus,
    ArchiveClient,
    ArchiveRecord,
    OrderRecord,
    OrderStore,
)
from order_archive.domain.orders.models import CheckoutResult, OrderSubmission
from order_archive.domain.wallet.signer import (
    WalletSignature,
    WalletSigner,
    create_order_signature,
    order_summary_message,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MODE_SYNC = "sync"
MODE_DEFERRED = "deferred"
ARCHIVE_SERVICE = "Filecoin/Lighthouse"


class ArchivalOrchestrator:
    def __init__(
        self,
        archive_client: ArchiveClient,
        order_store: Optional[OrderStore],
        signer: WalletSigner,
        mode: str = MODE_DEFERRED,
        kdf_iterations: int = DEFAULT_ITERATIONS,
        service_version: str = "1",
    ):
        if mode not in (MODE_SYNC, MODE_DEFERRED):
            raise ValueError(f"Unknown archival mode: {mode}")
        self._archive = archive_client
        self._store = order_store
        self._signer = signer
        self._mode = mode
        self._kdf_iterations = kdf_iterations
        self._service_version = service_version
        self._tasks: Set[asyncio.Task] = set()

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def submit(self, order: OrderSubmission, signer: Optional[WalletSigner] = None) -> CheckoutResult:
        """Accept an order, persist it, and archive it per the deployment mode."""
        record = order.to_record()
        if record.created_at is None:
            record.created_at = datetime.now(timezone.utc)

        if not self._archive.is_configured:
            logger.warning(f"Filecoin not configured, order {record.order_id} saved locally only")
            record.archival_status = ArchivalStatus.DISABLED
            await self._store_call(self._store.create_order if self._store else None, record)
            return CheckoutResult(
                order_id=record.order_id,
                cid=None,
                archival_status=ArchivalStatus.DISABLED,
                message="Order created (Filecoin archival skipped)",
            )

        wallet = await create_order_signature(
            signer or self._signer, order_summary_message(record.order_id, record.total)
        )
        record.wallet_address = wallet.wallet_address
        record.wallet_signature = wallet.signature
        record.encryption_salt = wallet.salt
        record.archival_attempts = 1

        envelope = await asyncio.to_thread(self._seal, record, wallet)

        if self._mode == MODE_SYNC:
            return await self._submit_sync(record, envelope)

        # Row goes in first so pollers see cid=null, then the upload detaches.
        record.archival_status = ArchivalStatus.PENDING
        await self._store_call(self._store.create_order if self._store else None, record)
        self._spawn(
            record.order_id,
            self._archive_in_background(record.order_id, record.encryption_salt, envelope),
        )
        return CheckoutResult(
            order_id=record.order_id,
            cid=None,
            archival_status=ArchivalStatus.PENDING,
            message="Archival queued. Check order detail later for CID.",
        )

    async def _submit_sync(self, record: OrderRecord, envelope: bytes) -> CheckoutResult:
        # Row goes in first so a duplicate id is rejected before anything is uploaded.
        record.archival_status = ArchivalStatus.PENDING
        await self._store_call(self._store.create_order if self._store else None, record)

        try:
            archive = await self._upload(record.order_id, envelope)
        except ArchiveError as e:
            logger.error(f"Filecoin archival failed, but order creation continues: {e}")
            await self._store_call(
                self._store.mark_archival_failed if self._store else None, record.order_id, str(e)
            )
            return CheckoutResult(
                order_id=record.order_id,
                cid=None,
                archival_status=ArchivalStatus.FAILED,
                message="Order created (Filecoin archival failed)",
            )

        await self._backfill(record.order_id, archive.cid, record.encryption_salt)
        return CheckoutResult(
            order_id=record.order_id,
            cid=archive.cid,
            archival_status=ArchivalStatus.ARCHIVED,
            message="Order created and archived to Filecoin",
        )

    async def rearchive(self, record: OrderRecord) -> ArchiveRecord:
        """Re-run archival for a stuck order using its persisted wallet material.

        A fresh salt is generated; it is written together with the CID so the
        row never points at an envelope it cannot decrypt.
        """
        if not record.wallet_address or not record.wallet_signature:
            raise MissingKeyMaterialError(f"Order {record.order_id} has no wallet material to re-archive")
        if record.cid:
            raise ValueError(f"Order {record.order_id} is already archived")
        if not self._archive.is_configured:
            raise ConfigurationError("Filecoin archival not configured", code="ARCHIVE_NOT_CONFIGURED")

        await self._store_call(self._store.mark_archival_pending if self._store else None, record.order_id)
        wallet = WalletSignature(
            wallet_address=record.wallet_address,
            signature=record.wallet_signature,
            salt=generate_salt(),
        )
        sealing = replace(record, encryption_salt=wallet.salt)
        envelope = await asyncio.to_thread(self._seal, sealing, wallet)
        try:
            archive = await self._upload(record.order_id, envelope)
        except ArchiveError as e:
            await self._store_call(
                self._store.mark_archival_failed if self._store else None, record.order_id, str(e)
            )
            raise

        await self._backfill(record.order_id, archive.cid, record.encryption_salt, salt=wallet.salt)
        return archive

    def schedule_rearchive(self, record: OrderRecord) -> None:
        """Detached :meth:`rearchive`, tracked like a deferred upload."""
        self._spawn(record.order_id, self._rearchive_in_background(record))

    async def _rearchive_in_background(self, record: OrderRecord) -> None:
        try:
            archive = await self.rearchive(record)
        except ArchiveError as e:
            logger.error(f"Re-archive failed for {record.order_id}: {e}")
            return
        except Exception as e:
            logger.error(f"Unexpected error re-archiving {record.order_id}: {e}", exc_info=True)
            return
        logger.info(f"Re-archive complete | Order: {record.order_id} | CID: {archive.cid[:8]}...")

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for detached uploads, cancelling any still running after ``timeout``."""
        if not self._tasks:
            return
        logger.info(f"Waiting for {len(self._tasks)} background archival task(s)")
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            logger.warning(f"Cancelling unfinished archival task {task.get_name()}")
            task.cancel()

    def _seal(self, record: OrderRecord, wallet: WalletSignature) -> bytes:
        """Derive the key, encrypt the order plus archival metadata, wrap in an envelope."""
        with tracer.start_as_current_span("archive.encrypt") as span:
            span.set_attribute("order.id", record.order_id)
            key = derive_key(wallet.wallet_address, wallet.signature, wallet.salt, self._kdf_iterations)
            payload = record.order_payload()
            payload["_archived"] = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "service": ARCHIVE_SERVICE,
                "network": self._archive.network,
                "version": self._service_version,
                "encrypted": True,
            }
            result = cipher.encrypt(payload, key)
            return EncryptedEnvelope.from_encryption(result).to_bytes()

    async def _upload(self, order_id: str, envelope: bytes) -> ArchiveRecord:
        with tracer.start_as_current_span("archive.upload") as span:
            span.set_attribute("order.id", order_id)
            span.set_attribute("archive.size_bytes", len(envelope))
            span.set_attribute("archive.network", self._archive.network)
            logger.info(f"Uploading encrypted order {order_id} to Filecoin ({len(envelope)} bytes)")
            archive = await self._archive.upload(envelope)
            span.set_attribute("archive.cid", archive.cid)
            return archive

    async def _archive_in_background(self, order_id: str, sealed_salt: Optional[str], envelope: bytes) -> None:
        try:
            archive = await self._upload(order_id, envelope)
        except ArchiveError as e:
            # No automatic retry; reconciliation or an operator re-triggers.
            logger.error(f"Background archive failed for {order_id}: {e}")
            await self._store_call(self._store.mark_archival_failed if self._store else None, order_id, str(e))
            return
        except Exception as e:
            logger.error(f"Unexpected error archiving {order_id}: {e}", exc_info=True)
            await self._store_call(self._store.mark_archival_failed if self._store else None, order_id, str(e))
            return

        if await self._backfill(order_id, archive.cid, sealed_salt):
            logger.info(f"Background archive complete | Order: {order_id} | CID: {archive.cid[:8]}...")

    async def _backfill(
        self,
        order_id: str,
        cid: str,
        sealed_salt: Optional[str],
        salt: Optional[str] = None,
    ) -> bool:
        """Attach ``cid`` to the row only if it still holds the salt the envelope was sealed with."""
        if self._store is None:
            return False
        backfilled = await self._store_call(self._store.set_cid_if_null, order_id, cid, salt, sealed_salt)
        if not backfilled:
            # Full CID so the row can be repaired by hand.
            logger.warning(f"Archived {order_id} as {cid} but the order row was not updated")
        return bool(backfilled)

    def _spawn(self, order_id: str, coro) -> None:
        task = asyncio.create_task(coro, name=f"archive:{order_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _store_call(self, fn: Optional[Callable[..., Any]], *args) -> Any:
        """Run a blocking store call off the event loop.

        Store outages never reach the buyer. A duplicate order id does.
        """
        if fn is None:
            logger.warning("Order store not configured, skipping database write")
            return None
        try:
            return await asyncio.to_thread(fn, *args)
        except OrderConflictError:
            raise
        except OrderStoreError as e:
            logger.error(f"Database write failed: {e}")
            return None
