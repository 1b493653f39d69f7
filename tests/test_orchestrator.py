"""Tests for the archival orchestrator across sync, deferred and disabled modes."""
import asyncio
import json
import logging
import re
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from order_archive.adapters.archive.lighthouse import LighthouseArchiveClient
from order_archive.adapters.archive.memory import MemoryArchiveClient
from order_archive.adapters.memory_store.stores import MemoryOrderStore
from order_archive.domain.crypto import cipher
from order_archive.domain.crypto.kdf import derive_key
from order_archive.domain.errors import MissingKeyMaterialError, OrderConflictError, OrderStoreError
from order_archive.domain.interfaces import ArchivalStatus, OrderRecord
from order_archive.domain.orders.models import OrderSubmission
from order_archive.domain.orders.orchestrator import ArchivalOrchestrator
from order_archive.domain.wallet.signer import DeterministicTestSigner


class GatedArchive(MemoryArchiveClient):
    """Memory archive whose uploads wait until released."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def upload(self, data):
        await self.release.wait()
        return await super().upload(data)


def _order(order_id="ORD-1", total=42.5) -> OrderSubmission:
    return OrderSubmission(orderId=order_id, userId="user-1", items=[{"sku": "A"}], total=total)


def _failing_lighthouse() -> LighthouseArchiveClient:
    def handler(request):
        raise httpx.ConnectError("network down", request=request)

    return LighthouseArchiveClient(
        api_key="key",
        max_attempts=3,
        backoff_seconds=0,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_sync_mode_returns_cid_and_persists_it():
    archive, store = MemoryArchiveClient(), MemoryOrderStore()
    orch = ArchivalOrchestrator(archive, store, DeterministicTestSigner(), mode="sync")

    result = await orch.submit(_order())

    assert result.cid is not None
    assert result.status == "ready"
    assert result.archival_status == ArchivalStatus.ARCHIVED
    rec = store.get_by_order_id("ORD-1")
    assert rec.cid == result.cid
    assert rec.encryption_salt
    assert rec.wallet_signature


@pytest.mark.asyncio
async def test_archived_envelope_decrypts_with_persisted_material():
    archive, store = MemoryArchiveClient(), MemoryOrderStore()
    orch = ArchivalOrchestrator(archive, store, DeterministicTestSigner(), mode="sync")
    result = await orch.submit(_order())

    rec = store.get_by_order_id("ORD-1")
    envelope = json.loads(await archive.download(result.cid))
    key = derive_key(rec.wallet_address, rec.wallet_signature, rec.encryption_salt)
    order = cipher.decrypt(envelope["ciphertext"], envelope["nonce"], key)

    assert order["id"] == "ORD-1"
    assert order["total"] == 42.5
    assert order["_archived"]["encrypted"] is True
    assert order["_archived"]["network"] == "testnet"
    assert order["_archived"]["version"] == "1"


@pytest.mark.asyncio
async def test_sync_upload_failure_still_accepts_order():
    store = MemoryOrderStore()
    orch = ArchivalOrchestrator(_failing_lighthouse(), store, DeterministicTestSigner(), mode="sync")

    result = await orch.submit(_order())

    assert result.cid is None
    assert result.status == "pending"
    assert result.archival_status == ArchivalStatus.FAILED
    rec = store.get_by_order_id("ORD-1")
    assert rec.cid is None
    assert rec.archival_status == ArchivalStatus.FAILED
    assert "3 attempts" in rec.archival_error


@pytest.mark.asyncio
async def test_deferred_upload_failure_leaves_cid_null():
    store = MemoryOrderStore()
    orch = ArchivalOrchestrator(_failing_lighthouse(), store, DeterministicTestSigner(), mode="deferred")

    result = await orch.submit(_order())
    assert result.cid is None
    await orch.drain()

    rec = store.get_by_order_id("ORD-1")
    assert rec.cid is None
    assert rec.archival_status == ArchivalStatus.FAILED
    assert orch.pending_tasks == 0


@pytest.mark.asyncio
async def test_deferred_poll_sees_null_then_cid():
    archive, store = GatedArchive(), MemoryOrderStore()
    orch = ArchivalOrchestrator(archive, store, DeterministicTestSigner(), mode="deferred")

    result = await orch.submit(_order())
    assert result.status == "pending"
    assert result.message == "Archival queued. Check order detail later for CID."

    # Row exists before the upload settles
    assert store.get_by_order_id("ORD-1").cid is None
    assert orch.pending_tasks == 1

    archive.release.set()
    await orch.drain()

    rec = store.get_by_order_id("ORD-1")
    assert rec.cid is not None
    assert rec.cid.startswith("bafkrei")
    assert rec.archival_status == ArchivalStatus.ARCHIVED


@pytest.mark.asyncio
async def test_archive_not_configured_degrades_to_local_only():
    archive = MagicMock()
    archive.is_configured = False
    archive.upload = AsyncMock()
    store = MemoryOrderStore()
    orch = ArchivalOrchestrator(archive, store, DeterministicTestSigner())

    result = await orch.submit(_order())

    assert result.archival_status == ArchivalStatus.DISABLED
    assert result.message == "Order created (Filecoin archival skipped)"
    archive.upload.assert_not_called()
    assert store.get_by_order_id("ORD-1").archival_status == ArchivalStatus.DISABLED


@pytest.mark.asyncio
async def test_database_failure_does_not_fail_order():
    store = MagicMock()
    store.create_order.side_effect = OrderStoreError("db down")
    orch = ArchivalOrchestrator(MemoryArchiveClient(), store, DeterministicTestSigner(), mode="sync")

    result = await orch.submit(_order())
    assert result.cid is not None


@pytest.mark.asyncio
async def test_no_store_configured_still_archives():
    orch = ArchivalOrchestrator(MemoryArchiveClient(), None, DeterministicTestSigner(), mode="sync")
    result = await orch.submit(_order())
    assert result.cid is not None


@pytest.mark.asyncio
async def test_rearchive_uses_fresh_salt():
    store = MemoryOrderStore()
    orch = ArchivalOrchestrator(_failing_lighthouse(), store, DeterministicTestSigner(), mode="sync")
    await orch.submit(_order())
    stuck = store.get_by_order_id("ORD-1")

    archive = MemoryArchiveClient()
    retry = ArchivalOrchestrator(archive, store, DeterministicTestSigner(), mode="sync")
    record = await retry.rearchive(stuck)

    rec = store.get_by_order_id("ORD-1")
    assert rec.cid == record.cid
    assert rec.encryption_salt != stuck.encryption_salt
    assert rec.archival_attempts == 2

    envelope = json.loads(await archive.download(rec.cid))
    key = derive_key(rec.wallet_address, rec.wallet_signature, rec.encryption_salt)
    assert cipher.decrypt(envelope["ciphertext"], envelope["nonce"], key)["id"] == "ORD-1"


@pytest.mark.asyncio
async def test_rearchive_requires_wallet_material():
    store = MemoryOrderStore()
    orch = ArchivalOrchestrator(MemoryArchiveClient(), store, DeterministicTestSigner())
    bare = _order().to_record()

    with pytest.raises(MissingKeyMaterialError):
        await orch.rearchive(bare)


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        ArchivalOrchestrator(MemoryArchiveClient(), None, DeterministicTestSigner(), mode="eventually")


def _existing_failed_row(store):
    store.create_order(OrderRecord(
        order_id="ORD-1", total=10.0, wallet_address="0xowner", wallet_signature="0x" + "11" * 32,
        encryption_salt="aa" * 16, archival_status=ArchivalStatus.FAILED, archival_attempts=1,
    ))


@pytest.mark.asyncio
async def test_deferred_resubmission_of_existing_order_is_rejected():
    store = MemoryOrderStore()
    _existing_failed_row(store)
    orch = ArchivalOrchestrator(MemoryArchiveClient(), store, DeterministicTestSigner(), mode="deferred")

    with pytest.raises(OrderConflictError):
        await orch.submit(_order(total=999.0), signer=DeterministicTestSigner("0xother"))
    assert orch.pending_tasks == 0
    await orch.drain()

    rec = store.get_by_order_id("ORD-1")
    assert rec.cid is None
    assert rec.encryption_salt == "aa" * 16
    assert rec.wallet_address == "0xowner"


@pytest.mark.asyncio
async def test_sync_resubmission_is_rejected_before_upload():
    archive = MagicMock()
    archive.is_configured = True
    archive.network = "testnet"
    archive.upload = AsyncMock()
    store = MemoryOrderStore()
    _existing_failed_row(store)
    orch = ArchivalOrchestrator(archive, store, DeterministicTestSigner(), mode="sync")

    with pytest.raises(OrderConflictError):
        await orch.submit(_order(total=999.0))

    archive.upload.assert_not_called()
    assert store.get_by_order_id("ORD-1").cid is None


@pytest.mark.asyncio
async def test_backfill_skips_row_sealed_with_other_salt(caplog):
    store = MemoryOrderStore()
    _existing_failed_row(store)
    # Insert outage: the duplicate goes unnoticed and the upload still runs
    store.create_order = MagicMock(side_effect=OrderStoreError("db down"))
    orch = ArchivalOrchestrator(MemoryArchiveClient(), store, DeterministicTestSigner(), mode="deferred")

    with caplog.at_level(logging.WARNING, logger="order_archive.domain.orders.orchestrator"):
        await orch.submit(_order(total=999.0))
        await orch.drain()

    rec = store.get_by_order_id("ORD-1")
    assert rec.cid is None
    assert rec.archival_status == ArchivalStatus.FAILED

    warnings = [r.getMessage() for r in caplog.records if "was not updated" in r.getMessage()]
    assert len(warnings) == 1
    # Full CID, not a prefix
    match = re.search(r"as (bafkrei[a-z2-7]+) ", warnings[0])
    assert match is not None
    assert len(match.group(1)) == 59
