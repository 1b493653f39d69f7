import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from order_archive.api.orders.models import (
    ArchiveResponse,
    CheckoutRequest,
    CheckoutResponse,
    LinksResponse,
    OrderByIdResponse,
    OrderView,
    RearchiveRequest,
    RearchiveResponse,
    VerifyRequest,
    VerifyResponse,
)
from order_archive.dependencies import (
    get_archive_client,
    get_authorizer,
    get_orchestrator,
    get_order_store,
)
from order_archive.domain.errors import ArchiveError, OrderConflictError, OrderStoreError
from order_archive.domain.interfaces import ArchiveClient, OrderStore
from order_archive.domain.orders.authorizer import RetrievalAuthorizer
from order_archive.domain.orders.orchestrator import ArchivalOrchestrator
from order_archive.domain.wallet.signer import ProvidedSignature
from order_archive.errors import raise_archive_error, raise_verification_error, status_for

router = APIRouter()
logger = logging.getLogger(__name__)


def _require_store(store: Optional[OrderStore]) -> OrderStore:
    if store is None:
        raise_archive_error("STORE_NOT_CONFIGURED", 503, "Database not configured")
    return store


@router.post("/checkout", status_code=201, response_model=CheckoutResponse)
async def checkout(
    body: CheckoutRequest,
    orchestrator: ArchivalOrchestrator = Depends(get_orchestrator),
):
    """Accept an order. Archival runs per the configured mode and never fails the order.

    A reused order id is rejected with 409 before anything is uploaded.
    """
    signer = None
    if body.wallet_address or body.wallet_signature:
        if not (body.wallet_address and body.wallet_signature):
            raise_archive_error(
                "MISSING_KEY_MATERIAL", 400, "walletAddress and walletSignature must be sent together"
            )
        try:
            signer = ProvidedSignature(body.wallet_address, body.wallet_signature)
        except ArchiveError as e:
            raise_archive_error(e.code, status_for(e), e.message)

    try:
        result = await orchestrator.submit(body, signer=signer)
    except OrderConflictError as e:
        raise_archive_error(e.code, 409, f"Order {body.order_id} already exists")
    return CheckoutResponse(
        order_id=result.order_id,
        cid=result.cid,
        status=result.status,
        archival_status=result.archival_status.value,
        message=result.message,
    )


@router.get("/orders/by-id", response_model=OrderByIdResponse)
async def get_order_by_id(
    order_id: Optional[str] = Query(default=None, alias="orderId"),
    store: Optional[OrderStore] = Depends(get_order_store),
):
    """Polling endpoint: ``cid`` stays null until archival lands."""
    if not order_id:
        raise_archive_error("MISSING_PARAMETER", 400, "Missing orderId parameter")
    store = _require_store(store)

    try:
        record = await asyncio.to_thread(store.get_by_order_id, order_id)
    except OrderStoreError as e:
        logger.error(f"Order lookup failed: {e}")
        raise_archive_error(e.code, 503, "Order store unavailable")

    if record is None:
        raise_archive_error("ORDER_NOT_FOUND", 404, "Order not found")
    return OrderByIdResponse(order=OrderView.from_record(record))


@router.post("/orders/decrypt", response_model=VerifyResponse)
async def decrypt_order(
    body: VerifyRequest,
    authorizer: RetrievalAuthorizer = Depends(get_authorizer),
):
    if not body.cid:
        raise_archive_error("MISSING_PARAMETER", 400, "CID is required")

    try:
        result = await authorizer.verify(
            body.cid,
            claimed_wallet_address=body.wallet_address,
            claimed_signature=body.wallet_signature,
        )
    except ArchiveError as e:
        logger.warning(f"Verification failed for CID {body.cid[:8]}...: {e.code}")
        raise_verification_error(e)

    return VerifyResponse(cid=result.cid, order=result.order, decrypted_at=result.decrypted_at)


@router.get("/orders/archive", response_model=ArchiveResponse)
async def get_archived_order(
    cid: Optional[str] = Query(default=None),
    authorizer: RetrievalAuthorizer = Depends(get_authorizer),
):
    """Archived content as stored on the network (an encrypted envelope for new orders)."""
    if not cid:
        raise_archive_error("MISSING_PARAMETER", 400, "Missing CID parameter")

    try:
        data = await authorizer.retrieve_raw(cid)
    except ArchiveError as e:
        raise_archive_error(e.code, status_for(e), e.message)

    return ArchiveResponse(cid=cid, order=data, retrieved_at=datetime.now(timezone.utc))


@router.post("/orders/archive", status_code=202, response_model=RearchiveResponse)
async def rearchive_order(
    body: RearchiveRequest,
    store: Optional[OrderStore] = Depends(get_order_store),
    archive_client: ArchiveClient = Depends(get_archive_client),
    orchestrator: ArchivalOrchestrator = Depends(get_orchestrator),
):
    """Re-trigger archival for an order stuck with ``cid=null``."""
    if not body.order_id:
        raise_archive_error("MISSING_PARAMETER", 400, "Missing orderId in request body")
    store = _require_store(store)
    if not archive_client.is_configured:
        raise_archive_error("ARCHIVE_NOT_CONFIGURED", 503, "Filecoin archival is not configured")

    try:
        record = await asyncio.to_thread(store.get_by_order_id, body.order_id)
    except OrderStoreError as e:
        logger.error(f"Order lookup failed: {e}")
        raise_archive_error(e.code, 503, "Order store unavailable")

    if record is None:
        raise_archive_error("ORDER_NOT_FOUND", 404, "Order not found")
    if record.cid:
        return RearchiveResponse(
            order_id=record.order_id, cid=record.cid, status="ready", message="Order already archived"
        )
    if not record.wallet_address or not record.wallet_signature:
        raise_archive_error("MISSING_KEY_MATERIAL", 400, "Order has no wallet material to re-archive")

    orchestrator.schedule_rearchive(record)
    return RearchiveResponse(
        order_id=record.order_id,
        status="pending",
        message="Archival queued. Check order detail later for CID.",
    )


@router.get("/orders/links/{cid}", response_model=LinksResponse)
async def get_links(cid: str, archive_client: ArchiveClient = Depends(get_archive_client)):
    return LinksResponse(
        cid=cid,
        gateway_url=archive_client.gateway_url(cid),
        redundant_urls=archive_client.redundant_urls(cid),
        explorer_url=archive_client.explorer_url(cid),
    )
