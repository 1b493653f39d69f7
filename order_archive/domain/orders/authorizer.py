"""Retrieval & Decryption Authorizer.

Possession of the wallet signature is the only credential: there is no master
key and no access-control list. Given a CID and a claimed wallet identity this
re-derives the per-order key and opens the archived envelope, or refuses.
"""
import asyncio
import base64
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from order_archive.domain.crypto import cipher
from order_archive.domain.crypto.kdf import DEFAULT_ITERATIONS, derive_key
from order_archive.domain.crypto.models import EncryptedEnvelope
from order_archive.domain.errors import (
    ArchiveNetworkError,
    ArchiveNotFoundError,
    AuthenticationFailure,
    ConfigurationError,
    MissingKeyMaterialError,
    RetrievalError,
    WalletAuthorizationError,
)
from order_archive.domain.interfaces import ArchiveClient, OrderStore
from order_archive.domain.orders.models import VerificationResult

logger = logging.getLogger(__name__)


class RetrievalAuthorizer:
    def __init__(
        self,
        archive_client: ArchiveClient,
        order_store: Optional[OrderStore],
        kdf_iterations: int = DEFAULT_ITERATIONS,
    ):
        self._archive = archive_client
        self._store = order_store
        self._kdf_iterations = kdf_iterations

    async def verify(
        self,
        cid: str,
        claimed_wallet_address: Optional[str] = None,
        claimed_signature: Optional[str] = None,
    ) -> VerificationResult:
        """Download, re-derive and decrypt the order archived under ``cid``.

        Falls back to the persisted wallet address and signature when the
        caller does not claim them. Raises before decryption is attempted
        whenever any piece of key material is missing.
        """
        raw = await self._download(cid)
        envelope = EncryptedEnvelope.from_bytes(raw)

        if self._store is None:
            raise ConfigurationError("Order store not configured", code="STORE_NOT_CONFIGURED")
        record = await asyncio.to_thread(self._store.get_by_cid, cid)
        if record is None:
            raise MissingKeyMaterialError("No order record holds this CID")
        if not record.encryption_salt:
            raise MissingKeyMaterialError("Encryption salt not found for this order")

        wallet_address = claimed_wallet_address or record.wallet_address
        signature = claimed_signature or record.wallet_signature
        if not wallet_address:
            raise MissingKeyMaterialError("Wallet address required for decryption")
        if not signature:
            raise MissingKeyMaterialError("Wallet signature not found for this order")

        key = await asyncio.to_thread(
            derive_key, wallet_address, signature, record.encryption_salt, self._kdf_iterations
        )
        try:
            order = cipher.decrypt(envelope.ciphertext, envelope.nonce, key)
        except AuthenticationFailure as e:
            logger.warning(f"Decryption rejected for CID {cid[:8]}...: wallet does not match")
            raise WalletAuthorizationError(
                "Decryption failed - wallet does not own this order"
            ) from e

        logger.info(f"Order decrypted successfully (CID: {cid[:8]}...)")
        return VerificationResult(
            cid=cid,
            order=order,
            wallet_address=wallet_address,
            decrypted_at=datetime.now(timezone.utc),
        )

    async def retrieve_raw(self, cid: str) -> Dict[str, Any]:
        """Archived content as stored: the JSON object, or base64 for anything else."""
        raw = await self._download(cid)
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            data = None
        if isinstance(data, dict):
            return data
        return {"rawData": base64.b64encode(raw).decode("ascii"), "type": "binary"}

    async def _download(self, cid: str) -> bytes:
        if not cid:
            raise RetrievalError("CID is required", not_found=True)
        try:
            return await self._archive.download(cid)
        except ArchiveNotFoundError as e:
            raise RetrievalError(f"Order not found on Filecoin: {e}", not_found=True) from e
        except ArchiveNetworkError as e:
            raise RetrievalError(f"Failed to retrieve order from Filecoin: {e}") from e
