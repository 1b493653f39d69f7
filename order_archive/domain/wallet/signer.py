"""Wallet signing port and implementations."""
import hashlib
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

from order_archive.domain.crypto.kdf import generate_salt
from order_archive.domain.errors import InvalidSignatureError

_SIGNATURE_RE = re.compile(r"^0x(?:[0-9a-fA-F]{2}){32,}$")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class WalletSignature:
    """Key material for one order. Created at checkout, immutable afterward."""
    wallet_address: str
    signature: str
    salt: str
    timestamp: str = field(default_factory=_utc_now_iso)


class WalletSigner(ABC):
    """Signs human-readable order summaries on behalf of a wallet."""

    @property
    @abstractmethod
    def address(self) -> str:
        ...

    @abstractmethod
    async def sign(self, message: str) -> str:
        ...


class DeterministicTestSigner(WalletSigner):
    """TEST DOUBLE. Not a wallet.

    Produces ``0x`` + sha256(address|message). Anyone who knows the address and
    the message can reproduce the signature, so it must never back real orders.
    """

    def __init__(self, address: str = "0x1234567890abcdef1234567890abcdef12345678"):
        self._address = address

    @property
    def address(self) -> str:
        return self._address

    async def sign(self, message: str) -> str:
        digest = hashlib.sha256(f"{self._address}|{message}".encode("utf-8")).hexdigest()
        return f"0x{digest}"


class ProvidedSignature(WalletSigner):
    """Signature already produced by the buyer's wallet (client side)."""

    def __init__(self, address: str, signature: str):
        validate_signature(signature)
        self._address = address
        self._signature = signature

    @property
    def address(self) -> str:
        return self._address

    async def sign(self, message: str) -> str:
        return self._signature


def validate_signature(signature: str) -> None:
    if not signature or not _SIGNATURE_RE.match(signature):
        raise InvalidSignatureError("Signature must be 0x-prefixed hex of at least 32 bytes")


def order_summary_message(order_id: str, total: float) -> str:
    return f"Order {order_id} - ${total:.2f}"


async def create_order_signature(signer: WalletSigner, message: str) -> WalletSignature:
    """Sign the order summary and attach a fresh salt."""
    signature = await signer.sign(message)
    return WalletSignature(
        wallet_address=signer.address,
        signature=signature,
        salt=generate_salt(),
    )
