"""Domain interfaces for the archive client and the order store."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

Network = Literal["testnet", "mainnet"]


class ArchivalStatus(str, Enum):
    PENDING = "pending"
    ARCHIVED = "archived"
    FAILED = "failed"
    DISABLED = "disabled"


@dataclass(frozen=True)
class ArchiveRecord:
    """Result of a successful upload. The CID is the sole retrieval handle."""
    cid: str
    uploaded_at: datetime
    size_bytes: int
    network: Network


@dataclass
class OrderRecord:
    order_id: str
    user_id: Optional[str] = None
    items: List[Dict[str, Any]] = field(default_factory=list)
    subtotal: float = 0.0
    subsidy: float = 0.0
    shipping: float = 0.0
    total: float = 0.0
    shipping_address: Optional[Dict[str, Any]] = None
    payment_method: Optional[str] = None
    cid: Optional[str] = None
    wallet_address: Optional[str] = None
    wallet_signature: Optional[str] = None
    encryption_salt: Optional[str] = None
    status: str = "pending"
    archival_status: ArchivalStatus = ArchivalStatus.PENDING
    archival_attempts: int = 0
    archival_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    def order_payload(self) -> Dict[str, Any]:
        """The order fields that get encrypted and archived."""
        return {
            "id": self.order_id,
            "orderId": self.order_id,
            "userId": self.user_id,
            "items": self.items,
            "subtotal": self.subtotal,
            "subsidy": self.subsidy,
            "shipping": self.shipping,
            "total": self.total,
            "shippingAddress": self.shipping_address,
            "paymentMethod": self.payment_method,
            "timestamp": self.created_at.isoformat() if self.created_at else None,
        }


class ArchiveClient(ABC):
    """Content-addressed storage network client."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True when uploads are possible (credentials present)."""
        ...

    @property
    @abstractmethod
    def network(self) -> Network: ...

    @abstractmethod
    async def upload(self, data: bytes) -> ArchiveRecord: ...

    @abstractmethod
    async def download(self, cid: str) -> bytes: ...

    @abstractmethod
    def gateway_url(self, cid: str) -> str: ...

    @abstractmethod
    def redundant_urls(self, cid: str) -> List[str]: ...

    def explorer_url(self, cid: str) -> str:
        if self.network == "testnet":
            return f"https://calibration.filfox.info/en/cid/{cid}"
        return f"https://filfox.info/en/cid/{cid}"

    async def aclose(self) -> None:
        return None


class OrderStore(ABC):
    """Persistence for the archival-relevant fields of an order row."""

    @abstractmethod
    def create_order(self, record: OrderRecord) -> None:
        """Insert a new row. Raises OrderConflictError if the id is taken."""
        pass
    @abstractmethod
    def get_by_order_id(self, order_id: str) -> Optional[OrderRecord]: pass
    @abstractmethod
    def get_by_cid(self, cid: str) -> Optional[OrderRecord]: pass
    @abstractmethod
    def set_cid_if_null(
        self,
        order_id: str,
        cid: str,
        salt: Optional[str] = None,
        expected_salt: Optional[str] = None,
    ) -> bool:
        """Write the CID only while it is still null. Safe to apply twice.

        With ``expected_salt`` the write only lands on a row holding that salt,
        so an envelope never attaches to a row whose key material cannot open it.
        ``salt`` replaces the stored salt together with the CID.
        """
        pass
    @abstractmethod
    def mark_archival_pending(self, order_id: str) -> None: pass
    @abstractmethod
    def mark_archival_failed(self, order_id: str, error: str) -> None: pass
    @abstractmethod
    def list_unarchived(self, older_than: datetime, limit: int = 50) -> List[OrderRecord]: pass
