"""Order domain models."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from order_archive.domain.interfaces import ArchivalStatus, OrderRecord


class OrderSubmission(BaseModel):
    """A finalized order as submitted at checkout."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    order_id: str = Field(..., alias="orderId", min_length=1, max_length=255)
    user_id: Optional[str] = Field(default=None, alias="userId")
    items: List[Dict[str, Any]] = Field(default_factory=list)
    subtotal: float = 0.0
    subsidy: float = 0.0
    shipping: float = 0.0
    total: float = 0.0
    shipping_address: Optional[Dict[str, Any]] = Field(default=None, alias="shippingAddress")
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def timestamp_is_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Naive timestamps are taken as UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_record(self) -> OrderRecord:
        return OrderRecord(
            order_id=self.order_id,
            user_id=self.user_id,
            items=self.items,
            subtotal=self.subtotal,
            subsidy=self.subsidy,
            shipping=self.shipping,
            total=self.total,
            shipping_address=self.shipping_address,
            payment_method=self.payment_method,
            created_at=self.timestamp,
        )


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    cid: Optional[str]
    archival_status: ArchivalStatus
    message: str

    @property
    def status(self) -> str:
        """External view: ``ready`` once a CID exists, otherwise ``pending``."""
        return "ready" if self.cid else "pending"


@dataclass(frozen=True)
class VerificationResult:
    cid: str
    order: Dict[str, Any]
    wallet_address: str
    decrypted_at: datetime
