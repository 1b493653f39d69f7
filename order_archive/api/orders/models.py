"""Request and response models for the order archival API."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from order_archive.domain.interfaces import OrderRecord
from order_archive.domain.orders.models import OrderSubmission


class CheckoutRequest(OrderSubmission):
    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    wallet_signature: Optional[str] = Field(default=None, alias="walletSignature")


class CheckoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    order_id: str = Field(..., alias="orderId")
    cid: Optional[str] = None
    status: str
    archival_status: str = Field(..., alias="archivalStatus")
    message: str


class OrderView(BaseModel):
    """What a poller sees: ``cid`` null means not ready yet."""
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., alias="orderId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    cid: Optional[str] = None
    status: str
    archival_status: str = Field(..., alias="archivalStatus")
    archival_attempts: int = Field(0, alias="archivalAttempts")
    encryption_salt: Optional[str] = Field(default=None, alias="encryptionSalt")
    total: float = 0.0
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @classmethod
    def from_record(cls, record: OrderRecord) -> "OrderView":
        return cls(
            order_id=record.order_id,
            user_id=record.user_id,
            cid=record.cid,
            status="ready" if record.cid else "pending",
            archival_status=record.archival_status.value,
            archival_attempts=record.archival_attempts,
            encryption_salt=record.encryption_salt,
            total=record.total,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class OrderByIdResponse(BaseModel):
    success: bool = True
    order: OrderView


class VerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    cid: Optional[str] = None
    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    wallet_signature: Optional[str] = Field(default=None, alias="walletSignature")


class VerifyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    cid: str
    order: Dict[str, Any]
    decrypted_at: datetime = Field(..., alias="decryptedAt")


class ArchiveResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    cid: str
    order: Dict[str, Any]
    retrieved_at: datetime = Field(..., alias="retrievedAt")


class RearchiveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    order_id: Optional[str] = Field(default=None, alias="orderId")


class RearchiveResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    order_id: str = Field(..., alias="orderId")
    cid: Optional[str] = None
    status: str
    message: str


class LinksResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cid: str
    gateway_url: str = Field(..., alias="gatewayUrl")
    redundant_urls: List[str] = Field(..., alias="redundantUrls")
    explorer_url: str = Field(..., alias="explorerUrl")
