"""SQLAlchemy Models for the order archival store."""
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class Order(Base):
    """Order row. Only the archival fields are owned by this service."""
    __tablename__ = "orders"
    order_id = Column(String(255), primary_key=True)
    user_id = Column(String(255), nullable=True, index=True)
    items = Column(JSON, default=list)
    subtotal = Column(Numeric(12, 2), default=0, nullable=False)
    subsidy = Column(Numeric(12, 2), default=0, nullable=False)
    shipping = Column(Numeric(12, 2), default=0, nullable=False)
    total = Column(Numeric(12, 2), default=0, nullable=False)
    shipping_address = Column(JSON, nullable=True)
    payment_method = Column(String(64), nullable=True)
    # Lifecycle status (shipped/delivered) is owned by another service.
    status = Column(String(20), default="pending", nullable=False)

    # Archival
    cid = Column(String(255), nullable=True, unique=True)
    wallet_address = Column(String(128), nullable=True)
    wallet_signature = Column(Text, nullable=True)
    encryption_salt = Column(String(64), nullable=True)
    archival_status = Column(String(20), default="pending", nullable=False)
    archival_attempts = Column(Integer, default=0, nullable=False)
    archival_error = Column(Text, nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_orders_unarchived", "archival_status", "created_at"),
    )
