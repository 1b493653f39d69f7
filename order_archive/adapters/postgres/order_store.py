"""PostgresOrderStore - SQLAlchemy-backed order archival state."""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from order_archive.adapters.postgres.models import Order
from order_archive.domain.errors import OrderConflictError, OrderStoreError
from order_archive.domain.interfaces import ArchivalStatus, OrderRecord, OrderStore

logger = logging.getLogger(__name__)


def _to_float(value) -> float:
    if value is None:
        return 0.0
    if isinstance(value, Decimal):
        return float(value)
    return value


def to_record(obj: Order) -> OrderRecord:
    return OrderRecord(
        order_id=obj.order_id,
        user_id=obj.user_id,
        items=obj.items or [],
        subtotal=_to_float(obj.subtotal),
        subsidy=_to_float(obj.subsidy),
        shipping=_to_float(obj.shipping),
        total=_to_float(obj.total),
        shipping_address=obj.shipping_address,
        payment_method=obj.payment_method,
        cid=obj.cid,
        wallet_address=obj.wallet_address,
        wallet_signature=obj.wallet_signature,
        encryption_salt=obj.encryption_salt,
        status=obj.status,
        archival_status=ArchivalStatus(obj.archival_status),
        archival_attempts=obj.archival_attempts or 0,
        archival_error=obj.archival_error,
        created_at=obj.created_at,
        updated_at=obj.updated_at,
        archived_at=obj.archived_at,
    )


class PostgresOrderStore(OrderStore):
    """Order store over a session factory.

    Each call opens its own short-lived session. Deferred archival tasks
    outlive the request that spawned them, so they can never share a
    request-scoped session.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def create_order(self, record: OrderRecord) -> None:
        now = datetime.now(timezone.utc)
        obj = Order(
            order_id=record.order_id,
            user_id=record.user_id,
            items=record.items,
            subtotal=record.subtotal,
            subsidy=record.subsidy,
            shipping=record.shipping,
            total=record.total,
            shipping_address=record.shipping_address,
            payment_method=record.payment_method,
            status=record.status,
            cid=record.cid,
            wallet_address=record.wallet_address,
            wallet_signature=record.wallet_signature,
            encryption_salt=record.encryption_salt,
            archival_status=record.archival_status.value,
            archival_attempts=record.archival_attempts,
            archival_error=record.archival_error,
            archived_at=record.archived_at,
            created_at=record.created_at or now,
            updated_at=now,
        )
        with self._session_factory() as db:
            try:
                db.add(obj)
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise OrderConflictError(f"Order {record.order_id} already exists") from e
            except SQLAlchemyError as e:
                db.rollback()
                raise OrderStoreError(f"Failed to save order {record.order_id}: {e}") from e
        logger.info(f"Order saved to database: {record.order_id}")

    def get_by_order_id(self, order_id: str) -> Optional[OrderRecord]:
        with self._session_factory() as db:
            try:
                obj = db.query(Order).filter(Order.order_id == order_id).first()
            except SQLAlchemyError as e:
                raise OrderStoreError(f"Failed to get order: {e}") from e
            return to_record(obj) if obj else None

    def get_by_cid(self, cid: str) -> Optional[OrderRecord]:
        with self._session_factory() as db:
            try:
                obj = db.query(Order).filter(Order.cid == cid).first()
            except SQLAlchemyError as e:
                raise OrderStoreError(f"Failed to get order: {e}") from e
            return to_record(obj) if obj else None

    def set_cid_if_null(
        self,
        order_id: str,
        cid: str,
        salt: Optional[str] = None,
        expected_salt: Optional[str] = None,
    ) -> bool:
        now = datetime.now(timezone.utc)
        updates = {
            Order.cid: cid,
            Order.archival_status: ArchivalStatus.ARCHIVED.value,
            Order.archival_error: None,
            Order.archived_at: now,
            Order.updated_at: now,
        }
        if salt:
            updates[Order.encryption_salt] = salt

        filters = [Order.order_id == order_id, Order.cid.is_(None)]
        if expected_salt is not None:
            filters.append(Order.encryption_salt == expected_salt)

        with self._session_factory() as db:
            try:
                updated = (
                    db.query(Order)
                    .filter(*filters)
                    .update(updates, synchronize_session=False)
                )
                db.commit()
                if updated:
                    return True
                # Already backfilled by an earlier write of the same CID.
                existing = db.query(Order.cid).filter(Order.order_id == order_id).scalar()
                return existing == cid
            except SQLAlchemyError as e:
                db.rollback()
                raise OrderStoreError(f"Failed to backfill CID for {order_id}: {e}") from e

    def mark_archival_pending(self, order_id: str) -> None:
        with self._session_factory() as db:
            try:
                db.query(Order).filter(Order.order_id == order_id, Order.cid.is_(None)).update(
                    {
                        Order.archival_status: ArchivalStatus.PENDING.value,
                        Order.archival_attempts: Order.archival_attempts + 1,
                        Order.updated_at: datetime.now(timezone.utc),
                    },
                    synchronize_session=False,
                )
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise OrderStoreError(f"Failed to mark {order_id} pending: {e}") from e

    def mark_archival_failed(self, order_id: str, error: str) -> None:
        with self._session_factory() as db:
            try:
                db.query(Order).filter(Order.order_id == order_id, Order.cid.is_(None)).update(
                    {
                        Order.archival_status: ArchivalStatus.FAILED.value,
                        Order.archival_error: error[:1000],
                        Order.updated_at: datetime.now(timezone.utc),
                    },
                    synchronize_session=False,
                )
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise OrderStoreError(f"Failed to mark {order_id} failed: {e}") from e

    def list_unarchived(self, older_than: datetime, limit: int = 50) -> List[OrderRecord]:
        with self._session_factory() as db:
            try:
                objs = (
                    db.query(Order)
                    .filter(
                        Order.cid.is_(None),
                        Order.archival_status.in_(
                            [ArchivalStatus.PENDING.value, ArchivalStatus.FAILED.value]
                        ),
                        Order.created_at < older_than,
                    )
                    .order_by(Order.created_at)
                    .limit(limit)
                    .all()
                )
            except SQLAlchemyError as e:
                raise OrderStoreError(f"Failed to list unarchived orders: {e}") from e
            return [to_record(o) for o in objs]
