"""Memory Store Implementations (dev mode and tests)."""
import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional

from order_archive.domain.errors import OrderConflictError
from order_archive.domain.interfaces import ArchivalStatus, OrderRecord, OrderStore

logger = logging.getLogger(__name__)


class MemoryOrderStore(OrderStore):
    def __init__(self):
        self._orders: Dict[str, OrderRecord] = {}
        # Store calls run in worker threads (asyncio.to_thread).
        self._lock = threading.Lock()

    def create_order(self, record: OrderRecord) -> None:
        now = datetime.now(timezone.utc)
        with self._lock:
            if record.order_id in self._orders:
                raise OrderConflictError(f"Order {record.order_id} already exists")
            self._orders[record.order_id] = replace(
                record, created_at=record.created_at or now, updated_at=now
            )

    def get_by_order_id(self, order_id: str) -> Optional[OrderRecord]:
        with self._lock:
            rec = self._orders.get(order_id)
            return replace(rec) if rec else None

    def get_by_cid(self, cid: str) -> Optional[OrderRecord]:
        with self._lock:
            for rec in self._orders.values():
                if rec.cid == cid:
                    return replace(rec)
        return None

    def set_cid_if_null(
        self,
        order_id: str,
        cid: str,
        salt: Optional[str] = None,
        expected_salt: Optional[str] = None,
    ) -> bool:
        with self._lock:
            rec = self._orders.get(order_id)
            if not rec:
                return False
            if rec.cid is not None:
                return rec.cid == cid
            if expected_salt is not None and rec.encryption_salt != expected_salt:
                return False
            now = datetime.now(timezone.utc)
            rec.cid = cid
            if salt:
                rec.encryption_salt = salt
            rec.archival_status = ArchivalStatus.ARCHIVED
            rec.archival_error = None
            rec.archived_at = now
            rec.updated_at = now
            return True

    def mark_archival_pending(self, order_id: str) -> None:
        with self._lock:
            rec = self._orders.get(order_id)
            if rec and rec.cid is None:
                rec.archival_status = ArchivalStatus.PENDING
                rec.archival_attempts += 1
                rec.updated_at = datetime.now(timezone.utc)

    def mark_archival_failed(self, order_id: str, error: str) -> None:
        with self._lock:
            rec = self._orders.get(order_id)
            if rec and rec.cid is None:
                rec.archival_status = ArchivalStatus.FAILED
                rec.archival_error = error[:1000]
                rec.updated_at = datetime.now(timezone.utc)

    def list_unarchived(self, older_than: datetime, limit: int = 50) -> List[OrderRecord]:
        with self._lock:
            stuck = [
                replace(r) for r in self._orders.values()
                if r.cid is None
                and r.archival_status in (ArchivalStatus.PENDING, ArchivalStatus.FAILED)
                and r.created_at is not None
                and r.created_at < older_than
            ]
        stuck.sort(key=lambda r: r.created_at)
        return stuck[:limit]
