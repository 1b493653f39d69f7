"""Behaviour shared by the SQLAlchemy and in-memory order stores."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from order_archive.adapters.memory_store.stores import MemoryOrderStore
from order_archive.adapters.postgres.models import Base
from order_archive.adapters.postgres.order_store import PostgresOrderStore
from order_archive.domain.errors import OrderConflictError, OrderStoreError
from order_archive.domain.interfaces import ArchivalStatus, OrderRecord


def _sqlite_store() -> PostgresOrderStore:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return PostgresOrderStore(sessionmaker(bind=engine, autoflush=False))


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    if request.param == "memory":
        return MemoryOrderStore()
    return _sqlite_store()


def _record(order_id="ORD-1", **kwargs) -> OrderRecord:
    defaults = dict(
        user_id="user-1",
        items=[{"sku": "A", "qty": 1}],
        subtotal=40.0,
        shipping=2.5,
        total=42.5,
        wallet_address="0xabc",
        wallet_signature="0x" + "11" * 32,
        encryption_salt="aa" * 16,
    )
    defaults.update(kwargs)
    return OrderRecord(order_id=order_id, **defaults)


def test_create_and_get(store):
    store.create_order(_record())
    rec = store.get_by_order_id("ORD-1")

    assert rec is not None
    assert rec.total == 42.5
    assert rec.cid is None
    assert rec.encryption_salt == "aa" * 16
    assert rec.archival_status == ArchivalStatus.PENDING
    assert rec.created_at is not None
    assert store.get_by_order_id("missing") is None


def test_duplicate_order_rejected(store):
    store.create_order(_record())
    with pytest.raises(OrderConflictError):
        store.create_order(_record())


def test_cid_transitions_once(store):
    store.create_order(_record())

    assert store.set_cid_if_null("ORD-1", "bafyfirst") is True
    # Idempotent replay of the same CID
    assert store.set_cid_if_null("ORD-1", "bafyfirst") is True
    # A different CID never overwrites
    assert store.set_cid_if_null("ORD-1", "bafysecond") is False

    rec = store.get_by_order_id("ORD-1")
    assert rec.cid == "bafyfirst"
    assert rec.archival_status == ArchivalStatus.ARCHIVED
    assert rec.archived_at is not None
    assert store.get_by_cid("bafyfirst").order_id == "ORD-1"


def test_set_cid_unknown_order(store):
    assert store.set_cid_if_null("nope", "bafy") is False


def test_set_cid_writes_salt_with_cid(store):
    store.create_order(_record())
    store.set_cid_if_null("ORD-1", "bafynew", salt="bb" * 16)
    assert store.get_by_order_id("ORD-1").encryption_salt == "bb" * 16


def test_set_cid_requires_matching_salt(store):
    store.create_order(_record())

    assert store.set_cid_if_null("ORD-1", "bafyforeign", expected_salt="ff" * 16) is False
    rec = store.get_by_order_id("ORD-1")
    assert rec.cid is None
    assert rec.archival_status == ArchivalStatus.PENDING

    assert store.set_cid_if_null("ORD-1", "bafyowned", expected_salt="aa" * 16) is True
    assert store.get_by_order_id("ORD-1").cid == "bafyowned"


def test_set_cid_swaps_salt_on_matching_row(store):
    store.create_order(_record())
    assert store.set_cid_if_null("ORD-1", "bafyre", salt="bb" * 16, expected_salt="aa" * 16) is True
    assert store.get_by_order_id("ORD-1").encryption_salt == "bb" * 16


def test_failure_and_retry_bookkeeping(store):
    store.create_order(_record(archival_attempts=1))

    store.mark_archival_failed("ORD-1", "upload exhausted")
    rec = store.get_by_order_id("ORD-1")
    assert rec.archival_status == ArchivalStatus.FAILED
    assert rec.archival_error == "upload exhausted"
    assert rec.cid is None

    store.mark_archival_pending("ORD-1")
    rec = store.get_by_order_id("ORD-1")
    assert rec.archival_status == ArchivalStatus.PENDING
    assert rec.archival_attempts == 2


def test_archived_rows_ignore_failure_marks(store):
    store.create_order(_record())
    store.set_cid_if_null("ORD-1", "bafydone")
    store.mark_archival_failed("ORD-1", "late error")
    assert store.get_by_order_id("ORD-1").archival_status == ArchivalStatus.ARCHIVED


def test_list_unarchived(store):
    now = datetime.now(timezone.utc)
    old = now - timedelta(hours=1)
    store.create_order(_record("OLD-PENDING", created_at=old))
    store.create_order(_record("OLD-FAILED", created_at=old, archival_status=ArchivalStatus.FAILED))
    store.create_order(_record("OLD-DISABLED", created_at=old, archival_status=ArchivalStatus.DISABLED))
    store.create_order(_record("OLD-ARCHIVED", created_at=old))
    store.set_cid_if_null("OLD-ARCHIVED", "bafyarchived")
    store.create_order(_record("FRESH", created_at=now))

    stuck = store.list_unarchived(now - timedelta(minutes=10))
    assert {r.order_id for r in stuck} == {"OLD-PENDING", "OLD-FAILED"}
    assert len(store.list_unarchived(now - timedelta(minutes=10), limit=1)) == 1


def test_sqlalchemy_errors_are_wrapped():
    session = MagicMock()
    session.__enter__.return_value = session
    session.query.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
    store = PostgresOrderStore(lambda: session)

    with pytest.raises(OrderStoreError):
        store.get_by_order_id("ORD-1")
    with pytest.raises(OrderStoreError):
        store.set_cid_if_null("ORD-1", "bafy")
