import pytest

from order_archive.adapters.archive.memory import MemoryArchiveClient
from order_archive.adapters.memory_store.stores import MemoryOrderStore
from order_archive.dependencies import (
    get_archive_client,
    get_authorizer,
    get_orchestrator,
    get_order_store,
)
from order_archive.domain.orders.authorizer import RetrievalAuthorizer
from order_archive.domain.orders.orchestrator import ArchivalOrchestrator
from order_archive.domain.wallet.signer import DeterministicTestSigner
from order_archive.main import app


@pytest.fixture(autouse=True)
def clear_overrides():
    """Automatically clear FastAPI dependency overrides before each test."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


def _install(archive, store, mode="sync"):
    orchestrator = ArchivalOrchestrator(archive, store, DeterministicTestSigner(), mode=mode)
    authorizer = RetrievalAuthorizer(archive, store)
    app.dependency_overrides[get_archive_client] = lambda: archive
    app.dependency_overrides[get_order_store] = lambda: store
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_authorizer] = lambda: authorizer
    return orchestrator


@pytest.fixture
def wire():
    """Install collaborators on the app: ``wire(archive, store, mode="sync")``."""
    return _install


@pytest.fixture
def memory_app(wire):
    archive, store = MemoryArchiveClient(), MemoryOrderStore()
    wire(archive, store)
    return archive, store
