"""Order Archive Gateway - Main Application."""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from order_archive.adapters.archive.factory import build_archive_client
from order_archive.api.orders import router as orders_router
from order_archive.dependencies import build_order_store
from order_archive.domain.errors import ArchiveError
from order_archive.domain.orders.authorizer import RetrievalAuthorizer
from order_archive.domain.orders.orchestrator import ArchivalOrchestrator
from order_archive.domain.wallet.signer import DeterministicTestSigner
from order_archive.errors import status_for
from order_archive.jobs.archive_reconcile import ArchiveReconciler, archive_reconcile_worker
from order_archive.logging_hardening import setup_logging_redaction
from order_archive.observability.tracing import setup_tracing
from order_archive.routers import health
from order_archive.settings import settings

logger = logging.getLogger(__name__)

# Initialize logging redaction filters early
setup_logging_redaction()


def run_migrations() -> None:
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", str(settings.database_url))
    command.upgrade(alembic_cfg, "head")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if settings.run_migrations and settings.database_url:
        logger.info("Running DB Migrations...")
        await asyncio.to_thread(run_migrations)
        logger.info("Migrations complete.")

    archive_client = build_archive_client(settings)
    order_store = build_order_store(settings)
    # Server-side signing is a placeholder until wallets sign at checkout.
    signer = DeterministicTestSigner()
    logger.warning("Using deterministic test signer for orders submitted without a wallet signature")
    orchestrator = ArchivalOrchestrator(
        archive_client,
        order_store,
        signer,
        mode=settings.archival_mode,
        kdf_iterations=settings.kdf_iterations,
        service_version=settings.service_version,
    )
    app.state.archive_client = archive_client
    app.state.order_store = order_store
    app.state.orchestrator = orchestrator
    app.state.authorizer = RetrievalAuthorizer(archive_client, order_store, settings.kdf_iterations)
    logger.info(
        f"Archival mode: {orchestrator.mode} | Network: {archive_client.network} | "
        f"Archive configured: {archive_client.is_configured} | Store configured: {order_store is not None}"
    )

    shutdown_event = asyncio.Event()
    reconcile_task = None
    if settings.reconcile_enabled:
        reconciler = ArchiveReconciler(
            order_store,
            orchestrator,
            stale_after_seconds=settings.reconcile_stale_after_seconds,
            retrigger=settings.reconcile_retrigger,
            batch_size=settings.reconcile_batch_size,
        )
        reconcile_task = asyncio.create_task(
            archive_reconcile_worker(shutdown_event, reconciler, settings.reconcile_interval_seconds)
        )

    yield

    # Shutdown
    shutdown_event.set()
    logger.info("Initiating graceful shutdown...")
    await orchestrator.drain(timeout=settings.archive_timeout_seconds)

    if reconcile_task:
        try:
            await asyncio.wait_for(reconcile_task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Reconcile worker shutdown timed out.")

    await archive_client.aclose()
    logger.info("Shutdown complete.")


app = FastAPI(
    title="Order Archive Gateway",
    description="Wallet-bound order encryption and Filecoin archival",
    version="0.1.0",
    lifespan=lifespan
)

setup_tracing(app, settings)


def _flatten_error(detail) -> dict:
    """``{"error": {code, message, details}}`` -> ``{"success": false, "error": message, ...}``."""
    error = detail["error"]
    body = {"success": False, "error": error.get("message"), "code": error.get("code")}
    if error.get("details"):
        body["details"] = error["details"]
    return body


@app.exception_handler(HTTPException)
async def api_http_exception_handler(request: Request, exc: HTTPException):
    # Order API clients read a flat string under 'error'
    if request.url.path.startswith("/api/"):
        if isinstance(exc.detail, dict) and isinstance(exc.detail.get("error"), dict):
            return JSONResponse(
                status_code=exc.status_code,
                content=_flatten_error(exc.detail),
                headers=exc.headers
            )

    # Default FastAPI handler for everything else
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=exc.headers
    )


@app.exception_handler(ArchiveError)
async def archive_error_handler(request: Request, exc: ArchiveError):
    logger.error(f"Unhandled archive error on {request.url.path}: {exc.code}")
    return JSONResponse(
        status_code=status_for(exc),
        content={"success": False, "error": exc.message, "code": exc.code},
    )


# Mount routers
app.include_router(orders_router.router, prefix="/api", tags=["Orders"])
app.include_router(health.router, tags=["Health"])
