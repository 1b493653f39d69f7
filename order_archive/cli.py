"""CLI for the Order Archive Gateway."""
import asyncio
import json
from typing import Optional

import click
import httpx

from order_archive.adapters.archive.factory import build_archive_client
from order_archive.dependencies import build_order_store
from order_archive.domain.crypto.cipher import generate_key
from order_archive.domain.crypto.kdf import generate_salt
from order_archive.domain.errors import ArchiveError
from order_archive.domain.orders.authorizer import RetrievalAuthorizer
from order_archive.domain.orders.orchestrator import ArchivalOrchestrator
from order_archive.domain.orders.polling import poll_for_cid
from order_archive.domain.wallet.signer import DeterministicTestSigner
from order_archive.jobs.archive_reconcile import ArchiveReconciler
from order_archive.settings import settings


@click.group()
def cli():
    """Order Archive Gateway CLI."""
    pass


@cli.command("links")
@click.argument("cid")
def links(cid: str):
    """Print gateway, mirror and explorer URLs for a CID."""
    client = build_archive_client(settings)
    click.echo(json.dumps({
        "gatewayUrl": client.gateway_url(cid),
        "redundantUrls": client.redundant_urls(cid),
        "explorerUrl": client.explorer_url(cid),
    }, indent=2))


@cli.command("keygen")
def keygen():
    """Generate a random 256-bit key (base64)."""
    click.echo(generate_key())


@cli.command("salt")
def salt():
    """Generate a fresh 16-byte salt (hex)."""
    click.echo(generate_salt())


@cli.command("verify")
@click.argument("cid")
@click.option("--wallet", "wallet_address", default=None, help="Claimed wallet address")
@click.option("--signature", default=None, help="Claimed wallet signature")
def verify(cid: str, wallet_address: Optional[str], signature: Optional[str]):
    """Download and decrypt an archived order using the configured store and archive."""
    async def _run():
        client = build_archive_client(settings)
        try:
            authorizer = RetrievalAuthorizer(client, build_order_store(settings), settings.kdf_iterations)
            return await authorizer.verify(cid, wallet_address, signature)
        finally:
            await client.aclose()

    try:
        result = asyncio.run(_run())
    except ArchiveError as e:
        click.echo(f"Error: Could not verify this order ({e.code}): {e.message}", err=True)
        raise SystemExit(1)

    click.echo(f"✓ Order verified (decrypted at {result.decrypted_at.isoformat()})")
    click.echo(json.dumps(result.order, indent=2))


@cli.command("wait")
@click.argument("order_id")
@click.option("--base-url", default="http://localhost:8000", help="Gateway base URL")
@click.option("--attempts", default=24, show_default=True, help="Maximum polls")
@click.option("--interval", default=5.0, show_default=True, help="Initial poll interval (seconds)")
def wait(order_id: str, base_url: str, attempts: int, interval: float):
    """Poll an order until its CID is available."""
    async def _run():
        async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as http:
            async def fetch():
                resp = await http.get("/api/orders/by-id", params={"orderId": order_id})
                if resp.status_code != 200:
                    return None
                return resp.json().get("order")

            return await poll_for_cid(fetch, max_attempts=attempts, interval=interval)

    view = asyncio.run(_run())
    if not view:
        click.echo(f"Error: Order '{order_id}' not found", err=True)
        raise SystemExit(1)
    if view.get("cid"):
        click.echo(f"✓ {order_id} archived: {view['cid']}")
    elif view.get("archivalStatus") == "failed":
        click.echo(f"✗ {order_id} archival failed", err=True)
        raise SystemExit(2)
    else:
        click.echo(f"… {order_id} still pending")
        raise SystemExit(3)


@cli.command("reconcile")
@click.option("--retrigger/--report-only", default=False, help="Re-archive stuck orders")
@click.option("--stale-after", default=None, type=int, help="Seconds before a pending order counts as stuck")
def reconcile(retrigger: bool, stale_after: Optional[int]):
    """Report (and optionally re-archive) orders stuck with no CID."""
    async def _run():
        client = build_archive_client(settings)
        store = build_order_store(settings)
        try:
            orchestrator = ArchivalOrchestrator(
                client,
                store,
                DeterministicTestSigner(),
                mode="sync",
                kdf_iterations=settings.kdf_iterations,
                service_version=settings.service_version,
            )
            reconciler = ArchiveReconciler(
                store,
                orchestrator,
                stale_after_seconds=stale_after if stale_after is not None else settings.reconcile_stale_after_seconds,
                retrigger=retrigger,
                batch_size=settings.reconcile_batch_size,
            )
            return await reconciler.run()
        finally:
            await client.aclose()

    summary = asyncio.run(_run())
    click.echo(json.dumps(summary, indent=2))


if __name__ == "__main__":
    cli()
