"""Lighthouse (Filecoin/IPFS) archive client - real HTTP upload and gateway retrieval."""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from order_archive.domain.errors import (
    ArchiveNetworkError,
    ArchiveNotFoundError,
    ArchiveUploadError,
    ConfigurationError,
)
from order_archive.domain.interfaces import ArchiveClient, ArchiveRecord, Network

logger = logging.getLogger(__name__)

# Timeout configuration
DEFAULT_TIMEOUT = 45.0
DEFAULT_UPLOAD_URL = "https://node.lighthouse.storage/api/v0/add"
DEFAULT_GATEWAY = "https://gateway.lighthouse.storage/ipfs"
DEFAULT_MIRRORS = ("https://ipfs.io/ipfs", "https://nft.storage/ipfs")


class LighthouseArchiveClient(ArchiveClient):
    """Uploads opaque bytes to Lighthouse and reads them back from IPFS gateways.

    Uploads need the API key; retrieval goes through public gateways and keeps
    working without one.
    """

    def __init__(
        self,
        api_key: Optional[str],
        upload_url: str = DEFAULT_UPLOAD_URL,
        gateway: str = DEFAULT_GATEWAY,
        mirror_gateways: Sequence[str] = DEFAULT_MIRRORS,
        network: Network = "testnet",
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key or ""
        self._upload_url = upload_url
        self._gateway = gateway.rstrip("/")
        self._mirrors = [m.rstrip("/") for m in mirror_gateways]
        self._network = network
        self._max_attempts = max_attempts
        self._backoff = backoff_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

        if not self._api_key:
            logger.warning("LIGHTHOUSE_API_KEY not configured. Filecoin archival disabled, retrieval only.")

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    @property
    def network(self) -> Network:
        return self._network

    def gateway_url(self, cid: str) -> str:
        return f"{self._gateway}/{cid}"

    def redundant_urls(self, cid: str) -> List[str]:
        """Primary gateway, mirrors, then the native ipfs:// URI."""
        urls = [self.gateway_url(cid)]
        urls.extend(f"{m}/{cid}" for m in self._mirrors)
        urls.append(f"ipfs://{cid}")
        return urls

    async def upload(self, data: bytes) -> ArchiveRecord:
        if not self._api_key:
            raise ConfigurationError("LIGHTHOUSE_API_KEY not configured", code="ARCHIVE_NOT_CONFIGURED")

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=self._backoff, min=0, max=30),
                retry=retry_if_exception_type(ArchiveNetworkError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    cid, size = await self._upload_once(data)
        except ArchiveNetworkError as e:
            raise ArchiveUploadError(
                f"Upload failed after {self._max_attempts} attempts: {e}"
            ) from e

        logger.info(f"Order uploaded to Filecoin | CID: {cid[:8]}... | Network: {self._network} | Size: {size} bytes")
        return ArchiveRecord(
            cid=cid,
            uploaded_at=datetime.now(timezone.utc),
            size_bytes=size,
            network=self._network,
        )

    async def _upload_once(self, data: bytes) -> Tuple[str, int]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        files = {"file": ("order.json", data, "application/octet-stream")}
        try:
            response = await self._client.post(self._upload_url, headers=headers, files=files)
        except httpx.TransportError as e:
            raise ArchiveNetworkError(f"Upload transport error: {e}") from e

        if response.status_code == 429:
            raise ArchiveNetworkError("Storage network rate limited")
        elif response.status_code >= 500:
            raise ArchiveNetworkError(f"Storage network returned {response.status_code}")
        elif response.status_code in (401, 403):
            raise ConfigurationError(
                f"Storage credential rejected ({response.status_code})", code="ARCHIVE_NOT_CONFIGURED"
            )
        elif response.status_code >= 400:
            raise ArchiveUploadError(f"Storage network returned {response.status_code}: {response.text[:200]}")

        try:
            body = response.json()
        except ValueError:
            raise ArchiveUploadError("Invalid Lighthouse response: not JSON")

        cid = body.get("Hash") if isinstance(body, dict) else None
        if not cid:
            raise ArchiveUploadError("Invalid Lighthouse response: missing Hash/CID")

        try:
            size = int(body.get("Size", len(data)))
        except (TypeError, ValueError):
            size = len(data)
        return cid, size

    async def download(self, cid: str) -> bytes:
        """Fetch from the primary gateway, falling back to each mirror in turn."""
        urls = [u for u in self.redundant_urls(cid) if u.startswith(("http://", "https://"))]
        not_found = 0
        last_error: Optional[str] = None

        for url in urls:
            try:
                response = await self._client.get(url)
            except httpx.TransportError as e:
                logger.warning(f"Gateway unreachable ({url.split('/ipfs')[0]}): {e}")
                last_error = str(e)
                continue

            if response.status_code == 200:
                logger.info(f"Order retrieved from Filecoin (CID: {cid[:8]}...)")
                return response.content
            if response.status_code in (404, 410):
                not_found += 1
                continue
            last_error = f"Gateway returned {response.status_code}"
            logger.warning(f"{last_error} for CID {cid[:8]}... via {url.split('/ipfs')[0]}")

        if not_found:
            raise ArchiveNotFoundError(f"CID {cid[:8]}... not found on {not_found} gateway(s)")
        raise ArchiveNetworkError(f"All gateways failed for CID {cid[:8]}...: {last_error}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
