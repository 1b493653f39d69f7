"""In-memory content-addressed archive (dev mode and tests)."""
import logging
from datetime import datetime, timezone
from typing import Dict, List

from order_archive.adapters.archive.cid import compute_cid
from order_archive.domain.errors import ArchiveNotFoundError
from order_archive.domain.interfaces import ArchiveClient, ArchiveRecord, Network

logger = logging.getLogger(__name__)


class MemoryArchiveClient(ArchiveClient):
    def __init__(self, network: Network = "testnet", gateway: str = "http://localhost/ipfs"):
        self._blobs: Dict[str, bytes] = {}
        self._network = network
        self._gateway = gateway.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return True

    @property
    def network(self) -> Network:
        return self._network

    async def upload(self, data: bytes) -> ArchiveRecord:
        cid = compute_cid(data)
        self._blobs[cid] = bytes(data)
        logger.info(f"Stored {len(data)} bytes in memory archive (CID: {cid[:8]}...)")
        return ArchiveRecord(
            cid=cid,
            uploaded_at=datetime.now(timezone.utc),
            size_bytes=len(data),
            network=self._network,
        )

    async def download(self, cid: str) -> bytes:
        try:
            return self._blobs[cid]
        except KeyError:
            raise ArchiveNotFoundError(f"CID {cid[:8]}... not found")

    def gateway_url(self, cid: str) -> str:
        return f"{self._gateway}/{cid}"

    def redundant_urls(self, cid: str) -> List[str]:
        return [self.gateway_url(cid), f"ipfs://{cid}"]
