"""Select the archive client implementation from configuration."""
import logging

from order_archive.adapters.archive.lighthouse import LighthouseArchiveClient
from order_archive.adapters.archive.memory import MemoryArchiveClient
from order_archive.domain.interfaces import ArchiveClient
from order_archive.settings import Settings

logger = logging.getLogger(__name__)


def build_archive_client(settings: Settings) -> ArchiveClient:
    """Construct the single archive client for this process.

    Lighthouse when a key is configured; the in-memory archive in dev mode;
    otherwise a key-less Lighthouse client that can still retrieve.
    """
    if settings.archive_configured or not settings.dev_mode:
        return LighthouseArchiveClient(
            api_key=settings.lighthouse_api_key,
            upload_url=settings.lighthouse_upload_url,
            gateway=settings.filecoin_gateway,
            mirror_gateways=settings.filecoin_mirror_gateways,
            network=settings.filecoin_network,
            timeout=settings.archive_timeout_seconds,
            max_attempts=settings.archive_upload_max_attempts,
            backoff_seconds=settings.archive_backoff_seconds,
        )

    logger.warning("DEV_MODE: using in-memory content-addressed archive")
    return MemoryArchiveClient(network=settings.filecoin_network)
