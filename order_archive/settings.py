"""Settings and configuration."""
import os
from typing import List, Literal, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

MIN_KDF_ITERATIONS = 100_000


class Settings(BaseSettings):
    # Relational order store (absent => local-only, not configured)
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    run_migrations: bool = False

    # Storage network
    lighthouse_api_key: Optional[str] = os.getenv("LIGHTHOUSE_API_KEY")
    lighthouse_upload_url: str = "https://node.lighthouse.storage/api/v0/add"
    filecoin_gateway: str = os.getenv("FILECOIN_GATEWAY", "https://gateway.lighthouse.storage/ipfs")
    filecoin_mirror_gateways: List[str] = [
        "https://ipfs.io/ipfs",
        "https://nft.storage/ipfs",
    ]
    filecoin_network: Literal["testnet", "mainnet"] = "testnet"

    # Archival
    archival_mode: Literal["sync", "deferred"] = "deferred"
    archive_upload_max_attempts: int = 3
    archive_backoff_seconds: float = 1.0
    archive_timeout_seconds: float = 45.0
    service_version: str = "1"

    # Key derivation
    kdf_iterations: int = MIN_KDF_ITERATIONS

    # Reconciliation sweep for orders stuck with cid=null
    reconcile_enabled: bool = False
    reconcile_interval_seconds: int = 300
    reconcile_stale_after_seconds: int = 900
    reconcile_retrigger: bool = False
    reconcile_batch_size: int = 50

    # Observability
    tracing_enabled: bool = False
    otel_exporter_otlp_endpoint: Optional[str] = None

    dev_mode: bool = False

    model_config = {
        "env_file": ".env",
        "extra": "ignore"
    }

    @field_validator("kdf_iterations")
    @classmethod
    def validate_kdf_iterations(cls, v: int) -> int:
        if v < MIN_KDF_ITERATIONS:
            raise ValueError(f"kdf_iterations must be >= {MIN_KDF_ITERATIONS}")
        return v

    @field_validator("archive_upload_max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("archive_upload_max_attempts must be >= 1")
        return v

    @property
    def archive_configured(self) -> bool:
        return bool(self.lighthouse_api_key)

    @property
    def store_configured(self) -> bool:
        return bool(self.database_url)


settings = Settings()
