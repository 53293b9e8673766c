# certledger/settings.py
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings

from certledger.errors import ConfigurationError

NETWORK_BASE_URLS = {
    "mainnet": "https://cardano-mainnet.blockfrost.io/api/v0",
    "preprod": "https://cardano-preprod.blockfrost.io/api/v0",
    "preview": "https://cardano-preview.blockfrost.io/api/v0",
}

PLACEHOLDER_KEY_SUFFIX = "YOUR_API_KEY_HERE"


def base_url_for(network: str) -> str:
    try:
        return NETWORK_BASE_URLS[network]
    except KeyError:
        raise ConfigurationError(f"Unknown Cardano network: {network!r}")


@dataclass(frozen=True)
class LedgerConfig:
    """
    Snapshot of the settings one issuance or verification run needs.
    Built at the start of the run and never mutated afterwards.
    """
    network: str = "preprod"
    api_key: Optional[str] = None
    metadata_label: int = 674
    issuer: str = "Certificate Verifier App"
    self_transfer_lovelace: int = 2_000_000
    tx_scan_limit: int = 50
    min_hash_prefix: int = 16
    max_file_size: int = 10 * 1024 * 1024
    upstream_timeout: Optional[float] = None

    @property
    def base_url(self) -> str:
        return base_url_for(self.network)

    @property
    def api_key_configured(self) -> bool:
        return bool(self.api_key) and not self.api_key.endswith(PLACEHOLDER_KEY_SUFFIX)

    def require_api_key(self) -> str:
        if not self.api_key_configured:
            raise ConfigurationError("Blockfrost API key not configured on server.")
        return self.api_key


class Settings(BaseSettings):
    BLOCKFROST_API_KEY: str | None = None
    CARDANO_NETWORK: str = "preprod"

    METADATA_LABEL: int = 674
    ISSUER_NAME: str = "Certificate Verifier App"
    SELF_TRANSFER_LOVELACE: int = 2_000_000
    TX_SCAN_LIMIT: int = 50
    MIN_HASH_PREFIX: int = 16
    MAX_FILE_SIZE: int = 10 * 1024 * 1024
    UPSTREAM_TIMEOUT: float | None = None

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    HOST: str = "127.0.0.1"
    PORT: int = 5000
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

    def ledger_config(self) -> LedgerConfig:
        if self.CARDANO_NETWORK not in NETWORK_BASE_URLS:
            raise ConfigurationError(f"Unknown Cardano network: {self.CARDANO_NETWORK!r}")
        return LedgerConfig(
            network=self.CARDANO_NETWORK,
            api_key=self.BLOCKFROST_API_KEY,
            metadata_label=self.METADATA_LABEL,
            issuer=self.ISSUER_NAME,
            self_transfer_lovelace=self.SELF_TRANSFER_LOVELACE,
            tx_scan_limit=self.TX_SCAN_LIMIT,
            min_hash_prefix=self.MIN_HASH_PREFIX,
            max_file_size=self.MAX_FILE_SIZE,
            upstream_timeout=self.UPSTREAM_TIMEOUT,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
