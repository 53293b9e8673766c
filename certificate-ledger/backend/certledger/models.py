# certledger/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class StatusLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class CertificateFile:
    """A file handed over by the UI: its name, declared type and raw bytes."""
    name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class CertificateRecord:
    hash: str
    file_name: Optional[str] = None
    issued_at: Optional[str] = None
    issuer: Optional[str] = None
    network: Optional[str] = None
    version: Optional[str] = None


@dataclass(frozen=True)
class LedgerTransactionRef:
    tx_hash: str
    block_time: Optional[int] = None
    block_height: Optional[int] = None

    @classmethod
    def from_blockfrost(cls, row: dict) -> "LedgerTransactionRef":
        return cls(
            tx_hash=row["tx_hash"],
            block_time=row.get("block_time"),
            block_height=row.get("block_height"),
        )


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    reason: Optional[str] = None
    transaction_ref: Optional[LedgerTransactionRef] = None
    record: Optional[CertificateRecord] = None
    address: Optional[str] = None
    scanned: int = 0

    @classmethod
    def matched(cls, ref, record, address=None, scanned=0):
        return cls(valid=True, transaction_ref=ref, record=record, address=address, scanned=scanned)

    @classmethod
    def no_match(cls, reason, address=None, scanned=0):
        return cls(valid=False, reason=reason, address=address, scanned=scanned)


@dataclass(frozen=True)
class WalletSession:
    address: str
    network_id: Optional[int]
    api: Any = field(repr=False, compare=False)
    wallet_name: Optional[str] = None

    @property
    def is_mainnet(self) -> bool:
        return self.network_id == 1


@dataclass(frozen=True)
class TransactionDraft:
    """Everything a transaction builder needs for a certificate issuance."""
    change_address: str
    recipient: str
    lovelace: int
    metadata: dict
    utxos: tuple = ()


@dataclass(frozen=True)
class IssuanceReceipt:
    tx_hash: str
    fingerprint: str
    record: CertificateRecord
    submitted_by: str = "gateway"
