# certledger/protocol.py
"""
Certificate issuance and verification.

Both operations run as short sequential pipelines. A run keeps its own stage
history and result; runs share nothing but the read-only LedgerConfig and
gateway they were given. Any failure ends the run: the in-progress
transaction is discarded and the caller starts again from a selected file.
"""
import itertools
import logging
from enum import Enum
from typing import Callable, Optional, Protocol

from certledger import metadata
from certledger.errors import (
    CertLedgerError,
    ConfigurationError,
    InternalError,
    NoSpendableFundsError,
    NotConnectedError,
    UnsupportedCapabilityError,
    ValidationError,
)
from certledger.fingerprint import fingerprint, format_file_size, validate_file
from certledger.models import (
    CertificateFile,
    IssuanceReceipt,
    StatusLevel,
    TransactionDraft,
    VerificationResult,
)
from certledger.settings import LedgerConfig
from certledger.wallet import WalletAdapter, is_valid_address

logger = logging.getLogger(__name__)

StatusCallback = Callable[[StatusLevel, str], None]

NOT_FOUND_REASON = "Certificate hash not found on blockchain"


class IssuanceStage(str, Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    HASHING = "hashing"
    BUILDING_TX = "building_tx"
    SIGNING = "signing"
    SUBMITTING = "submitting"
    DONE = "done"
    FAILED = "failed"


class VerificationStage(str, Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    HASHING = "hashing"
    RESOLVING_ADDRESS = "resolving_address"
    LISTING_TRANSACTIONS = "listing_transactions"
    SCANNING = "scanning"
    MATCHED = "matched"
    NO_MATCH = "no_match"
    FAILED = "failed"


class TransactionBuilder(Protocol):
    def build(self, draft: TransactionDraft):
        """Return the unsigned transaction (CBOR bytes or hex) for a draft."""


class Run:
    """Stage bookkeeping for one pipeline instance."""

    def __init__(self, kind: str, idle, notify: Optional[StatusCallback]):
        self.kind = kind
        self.stage = idle
        self.stages = [idle]
        self._notify = notify
        self._finished = False

    def advance(self, stage, message: Optional[str] = None):
        logger.debug("%s: %s -> %s", self.kind, self.stage.value, stage.value)
        self.stage = stage
        self.stages.append(stage)
        if message:
            self.emit(StatusLevel.INFO, message)

    def emit(self, level: StatusLevel, message: str):
        if self._notify is not None:
            self._notify(level, message)

    def finish(self, stage, level: StatusLevel, message: str):
        if self._finished:
            return
        self._finished = True
        self.advance(stage)
        logger.info("%s finished (%s): %s", self.kind, stage.value, message)
        self.emit(level, message)


class CertificateProtocol:
    def __init__(
        self,
        config: LedgerConfig,
        gateway=None,
        builder: Optional[TransactionBuilder] = None,
        notify: Optional[StatusCallback] = None,
    ):
        self.config = config
        self.gateway = gateway
        self.builder = builder
        self.notify = notify
        self.last_run: Optional[Run] = None

    # ---------- shared ----------
    def _select(self, run: Run, file: CertificateFile, selected_stage):
        validate_file(
            file.data,
            file.name,
            file.content_type,
            max_size=self.config.max_file_size,
        )
        run.advance(selected_stage, f"File selected: {file.name} ({format_file_size(file.size)})")

    def prepare(self, file: CertificateFile):
        """
        Fingerprint a file and build the metadata a client-side transaction
        builder should attach. Nothing is signed or submitted.
        """
        validate_file(file.data, file.name, file.content_type, max_size=self.config.max_file_size)
        digest = fingerprint(file.data)
        record = metadata.build_record(digest, file.name, self.config.issuer, self.config.network)
        return record, metadata.encode(record, self.config.metadata_label)

    # ---------- issuance ----------
    def issue(
        self,
        file: CertificateFile,
        wallet: Optional[WalletAdapter],
        submit_with_wallet: bool = False,
    ) -> IssuanceReceipt:
        run = Run("issue", IssuanceStage.IDLE, self.notify)
        self.last_run = run
        try:
            receipt = self._issue(run, file, wallet, submit_with_wallet)
        except CertLedgerError as e:
            run.finish(IssuanceStage.FAILED, StatusLevel.ERROR,
                       f"Failed to issue certificate: {e.message}. The certificate was NOT recorded.")
            raise
        except Exception as e:
            logger.exception("Unexpected error while issuing certificate")
            run.finish(IssuanceStage.FAILED, StatusLevel.ERROR,
                       "Failed to issue certificate: internal error. The certificate was NOT recorded.")
            raise InternalError() from e

        run.finish(IssuanceStage.DONE, StatusLevel.SUCCESS,
                   f"Certificate issued successfully! Transaction: {receipt.tx_hash}")
        return receipt

    def _issue(self, run, file, wallet, submit_with_wallet) -> IssuanceReceipt:
        self._select(run, file, IssuanceStage.FILE_SELECTED)

        run.advance(IssuanceStage.HASHING, "Calculating file hash...")
        digest = fingerprint(file.data)

        if wallet is None or not wallet.connected:
            raise NotConnectedError("Please connect your wallet first")
        utxos = wallet.get_utxos()
        if not utxos:
            raise NoSpendableFundsError("No spendable funds in wallet. Add ADA to your wallet and try again")
        if self.builder is None:
            raise UnsupportedCapabilityError("transaction building")

        run.advance(IssuanceStage.BUILDING_TX, "Creating blockchain transaction...")
        address = wallet.canonical_address()
        record = metadata.build_record(digest, file.name, self.config.issuer, self.config.network)
        draft = TransactionDraft(
            change_address=address,
            recipient=address,
            lovelace=self.config.self_transfer_lovelace,
            metadata=metadata.encode(record, self.config.metadata_label),
            utxos=tuple(utxos),
        )
        unsigned = self.builder.build(draft)

        run.advance(IssuanceStage.SIGNING, "Waiting for wallet signature...")
        signed = wallet.sign_transaction(unsigned)

        run.advance(IssuanceStage.SUBMITTING, "Submitting transaction...")
        if submit_with_wallet or self.gateway is None:
            tx_hash = wallet.submit_transaction(signed)
            submitted_by = "wallet"
        else:
            tx_hash = self.gateway.submit(signed)
            submitted_by = "gateway"

        return IssuanceReceipt(tx_hash=tx_hash, fingerprint=digest, record=record, submitted_by=submitted_by)

    # ---------- verification ----------
    def verify(
        self,
        file: CertificateFile,
        address: Optional[str] = None,
        wallet: Optional[WalletAdapter] = None,
    ) -> VerificationResult:
        run = Run("verify", VerificationStage.IDLE, self.notify)
        self.last_run = run
        try:
            result = self._verify(run, file, address, wallet)
        except CertLedgerError as e:
            run.finish(VerificationStage.FAILED, StatusLevel.ERROR, f"Verification failed: {e.message}")
            raise
        except Exception as e:
            logger.exception("Unexpected error while verifying certificate")
            run.finish(VerificationStage.FAILED, StatusLevel.ERROR, "Verification failed: internal error")
            raise InternalError() from e

        if result.valid:
            run.finish(VerificationStage.MATCHED, StatusLevel.SUCCESS,
                       f"Certificate is VALID! Found on blockchain in transaction: "
                       f"{result.transaction_ref.tx_hash}")
        else:
            run.finish(VerificationStage.NO_MATCH, StatusLevel.ERROR,
                       "Certificate is INVALID - not found on blockchain")
        return result

    def _resolve_address(self, address: Optional[str], wallet: Optional[WalletAdapter]) -> str:
        if wallet is not None and wallet.connected:
            try:
                return wallet.canonical_address()
            except CertLedgerError as e:
                if not address:
                    raise
                logger.warning("Could not get wallet address, using provided address: %s", e)
        if not address:
            raise NotConnectedError("Please connect your wallet or enter an address first")
        if not is_valid_address(address):
            raise ValidationError("Invalid Cardano address")
        return address

    def _verify(self, run, file, address, wallet) -> VerificationResult:
        self._select(run, file, VerificationStage.FILE_SELECTED)

        run.advance(VerificationStage.HASHING, "Calculating file hash...")
        digest = fingerprint(file.data)

        run.advance(VerificationStage.RESOLVING_ADDRESS, "Getting wallet address...")
        search_address = self._resolve_address(address, wallet)

        if self.gateway is None:
            raise ConfigurationError("No ledger index gateway configured")
        run.advance(VerificationStage.LISTING_TRANSACTIONS, "Searching blockchain for certificate...")
        transactions = iter(self.gateway.list_transactions(
            search_address, order="desc", limit=self.config.tx_scan_limit,
        ))

        # first page is fetched while still in LISTING_TRANSACTIONS
        first = next(transactions, None)
        pending = itertools.chain([first], transactions) if first is not None else ()

        run.advance(VerificationStage.SCANNING)
        scanned = 0
        for ref in pending:
            scanned += 1
            wire = self.gateway.get_metadata(ref.tx_hash)
            if wire is None:
                continue
            record = metadata.decode(wire, self.config.metadata_label, self.config.min_hash_prefix)
            if record is None:
                continue
            if metadata.fingerprints_match(record.hash, digest, self.config.min_hash_prefix):
                return VerificationResult.matched(ref, record, address=search_address, scanned=scanned)

        logger.info("No certificate for %s among %d transactions of %s", digest, scanned, search_address)
        return VerificationResult.no_match(NOT_FOUND_REASON, address=search_address, scanned=scanned)
