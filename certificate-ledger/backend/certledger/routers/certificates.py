# certledger/routers/certificates.py
import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from certledger.dependencies import get_gateway, get_ledger_config
from certledger.fingerprint import fingerprint, format_file_size, validate_file
from certledger.gateway import BlockfrostGateway
from certledger.metadata import sanitize_file_name
from certledger.models import CertificateFile
from certledger.protocol import CertificateProtocol
from certledger.schemas import (
    FingerprintResponse,
    PrepareResponse,
    RecordOut,
    StatusMessage,
    VerifyResponse,
)
from certledger.settings import LedgerConfig

logger = logging.getLogger(__name__)
router = APIRouter()


async def _read_upload(file: UploadFile) -> CertificateFile:
    content = await file.read()
    return CertificateFile(name=file.filename or "", data=content, content_type=file.content_type)


@router.post("/fingerprint", response_model=FingerprintResponse)
async def fingerprint_upload(
    file: UploadFile = File(...),
    config: LedgerConfig = Depends(get_ledger_config),
):
    """Validate an uploaded certificate file and return its SHA-256 fingerprint."""
    upload = await _read_upload(file)
    validate_file(upload.data, upload.name, upload.content_type, max_size=config.max_file_size)
    return FingerprintResponse(
        hash=fingerprint(upload.data),
        file_name=sanitize_file_name(upload.name),
        size=upload.size,
        size_label=format_file_size(upload.size),
    )


@router.post("/prepare", response_model=PrepareResponse)
async def prepare_certificate(
    file: UploadFile = File(...),
    config: LedgerConfig = Depends(get_ledger_config),
):
    """
    Return the metadata a client-side transaction builder attaches when it
    issues the certificate itself (self-transfer of recipient_lovelace).
    """
    upload = await _read_upload(file)
    record, wire = CertificateProtocol(config).prepare(upload)
    label = config.metadata_label
    return PrepareResponse(
        hash=record.hash,
        label=label,
        metadata={str(label): wire[label]},
        recipient_lovelace=config.self_transfer_lovelace,
        network=config.network,
    )


@router.post("/verify", response_model=VerifyResponse)
def verify_certificate(
    file: UploadFile = File(...),
    address: Optional[str] = Form(None),
    config: LedgerConfig = Depends(get_ledger_config),
    gateway: BlockfrostGateway = Depends(get_gateway),
):
    """
    Search the address's transactions, newest first, for a certificate with
    the uploaded file's fingerprint. "Not found" is a 200 with valid=false;
    failing to search at all is an error status.
    """
    upload = CertificateFile(
        name=file.filename or "",
        data=file.file.read(),
        content_type=file.content_type,
    )
    messages = []
    protocol = CertificateProtocol(
        config,
        gateway=gateway,
        notify=lambda level, text: messages.append(StatusMessage(level=level.value, message=text)),
    )
    result = protocol.verify(upload, address=address)
    logger.info("Verified %s against %s: valid=%s", upload.name, result.address, result.valid)

    ref = result.transaction_ref
    return VerifyResponse(
        valid=result.valid,
        reason=result.reason,
        address=result.address,
        tx_hash=ref.tx_hash if ref else None,
        block_time=ref.block_time if ref else None,
        block_height=ref.block_height if ref else None,
        record=RecordOut(**asdict(result.record)) if result.record else None,
        scanned=result.scanned,
        messages=messages,
    )
