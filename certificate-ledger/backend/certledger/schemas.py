# certledger/schemas.py
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProxyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    endpoint: Optional[str] = None
    method: str = "get"
    body: Any = None
    params: Optional[dict] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")


class StatusMessage(BaseModel):
    level: str
    message: str


class RecordOut(BaseModel):
    hash: str
    file_name: Optional[str] = None
    issued_at: Optional[str] = None
    issuer: Optional[str] = None
    network: Optional[str] = None
    version: Optional[str] = None


class FingerprintResponse(BaseModel):
    hash: str
    file_name: str
    size: int
    size_label: str


class PrepareResponse(BaseModel):
    hash: str
    label: int
    metadata: dict
    recipient_lovelace: int
    network: str


class VerifyResponse(BaseModel):
    valid: bool
    reason: Optional[str] = None
    address: Optional[str] = None
    tx_hash: Optional[str] = None
    block_time: Optional[int] = None
    block_height: Optional[int] = None
    record: Optional[RecordOut] = None
    scanned: int = 0
    messages: list[StatusMessage] = []


class HealthResponse(BaseModel):
    status: str
    service: str
    network: str
    api_key_configured: bool
    metadata_label: int
