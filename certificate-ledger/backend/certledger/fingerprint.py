# certledger/fingerprint.py
import hashlib
from typing import Iterable, Optional

from certledger.errors import ValidationError

ALLOWED_CONTENT_TYPES = ("application/pdf",)
GENERIC_CONTENT_TYPES = (None, "", "application/octet-stream")
DEFAULT_MAX_SIZE = 10 * 1024 * 1024
CHUNK_SIZE = 1024 * 1024


def validate_file(
    data: bytes,
    file_name: Optional[str],
    content_type: Optional[str],
    *,
    max_size: int = DEFAULT_MAX_SIZE,
    allowed_types: Iterable[str] = ALLOWED_CONTENT_TYPES,
) -> None:
    """
    Reject files that may not be certified: empty, larger than max_size,
    or not a PDF. When the declared type is missing or generic the file
    name extension decides.
    """
    if not data:
        raise ValidationError("File is empty")

    if content_type in GENERIC_CONTENT_TYPES:
        if not (file_name or "").lower().endswith(".pdf"):
            raise ValidationError("Only PDF files are supported")
    elif content_type.split(";")[0].strip().lower() not in tuple(allowed_types):
        raise ValidationError("Only PDF files are supported")

    if len(data) > max_size:
        raise ValidationError(f"File size must be less than {format_file_size(max_size)}")


def fingerprint(data: bytes) -> str:
    """SHA-256 of the full byte content, lowercase hex (64 chars)."""
    return hashlib.sha256(data).hexdigest()


def fingerprint_file(path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def format_file_size(size: int) -> str:
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value, i = float(size), 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"
