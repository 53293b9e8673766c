# certledger/metadata.py
"""
On-chain metadata schema for certificate records.

Records live under a single reserved metadata label (674 by default). Cardano
limits every metadata string to 64 bytes, so values are kept ASCII and short.
Older records used other key names; ``FIELD_ALIASES`` lists every known name
per logical field, newest first, and is the only place decoding looks.
"""
import re
import string
import unicodedata
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from certledger.models import CertificateRecord


METADATA_LABEL = 674
SCHEMA_VERSION = "1.0"
MAX_STRING_BYTES = 64
HASH_LENGTH = 64
MIN_HASH_PREFIX = 16

FIELD_ALIASES = {
    "hash": ("hash", "certificate_hash", "certificateHash"),
    "file_name": ("fileName", "file", "filename", "name", "file_name"),
    "issued_at": ("issued_at", "date", "IssuedAt", "issuedAt"),
    "issuer": ("issuer", "app", "application"),
    "network": ("network",),
    "version": ("version",),
}

CANONICAL_KEYS = {
    "hash": "hash",
    "file_name": "fileName",
    "issued_at": "issued_at",
    "issuer": "issuer",
    "network": "network",
    "version": "version",
}

_SAFE_NAME_CHARS = set(string.ascii_letters + string.digits + "._-() ")
_HEX_RE = re.compile(r"^[0-9a-f]+$")


def utc_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sanitize_file_name(name: Optional[str], limit: int = MAX_STRING_BYTES) -> str:
    """Reduce a file name to a safe ASCII subset that fits one metadata string."""
    if not name:
        return "certificate.pdf"
    decomposed = unicodedata.normalize("NFKD", name)
    cleaned = "".join(
        c if c in _SAFE_NAME_CHARS else "_"
        for c in decomposed
        if not unicodedata.combining(c)
    ).strip()
    if not cleaned:
        return "certificate.pdf"
    if len(cleaned) <= limit:
        return cleaned
    stem, dot, ext = cleaned.rpartition(".")
    if dot and stem and len(ext) < 8:
        return stem[: limit - len(ext) - 1] + "." + ext
    return cleaned[:limit]


def _clip(value: str) -> str:
    return value.encode("ascii", "ignore")[:MAX_STRING_BYTES].decode("ascii")


def build_record(fingerprint, file_name, issuer, network, issued_at=None) -> CertificateRecord:
    return CertificateRecord(
        hash=fingerprint,
        file_name=sanitize_file_name(file_name),
        issued_at=issued_at or utc_timestamp(),
        issuer=_clip(issuer),
        network=network,
        version=SCHEMA_VERSION,
    )


def encode(record: CertificateRecord, label: int = METADATA_LABEL) -> dict:
    payload = {}
    for field_name, key in CANONICAL_KEYS.items():
        value = getattr(record, field_name)
        if value is None:
            continue
        if field_name == "file_name":
            value = sanitize_file_name(value)
        payload[key] = _clip(str(value))
    return {label: payload}


def decode(wire: Any, label: int = METADATA_LABEL, min_prefix: int = MIN_HASH_PREFIX) -> Optional[CertificateRecord]:
    """
    Return the certificate carried by a transaction's metadata, or None when
    there is none. Never raises on malformed input.
    """
    payload = _find_label(wire, label)
    if not isinstance(payload, Mapping):
        return None

    values = {name: lookup(payload, name) for name in FIELD_ALIASES}
    hash_value = normalize_hash(values["hash"])
    if hash_value is None or not is_valid_hash(hash_value, min_prefix):
        return None

    return CertificateRecord(
        hash=hash_value,
        file_name=values["file_name"],
        issued_at=values["issued_at"],
        issuer=values["issuer"],
        network=values["network"],
        version=values["version"],
    )


def lookup(payload: Mapping, field_name: str) -> Optional[str]:
    """First present alias for a logical field, in declared order."""
    for key in FIELD_ALIASES[field_name]:
        if key in payload:
            text = _as_text(payload[key])
            if text is not None:
                return text
    return None


def _find_label(wire: Any, label: int) -> Any:
    if isinstance(wire, Mapping):
        if label in wire:
            return wire[label]
        return wire.get(str(label))
    # Blockfrost list form: [{"label": "674", "json_metadata": {...}}, ...]
    if isinstance(wire, (list, tuple)):
        for entry in wire:
            if isinstance(entry, Mapping) and str(entry.get("label")) == str(label):
                return entry.get("json_metadata")
    return None


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    # long strings are sometimes split into 64 byte chunks
    if isinstance(value, (list, tuple)) and value and all(isinstance(v, str) for v in value):
        return "".join(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def normalize_hash(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    return value


def is_valid_hash(value: str, min_prefix: int = MIN_HASH_PREFIX) -> bool:
    return min_prefix <= len(value) <= HASH_LENGTH and bool(_HEX_RE.match(value))


def fingerprints_match(stored: Optional[str], candidate: Optional[str], min_prefix: int = MIN_HASH_PREFIX) -> bool:
    """
    Compare a stored hash with a freshly computed fingerprint.

    Stored values may be truncated by the metadata transport, so a prefix of
    at least ``min_prefix`` hex chars also counts as a match. A shorter
    stored prefix never matches.
    """
    stored = normalize_hash(stored)
    candidate = normalize_hash(candidate)
    if not stored or not candidate:
        return False
    if stored == candidate:
        return True
    shorter, longer = sorted((stored, candidate), key=len)
    if len(shorter) < min_prefix:
        return False
    return longer.startswith(shorter)
