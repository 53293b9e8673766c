# certledger/errors.py
from typing import Any, Optional


class CertLedgerError(Exception):
    """Base class for every failure that terminates an issuance or verification run."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> Any:
        return {"error": self.message}


class ValidationError(CertLedgerError):
    status_code = 400


class NotConnectedError(CertLedgerError):
    status_code = 409


class NoSpendableFundsError(NotConnectedError):
    pass


class ConfigurationError(CertLedgerError):
    status_code = 500


class UnsupportedCapabilityError(CertLedgerError):
    status_code = 501

    def __init__(self, capability: str, wallet_name: Optional[str] = None):
        who = wallet_name or "wallet"
        super().__init__(f"{who} does not support {capability}")
        self.capability = capability


# ---------- Index gateway ----------
class GatewayError(CertLedgerError):
    pass


class UpstreamRejected(GatewayError):
    """The ledger index answered with a non-2xx status. The body is relayed as-is."""

    def __init__(self, status_code: int, body: Any):
        self.status_code = status_code
        self.body = body
        super().__init__(_describe_body(body) or f"Blockfrost API error: {status_code}")

    def to_payload(self) -> Any:
        return self.body


class NotFoundError(UpstreamRejected):
    def __init__(self, body: Any = None):
        super().__init__(404, body if body is not None else {"error": "Not found"})


class UpstreamUnavailable(GatewayError):
    status_code = 503

    def __init__(self, message: str = "No response from Blockfrost API."):
        super().__init__(message)


class InternalError(GatewayError):
    status_code = 500

    def __init__(self, message: str = "Internal server error."):
        super().__init__(message)


def _describe_body(body: Any) -> str:
    # Blockfrost error bodies look like {"status_code": 400, "error": "...", "message": "..."}
    if isinstance(body, dict):
        parts = [str(body[k]) for k in ("error", "message") if body.get(k)]
        return ": ".join(parts)
    if isinstance(body, str):
        return body
    return ""
