# certledger/gateway.py
import logging
from typing import Any, Dict, Iterator, Optional, Tuple
from urllib.parse import quote

import requests
from hexbytes import HexBytes

from certledger.errors import (
    InternalError,
    NotFoundError,
    UpstreamRejected,
    UpstreamUnavailable,
    ValidationError,
)
from certledger.models import LedgerTransactionRef
from certledger.settings import LedgerConfig

logger = logging.getLogger(__name__)

CBOR_CONTENT_TYPE = "application/cbor"
JSON_CONTENT_TYPE = "application/json"
MAX_PAGE_SIZE = 100
SUPPORTED_METHODS = ("get", "post")


class BlockfrostGateway:
    """
    Read/write access to the Blockfrost ledger index.

    The project key is attached here and never leaves the server. Calls are
    made exactly once; nothing in this class retries.
    """

    def __init__(self, config: LedgerConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def _headers(self, content_type: Optional[str]) -> Dict[str, str]:
        return {
            "project_id": self.config.require_api_key(),
            "Content-Type": content_type or JSON_CONTENT_TYPE,
        }

    def relay(
        self,
        endpoint: str,
        method: str = "get",
        body: Any = None,
        params: Optional[dict] = None,
        content_type: Optional[str] = None,
    ) -> Tuple[int, Any]:
        """
        Perform one call against the index and return (status, json body).
        Failures are raised as GatewayError subclasses.
        """
        method = method.lower()
        headers = self._headers(content_type)
        url = f"{self.config.base_url}{endpoint}"

        kwargs: Dict[str, Any] = {"headers": headers, "params": params, "timeout": self.config.upstream_timeout}
        if method == "post":
            if content_type == CBOR_CONTENT_TYPE:
                try:
                    kwargs["data"] = bytes(HexBytes(body))
                except (TypeError, ValueError):
                    raise ValidationError("CBOR body must be a hex string")
            else:
                kwargs["json"] = body

        try:
            res = self.session.request(method.upper(), url, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning("No response from Blockfrost for %s %s: %s", method.upper(), endpoint, e)
            raise UpstreamUnavailable()
        except requests.RequestException as e:
            logger.exception("Error proxying Blockfrost request: %s", e)
            raise InternalError()

        if not res.ok:
            error_body = _error_body(res)
            if res.status_code == 404:
                raise NotFoundError(error_body)
            logger.info("Blockfrost rejected %s %s with %s", method.upper(), endpoint, res.status_code)
            raise UpstreamRejected(res.status_code, error_body)

        try:
            return res.status_code, res.json()
        except ValueError:
            logger.error("Blockfrost returned a non-JSON body for %s", endpoint)
            raise InternalError()

    def list_transactions(self, address: str, order: str = "desc", limit: int = 50) -> Iterator[LedgerTransactionRef]:
        """
        Yield the address's transactions in the requested order, at most
        ``limit`` of them. Pages are fetched lazily as the caller iterates.
        An address the index has never seen yields nothing.
        """
        page_size = max(1, min(limit, MAX_PAGE_SIZE))
        page = 1
        yielded = 0
        while yielded < limit:
            try:
                _, rows = self.relay(
                    f"/addresses/{quote(address, safe='')}/transactions",
                    params={"order": order, "count": page_size, "page": page},
                )
            except NotFoundError:
                return
            for row in rows:
                yield LedgerTransactionRef.from_blockfrost(row)
                yielded += 1
                if yielded >= limit:
                    return
            if len(rows) < page_size:
                return
            page += 1

    def get_metadata(self, tx_hash: str) -> Optional[dict]:
        """Return {label: json_metadata} for a transaction, or None when it has none."""
        try:
            _, entries = self.relay(f"/txs/{quote(tx_hash, safe='')}/metadata")
        except NotFoundError:
            return None
        labelled = {
            str(entry["label"]): entry.get("json_metadata")
            for entry in entries or []
            if isinstance(entry, dict) and entry.get("label") is not None
        }
        return labelled or None

    def submit(self, signed_tx) -> str:
        """Submit a signed transaction (CBOR bytes or hex). Single attempt."""
        cbor_hex = HexBytes(signed_tx).hex()
        if cbor_hex.startswith("0x"):
            cbor_hex = cbor_hex[2:]
        _, tx_hash = self.relay("/tx/submit", method="post", body=cbor_hex, content_type=CBOR_CONTENT_TYPE)
        logger.info("Transaction submitted: %s", tx_hash)
        return tx_hash


def _error_body(res: requests.Response) -> Any:
    try:
        return res.json()
    except ValueError:
        return {"error": res.text or res.reason or f"HTTP {res.status_code}"}
