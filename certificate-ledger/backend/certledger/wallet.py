# certledger/wallet.py
"""
One capability surface over the many wallet objects a client can inject.

Wallet extensions name the same operation differently (``getChangeAddress``
vs ``get_change_address``, ``signTx`` vs ``sign_transaction`` ...). Every
capability below has an ordered alias list; a wallet lacking all of them
raises UnsupportedCapabilityError at the call site instead of an
AttributeError somewhere deeper.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from bech32 import CHARSET, bech32_encode, bech32_verify_checksum, convertbits
from hexbytes import HexBytes

from certledger.errors import NotConnectedError, UnsupportedCapabilityError
from certledger.models import WalletSession

logger = logging.getLogger(__name__)

CAPABILITY_ALIASES = {
    "get_change_address": ("getChangeAddress", "get_change_address"),
    "get_utxos": ("getUtxos", "get_utxos"),
    "get_used_addresses": ("getUsedAddresses", "get_used_addresses"),
    "get_network_id": ("getNetworkId", "get_network_id"),
    "sign_transaction": ("signTx", "sign_tx", "signTransaction", "sign_transaction"),
    "submit_transaction": ("submitTx", "submit_tx", "submitTransaction", "submit_transaction"),
}

HANDSHAKE_ALIASES = {
    "is_enabled": ("isEnabled", "is_enabled"),
    "enable": ("enable",),
}

BECH32_PREFIXES = ("addr", "stake")
BECH32_HRPS = ("addr", "addr_test", "stake", "stake_test")

_HEX_ADDRESS_RE = re.compile(r"^(?:[0-9a-fA-F]{2})+$")


def _resolve(target: Any, aliases) -> Optional[Any]:
    for attr in aliases:
        fn = getattr(target, attr, None)
        if callable(fn):
            return fn
    return None


@dataclass(frozen=True)
class WalletDescriptor:
    key: str
    name: str
    icon: Optional[str]
    wallet: Any


def discover_wallets(injected: Optional[Mapping[str, Any]]) -> list:
    """List the wallets a client injected. No wallets is a normal, empty result."""
    if not injected:
        return []
    found = []
    for key, wallet in injected.items():
        if wallet is None:
            continue
        found.append(WalletDescriptor(
            key=key,
            name=getattr(wallet, "name", None) or key,
            icon=getattr(wallet, "icon", None),
            wallet=wallet,
        ))
    return found


def to_bech32(raw_address: str) -> str:
    """
    Encode a raw Shelley address (hex string or bytes) as bech32. The header
    byte selects the prefix: payment addresses use ``addr``, reward addresses
    ``stake``, with ``_test`` appended off mainnet. Raises ValueError for
    anything else.
    """
    if isinstance(raw_address, (bytes, bytearray)):
        data = bytes(raw_address)
    elif raw_address.startswith(BECH32_PREFIXES):
        return raw_address
    else:
        data = bytes(HexBytes(raw_address))
    if not data:
        raise ValueError("empty address")
    header = data[0]
    addr_type, network = header >> 4, header & 0x0F
    if addr_type <= 7:
        prefix = "addr"
    elif addr_type in (14, 15):
        prefix = "stake"
    else:
        raise ValueError(f"address type {addr_type} has no bech32 form")
    hrp = prefix if network == 1 else f"{prefix}_test"
    words = convertbits(list(data), 8, 5)
    if words is None:
        raise ValueError("could not convert address bytes")
    return bech32_encode(hrp, words)


def is_valid_address(address: Any) -> bool:
    """
    True for a checksummed bech32 payment or stake address, or for a raw
    hex address. Shelley addresses are longer than the 90 chars
    ``bech32_decode`` accepts, so the checksum is verified directly.
    """
    if not isinstance(address, str) or not address:
        return False
    if _HEX_ADDRESS_RE.match(address):
        return True
    if address.lower() != address and address.upper() != address:
        return False
    hrp, sep, data_part = address.lower().rpartition("1")
    if not sep or hrp not in BECH32_HRPS or len(data_part) < 6:
        return False
    if any(c not in CHARSET for c in data_part):
        return False
    return bool(bech32_verify_checksum(hrp, [CHARSET.find(c) for c in data_part]))


def _printable(raw: Any) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).hex()
    return raw


class WalletAdapter:
    def __init__(self, wallet: Any, name: Optional[str] = None):
        if wallet is None:
            raise NotConnectedError("No wallet available")
        self._wallet = wallet
        self._api = None
        self.name = name or getattr(wallet, "name", None) or "wallet"
        self.session: Optional[WalletSession] = None

    @property
    def connected(self) -> bool:
        return self._api is not None

    def connect(self) -> WalletSession:
        """
        Enable the wallet and derive a fresh session. Connecting an adapter
        that is already enabled reuses its API handle instead of enabling
        the wallet a second time.
        """
        is_enabled = _resolve(self._wallet, HANDSHAKE_ALIASES["is_enabled"])
        enable = _resolve(self._wallet, HANDSHAKE_ALIASES["enable"])

        already = bool(is_enabled()) if is_enabled else False
        if already and self._api is not None:
            logger.info("%s already enabled, reusing API", self.name)
        elif enable is not None:
            logger.info("Enabling %s wallet...", self.name)
            api = enable()
            if api is None:
                raise NotConnectedError(f"Failed to get {self.name} wallet API")
            self._api = api
        else:
            # object is the capability API itself
            self._api = self._wallet

        self.session = WalletSession(
            address=self.canonical_address(),
            network_id=self.get_network_id() if self.supports("get_network_id") else None,
            api=self._api,
            wallet_name=self.name,
        )
        logger.info("%s wallet connected (network=%s)", self.name, self.session.network_id)
        return self.session

    def disconnect(self) -> None:
        self._api = None
        self.session = None

    def supports(self, capability: str) -> bool:
        target = self._api if self._api is not None else self._wallet
        return _resolve(target, CAPABILITY_ALIASES[capability]) is not None

    def _call(self, capability: str, *args):
        if self._api is None:
            raise NotConnectedError("Please connect your wallet first")
        fn = _resolve(self._api, CAPABILITY_ALIASES[capability])
        if fn is None:
            raise UnsupportedCapabilityError(capability, self.name)
        return fn(*args)

    def get_change_address(self) -> str:
        return self._call("get_change_address")

    def get_utxos(self) -> list:
        return list(self._call("get_utxos") or [])

    def get_used_addresses(self) -> list:
        return list(self._call("get_used_addresses") or [])

    def get_network_id(self) -> Optional[int]:
        return self._call("get_network_id")

    def sign_transaction(self, unsigned_tx):
        return self._call("sign_transaction", unsigned_tx)

    def submit_transaction(self, signed_tx) -> str:
        return self._call("submit_transaction", signed_tx)

    def raw_address(self) -> str:
        used = self.get_used_addresses() if self.supports("get_used_addresses") else []
        address = used[0] if used else self.get_change_address()
        if not address:
            raise NotConnectedError("Wallet returned no address")
        return address

    def canonical_address(self) -> str:
        """Bech32 address when it can be derived, otherwise the wallet's raw form."""
        raw = self.raw_address()
        try:
            return to_bech32(raw)
        except (ValueError, TypeError) as e:
            logger.warning("Could not get bech32 address, using raw address: %s", e)
            return _printable(raw)


def connect_wallet(injected: Optional[Mapping[str, Any]], key: str) -> WalletAdapter:
    wallet = (injected or {}).get(key)
    if wallet is None:
        raise NotConnectedError(f"{key} wallet not found")
    adapter = WalletAdapter(wallet, name=getattr(wallet, "name", None) or key)
    adapter.connect()
    return adapter
