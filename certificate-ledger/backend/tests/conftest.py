import hashlib
from unittest.mock import MagicMock

import pytest

from certledger.models import LedgerTransactionRef
from certledger.settings import LedgerConfig
from certledger.wallet import WalletAdapter, to_bech32

# base address, testnet
WALLET_ADDRESS = to_bech32("00" + "ab" * 56)
PDF_BYTES = b"%PDF-1.4\nhello certificate\n%%EOF"


class FakeLedger:
    """In-memory stand-in for the index gateway."""

    def __init__(self):
        self.history = {}
        self.metadata = {}
        self.submitted = []
        self.metadata_calls = []

    def add_transaction(self, address, tx_hash, wire=None, block_height=None):
        # newest first
        self.history.setdefault(address, []).insert(
            0, LedgerTransactionRef(tx_hash=tx_hash, block_time=1_700_000_000, block_height=block_height)
        )
        if wire is not None:
            self.metadata[tx_hash] = wire

    def list_transactions(self, address, order="desc", limit=50):
        for ref in self.history.get(address, [])[:limit]:
            yield ref

    def get_metadata(self, tx_hash):
        self.metadata_calls.append(tx_hash)
        return self.metadata.get(tx_hash)

    def submit(self, signed_tx):
        self.submitted.append(signed_tx)
        draft = signed_tx["tx"]["draft"]
        tx_hash = hashlib.sha256(repr(draft).encode()).hexdigest()
        wire = {str(label): payload for label, payload in draft.metadata.items()}
        self.add_transaction(draft.recipient, tx_hash, wire)
        return tx_hash


class FakeBuilder:
    def __init__(self):
        self.drafts = []

    def build(self, draft):
        self.drafts.append(draft)
        return {"draft": draft}


class FakeCip30Api:
    def __init__(self, address=WALLET_ADDRESS, utxos=("utxo-1",), network_id=0):
        self.address = address
        self.utxos = list(utxos)
        self.network_id = network_id
        self.signed = []
        self.submitted = []

    def getChangeAddress(self):
        return self.address

    def getUsedAddresses(self):
        return [self.address]

    def getUtxos(self):
        return list(self.utxos)

    def getNetworkId(self):
        return self.network_id

    def signTx(self, tx):
        self.signed.append(tx)
        return {"tx": tx, "witness": "signed"}

    def submitTx(self, tx):
        self.submitted.append(tx)
        return "f" * 64


class FakeExtension:
    name = "lace"
    icon = None

    def __init__(self, api):
        self.api = api
        self.enabled = False
        self.enable_calls = 0

    def isEnabled(self):
        return self.enabled

    def enable(self):
        self.enable_calls += 1
        self.enabled = True
        return self.api


def make_response(status, body=None, text=""):
    res = MagicMock()
    res.status_code = status
    res.ok = 200 <= status < 300
    res.text = text
    res.reason = ""
    if body is None and text:
        res.json.side_effect = ValueError("not json")
    else:
        res.json.return_value = body
    return res


@pytest.fixture
def config():
    return LedgerConfig(network="preprod", api_key="preprodTESTKEY123")


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def builder():
    return FakeBuilder()


@pytest.fixture
def cip30_api():
    return FakeCip30Api()


@pytest.fixture
def wallet(cip30_api):
    adapter = WalletAdapter(FakeExtension(cip30_api))
    adapter.connect()
    return adapter


@pytest.fixture
def session():
    return MagicMock()
