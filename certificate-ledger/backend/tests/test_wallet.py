import pytest

from certledger.errors import NotConnectedError, UnsupportedCapabilityError
from certledger.wallet import WalletAdapter, connect_wallet, discover_wallets, is_valid_address, to_bech32

from conftest import WALLET_ADDRESS, FakeCip30Api, FakeExtension

# header 0x00: base address, testnet; header 0x01: base address, mainnet
TESTNET_HEX = "00" + "11" * 28 + "22" * 28
MAINNET_HEX = "01" + "11" * 28 + "22" * 28
STAKE_TEST_HEX = "e0" + "33" * 28
BYRON_HEX = "82d818582183581c" + "44" * 28


class SnakeCaseWallet:
    """A wallet already exposing its API directly, with Python-style names."""

    def __init__(self, address):
        self.address = address

    def get_change_address(self):
        return self.address

    def get_utxos(self):
        return None

    def get_network_id(self):
        return 1

    def sign_transaction(self, tx):
        return tx + "-signed"


class TestBech32:

    def test_testnet_payment_address(self):
        assert to_bech32(TESTNET_HEX).startswith("addr_test1")

    def test_mainnet_payment_address(self):
        encoded = to_bech32(MAINNET_HEX)
        assert encoded.startswith("addr1")
        assert not encoded.startswith("addr_test")

    def test_stake_address(self):
        assert to_bech32(STAKE_TEST_HEX).startswith("stake_test1")

    def test_already_bech32_unchanged(self):
        assert to_bech32(WALLET_ADDRESS) == WALLET_ADDRESS

    def test_bytes_address_encoded(self):
        assert to_bech32(bytes.fromhex(TESTNET_HEX)) == to_bech32(TESTNET_HEX)

    def test_same_input_same_output(self):
        assert to_bech32(TESTNET_HEX) == to_bech32(TESTNET_HEX)

    def test_byron_has_no_bech32_form(self):
        with pytest.raises(ValueError):
            to_bech32(BYRON_HEX)

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            to_bech32("DdzFFzCqrhs...")


class TestAddressValidation:

    def test_encoded_addresses_are_valid(self):
        assert is_valid_address(to_bech32(TESTNET_HEX))
        assert is_valid_address(to_bech32(MAINNET_HEX))
        assert is_valid_address(to_bech32(STAKE_TEST_HEX))

    def test_upper_case_accepted(self):
        assert is_valid_address(to_bech32(TESTNET_HEX).upper())

    def test_raw_hex_accepted(self):
        assert is_valid_address(TESTNET_HEX)

    def test_bad_checksum(self):
        address = to_bech32(TESTNET_HEX)
        tampered = address[:-1] + ("q" if address[-1] != "q" else "p")
        assert not is_valid_address(tampered)

    @pytest.mark.parametrize("address", [
        None,
        "",
        "x/../../txs/abc",
        "addr_test1xyz?count=100",
        "addr_test1qpzry9x8/transactions",
        "bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq",
        "Addr_test1qpzry9x8gf2tvdw0s3jn54khce6mua7l",
        "abc",
    ])
    def test_rejected(self, address):
        assert not is_valid_address(address)


class TestConnect:

    def test_handshake_enables_and_builds_session(self, cip30_api):
        extension = FakeExtension(cip30_api)
        adapter = WalletAdapter(extension)

        session = adapter.connect()

        assert extension.enable_calls == 1
        assert adapter.connected
        assert session.address == WALLET_ADDRESS
        assert session.network_id == 0
        assert session.wallet_name == "lace"
        assert not session.is_mainnet

    def test_repeated_connect_does_not_enable_again(self, cip30_api):
        extension = FakeExtension(cip30_api)
        adapter = WalletAdapter(extension)
        first = adapter.connect()
        second = adapter.connect()

        assert extension.enable_calls == 1
        assert first == second
        assert first is not second

    def test_session_rederived_after_reconnect(self, cip30_api):
        extension = FakeExtension(cip30_api)
        adapter = WalletAdapter(extension)
        adapter.connect()
        adapter.disconnect()
        assert adapter.session is None

        cip30_api.address = "addr_test1other"
        assert adapter.connect().address == "addr_test1other"
        assert extension.enable_calls == 2

    def test_enable_returning_nothing(self):
        extension = FakeExtension(None)
        with pytest.raises(NotConnectedError):
            WalletAdapter(extension).connect()

    def test_object_without_enable_is_the_api(self):
        adapter = WalletAdapter(SnakeCaseWallet(MAINNET_HEX), name="custom")
        session = adapter.connect()
        assert session.address.startswith("addr1")
        assert session.is_mainnet

    def test_no_wallet(self):
        with pytest.raises(NotConnectedError):
            WalletAdapter(None)


class TestCapabilities:

    def test_calls_require_connection(self, cip30_api):
        adapter = WalletAdapter(FakeExtension(cip30_api))
        with pytest.raises(NotConnectedError):
            adapter.get_utxos()

    def test_disconnect_drops_access(self, wallet):
        wallet.disconnect()
        with pytest.raises(NotConnectedError):
            wallet.sign_transaction("tx")

    def test_camel_case_aliases(self, wallet, cip30_api):
        assert wallet.get_utxos() == ["utxo-1"]
        assert wallet.get_network_id() == 0
        assert wallet.sign_transaction("tx") == {"tx": "tx", "witness": "signed"}
        assert wallet.submit_transaction("signed") == "f" * 64
        assert cip30_api.submitted == ["signed"]

    def test_snake_case_aliases(self):
        adapter = WalletAdapter(SnakeCaseWallet(TESTNET_HEX))
        adapter.connect()
        assert adapter.get_utxos() == []
        assert adapter.sign_transaction("tx") == "tx-signed"

    def test_missing_capability_fails_fast(self):
        adapter = WalletAdapter(SnakeCaseWallet(TESTNET_HEX), name="custom")
        adapter.connect()
        assert not adapter.supports("submit_transaction")
        with pytest.raises(UnsupportedCapabilityError) as exc:
            adapter.submit_transaction("signed")
        assert exc.value.capability == "submit_transaction"
        assert "custom" in exc.value.message


class TestCanonicalAddress:

    def test_prefers_used_address(self):
        api = FakeCip30Api(address="addr_test1used")
        api.getChangeAddress = lambda: "addr_test1change"
        adapter = WalletAdapter(FakeExtension(api))
        adapter.connect()
        assert adapter.canonical_address() == "addr_test1used"

    def test_falls_back_to_change_address(self):
        api = FakeCip30Api(address="addr_test1change")
        api.getUsedAddresses = lambda: []
        adapter = WalletAdapter(FakeExtension(api))
        adapter.connect()
        assert adapter.canonical_address() == "addr_test1change"

    def test_raw_hex_converted(self):
        adapter = WalletAdapter(FakeExtension(FakeCip30Api(address=TESTNET_HEX)))
        adapter.connect()
        assert adapter.canonical_address() == to_bech32(TESTNET_HEX)
        assert adapter.raw_address() == TESTNET_HEX

    def test_bytes_address_converted(self):
        api = FakeCip30Api(address=bytes.fromhex(TESTNET_HEX))
        adapter = WalletAdapter(FakeExtension(api))
        session = adapter.connect()
        assert session.address == to_bech32(TESTNET_HEX)

    def test_bytes_address_without_bech32_form_kept_as_hex(self):
        api = FakeCip30Api(address=bytes.fromhex(BYRON_HEX))
        adapter = WalletAdapter(FakeExtension(api))
        assert adapter.connect().address == BYRON_HEX

    def test_raw_form_kept_when_conversion_unavailable(self):
        adapter = WalletAdapter(FakeExtension(FakeCip30Api(address=BYRON_HEX)))
        adapter.connect()
        assert adapter.canonical_address() == BYRON_HEX


class TestDiscovery:

    def test_no_injected_wallets(self):
        assert discover_wallets(None) == []
        assert discover_wallets({}) == []

    def test_lists_wallets(self, cip30_api):
        found = discover_wallets({"lace": FakeExtension(cip30_api), "broken": None})
        assert [(w.key, w.name) for w in found] == [("lace", "lace")]

    def test_connect_by_key(self, cip30_api):
        adapter = connect_wallet({"lace": FakeExtension(cip30_api)}, "lace")
        assert adapter.session.address == WALLET_ADDRESS

    def test_connect_unknown_key(self):
        with pytest.raises(NotConnectedError, match="nami wallet not found"):
            connect_wallet({}, "nami")
