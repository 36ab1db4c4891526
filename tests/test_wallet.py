"""Tests for wallet variants."""

import pytest
from eth_abi import decode

from polymarket_client.config import get_contract_config
from polymarket_client.constants import PROXY_FACTORY_ADDRESS
from polymarket_client.exceptions import InvalidArgumentError
from polymarket_client.relayer import CtfRedeem, derive_safe_address
from polymarket_client.wallet import (
    PROXY_CALL,
    SAFE_EXEC_TRANSACTION,
    ProxyWallet,
    SafeWallet,
    build_redeem_transaction,
    build_wallet_call,
    is_deployed,
    prevalidated_signature,
    wallet_address,
)

from tests.conftest import FakeWeb3

TARGET = "0x4D97DCd97eC945f40cF65F87097ACe5EA0476045"


class TestWallets:
    """Tests for wallet construction and addressing."""

    def test_safe_address_derived(self, test_address):
        wallet = SafeWallet(owner=test_address.lower())
        assert wallet.owner == test_address
        assert wallet.safe_address == derive_safe_address(test_address)
        assert wallet_address(wallet) == wallet.safe_address

    def test_explicit_safe_address(self, test_address):
        wallet = SafeWallet(owner=test_address, safe_address=TARGET.lower())
        assert wallet.safe_address == TARGET

    def test_proxy_address_is_owner(self, test_address):
        assert wallet_address(ProxyWallet(owner=test_address)) == test_address

    def test_invalid_owner(self):
        with pytest.raises(InvalidArgumentError):
            ProxyWallet(owner="0x12")

    def test_proxy_always_deployed(self, test_address):
        assert is_deployed(ProxyWallet(owner=test_address))

    def test_safe_deployment_check(self, test_address):
        wallet = SafeWallet(owner=test_address)
        assert is_deployed(wallet, FakeWeb3(b"\x60"))
        assert not is_deployed(wallet, FakeWeb3(b""))

    def test_safe_deployment_requires_web3(self, test_address):
        with pytest.raises(InvalidArgumentError):
            is_deployed(SafeWallet(owner=test_address))


class TestWalletCalls:
    """Tests for owner-executed wallet calls."""

    def test_prevalidated_signature(self, test_address):
        signature = prevalidated_signature(test_address)
        assert len(signature) == 65
        assert signature[12:32] == bytes.fromhex(test_address[2:])
        assert signature[32:64] == b"\x00" * 32
        assert signature[64] == 1

    def test_safe_exec_transaction(self, test_address):
        wallet = SafeWallet(owner=test_address)
        tx = build_wallet_call(wallet, TARGET, b"\xab\xcd")

        assert tx.to == wallet.safe_address
        assert tx.data[:4] == SAFE_EXEC_TRANSACTION.selector
        values = decode(list(SAFE_EXEC_TRANSACTION.input_types), tx.data[4:])
        assert values[0].lower() == TARGET.lower()
        assert values[2] == b"\xab\xcd"
        assert values[9] == prevalidated_signature(test_address)

    def test_proxy_call(self, test_address):
        tx = build_wallet_call(ProxyWallet(owner=test_address), TARGET, b"\x01")

        assert tx.to == PROXY_FACTORY_ADDRESS
        assert PROXY_CALL.signature == "proxy((uint8,address,uint256,bytes)[])"
        (calls,) = decode(list(PROXY_CALL.input_types), tx.data[4:])
        type_code, to, value, data = calls[0]
        assert type_code == 1
        assert to.lower() == TARGET.lower()
        assert value == 0
        assert data == b"\x01"

    def test_redeem_transaction(self, test_address, condition_id):
        contracts = get_contract_config(137)
        intent = CtfRedeem(condition_id, [1, 2], contracts.collateral)
        tx = build_redeem_transaction(ProxyWallet(owner=test_address), intent, contracts)
        payload = tx.to_dict()
        assert payload["to"] == PROXY_FACTORY_ADDRESS
        assert payload["data"].startswith("0x")
        assert payload["value"] == 0
