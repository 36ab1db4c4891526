"""Tests for the relayer client and redeem encoding."""

import json

import pytest
import respx
from eth_abi import decode
from eth_utils import is_checksum_address, keccak, to_checksum_address
from httpx import Response

from polymarket_client.config import get_contract_config
from polymarket_client.constants import (
    SAFE_FACTORY_ADDRESS,
    SAFE_INIT_CODE_HASH,
    ZERO_ADDRESS,
    ZERO_BYTES32,
)
from polymarket_client.eip712 import hash_safe_tx
from polymarket_client.exceptions import InvalidArgumentError, PolymarketApiError, RelayerError
from polymarket_client.relayer import (
    CTF_REDEEM,
    EIP191_PREFIX,
    ERC20_ALLOWANCE,
    ERC20_APPROVE,
    ERC20_BALANCE_OF,
    MAX_UINT256,
    NEG_RISK_REDEEM,
    AbiFunction,
    CtfRedeem,
    NegRiskRedeem,
    RelayerClient,
    derive_safe_address,
    encode_redeem,
    sign_safe_tx,
)
from polymarket_client.signer import recover_address

from tests.conftest import KEY_ONE_ADDRESS, TEST_ADDRESS, FakeWeb3


def relayer(private_key, relayer_host, code=b"\x60\x80", **kwargs):
    return RelayerClient(private_key, host=relayer_host, web3=FakeWeb3(code), **kwargs)


class TestDeriveSafeAddress:
    """Tests for CREATE2 Safe address derivation."""

    def test_checksummed(self):
        assert is_checksum_address(derive_safe_address(TEST_ADDRESS))

    def test_create2_formula(self):
        salt = keccak(b"\x00" * 12 + bytes.fromhex(TEST_ADDRESS[2:]))
        digest = keccak(
            b"\xff"
            + bytes.fromhex(SAFE_FACTORY_ADDRESS[2:])
            + salt
            + bytes.fromhex(SAFE_INIT_CODE_HASH[2:])
        )
        assert derive_safe_address(TEST_ADDRESS) == to_checksum_address(digest[12:])

    @pytest.mark.parametrize(
        "owner,safe",
        [
            (KEY_ONE_ADDRESS, "0x51b7C68A71dCcBc0b7FA4400934a293D8f4d3Ba8"),
            (TEST_ADDRESS, "0xd93B25cb943D14d0d34FBaF01Fc93a0f8b5F6E47"),
            ("0x" + "11" * 20, "0x6B503aD95D139BE2A07CD0E8888D71c6403D9C9C"),
            ("0x" + "00" * 19 + "01", "0x766b6851A199BF91Ae3fa13B1cfaC5187355118f"),
        ],
    )
    def test_known_vectors(self, owner, safe):
        assert derive_safe_address(owner) == safe

    def test_repeated_calls_identical(self):
        first = derive_safe_address(KEY_ONE_ADDRESS)
        for _ in range(3):
            assert derive_safe_address(KEY_ONE_ADDRESS) == first

    def test_case_insensitive(self):
        assert derive_safe_address(TEST_ADDRESS.lower()) == derive_safe_address(TEST_ADDRESS)

    def test_distinct_owners(self):
        assert derive_safe_address(TEST_ADDRESS) != derive_safe_address(KEY_ONE_ADDRESS)

    def test_invalid_owner(self):
        with pytest.raises(InvalidArgumentError):
            derive_safe_address("not-an-address")


class TestRedeemEncoding:
    """Tests for redeem call encoding."""

    def test_ctf_redeem(self, condition_id):
        contracts = get_contract_config(137)
        intent = CtfRedeem(
            condition_id=condition_id,
            index_sets=[1, 2],
            collateral_token=contracts.collateral,
        )
        target, data = encode_redeem(intent, contracts)

        assert target == contracts.conditional_tokens
        assert data[:4] == keccak(text="redeemPositions(address,bytes32,bytes32,uint256[])")[:4]
        collateral, parent, condition, index_sets = decode(
            ["address", "bytes32", "bytes32", "uint256[]"], data[4:]
        )
        assert collateral.lower() == contracts.collateral.lower()
        assert parent == bytes.fromhex(ZERO_BYTES32[2:])
        assert condition == bytes.fromhex(condition_id[2:])
        assert list(index_sets) == [1, 2]

    def test_neg_risk_redeem(self, condition_id):
        contracts = get_contract_config(137)
        target, data = encode_redeem(NegRiskRedeem(condition_id, [5, 0]), contracts)

        assert target == contracts.neg_risk_adapter
        assert data[:4] == NEG_RISK_REDEEM.selector
        assert NEG_RISK_REDEEM.signature == "redeemPositions(bytes32,uint256[])"
        condition, amounts = decode(["bytes32", "uint256[]"], data[4:])
        assert condition == bytes.fromhex(condition_id[2:])
        assert list(amounts) == [5, 0]

    def test_condition_id_length(self):
        with pytest.raises(InvalidArgumentError):
            NegRiskRedeem("0x1234", [1, 1])

    @pytest.mark.parametrize("size", [31, 33])
    def test_condition_id_off_by_one(self, size):
        condition_id = "0x" + "ab" * size
        with pytest.raises(InvalidArgumentError):
            NegRiskRedeem(condition_id, [1, 1])
        with pytest.raises(InvalidArgumentError):
            CtfRedeem(condition_id, [1, 2], get_contract_config(137).collateral)

    def test_neg_risk_three_amounts(self, condition_id):
        with pytest.raises(InvalidArgumentError):
            NegRiskRedeem(condition_id, [1, 2, 3])

    def test_zero_address_collateral(self, condition_id):
        with pytest.raises(InvalidArgumentError):
            CtfRedeem(condition_id, [1, 2], ZERO_ADDRESS)

    def test_neg_risk_arity(self, condition_id):
        with pytest.raises(InvalidArgumentError):
            NegRiskRedeem(condition_id, [1])

    def test_empty_index_sets(self, condition_id):
        with pytest.raises(InvalidArgumentError):
            CtfRedeem(condition_id, [], get_contract_config(137).collateral)

    def test_zero_index_set(self, condition_id):
        with pytest.raises(InvalidArgumentError):
            CtfRedeem(condition_id, [0], get_contract_config(137).collateral)

    def test_abi_lookup_missing(self):
        with pytest.raises(InvalidArgumentError):
            AbiFunction.from_abi([], "redeemPositions")

    def test_abi_arity(self):
        with pytest.raises(InvalidArgumentError):
            CTF_REDEEM.encode_call(1, 2)


class TestSafeSignature:
    """Tests for Safe transaction signatures."""

    def test_v_shifted(self, signer):
        signature = sign_safe_tx(signer, keccak(b"safe tx"))
        assert len(signature) == 65
        assert signature[64] in (31, 32)

    def test_recovers_through_eip191(self, signer, test_address):
        digest = keccak(b"safe tx")
        signature = sign_safe_tx(signer, digest)
        assert recover_address(keccak(EIP191_PREFIX + digest), signature) == test_address


class TestRelayerClient:
    """Tests for RelayerClient."""

    def test_addresses(self, private_key, relayer_host, test_address):
        client = relayer(private_key, relayer_host)
        assert client.address == test_address
        assert client.safe_address == derive_safe_address(test_address)

    def test_is_safe_deployed(self, private_key, relayer_host):
        assert relayer(private_key, relayer_host, code=b"\x60").is_safe_deployed()
        assert not relayer(private_key, relayer_host, code=b"").is_safe_deployed()

    def test_is_safe_deployed_without_rpc(self, private_key, relayer_host):
        client = RelayerClient(private_key, host=relayer_host)
        with pytest.raises(InvalidArgumentError):
            client.is_safe_deployed()

    @respx.mock
    def test_get_nonce(self, private_key, relayer_host, test_address):
        route = respx.get(f"{relayer_host}/nonce").mock(
            return_value=Response(200, json={"nonce": "7"})
        )
        assert relayer(private_key, relayer_host).get_nonce() == 7
        params = route.calls.last.request.url.params
        assert params["address"] == test_address
        assert params["type"] == "SAFE"

    @pytest.mark.parametrize(
        "body", [{}, {"nonce": ""}, {"nonce": None}, {"nonce": "abc"}, {"nonce": True}, []]
    )
    @respx.mock
    def test_get_nonce_rejects_unusable_response(self, private_key, relayer_host, body):
        respx.get(f"{relayer_host}/nonce").mock(return_value=Response(200, json=body))
        with pytest.raises(RelayerError):
            relayer(private_key, relayer_host).get_nonce()

    @respx.mock
    def test_missing_nonce_blocks_submit(self, private_key, relayer_host, chain_id):
        respx.get(f"{relayer_host}/nonce").mock(return_value=Response(200, json={}))
        submit = respx.post(f"{relayer_host}/submit")
        client = relayer(private_key, relayer_host)
        with pytest.raises(RelayerError):
            client.submit_transaction(get_contract_config(chain_id).conditional_tokens, b"\x01")
        assert not submit.called

    @respx.mock
    def test_submit_timeout(self, private_key, relayer_host, chain_id):
        nonce = respx.get(f"{relayer_host}/nonce").mock(
            return_value=Response(200, json={"nonce": "2"})
        )
        submit = respx.post(f"{relayer_host}/submit").mock(
            return_value=Response(200, json={"transactionID": "tx-4", "state": "STATE_NEW"})
        )
        client = relayer(private_key, relayer_host)
        client.submit_transaction(
            get_contract_config(chain_id).conditional_tokens, b"\x01", timeout=4.0
        )
        assert nonce.calls.last.request.extensions["timeout"]["read"] == 4.0
        assert submit.calls.last.request.extensions["timeout"]["read"] == 4.0

    def test_build_safe_transaction(self, private_key, relayer_host, test_address, chain_id):
        client = relayer(private_key, relayer_host)
        target = get_contract_config(chain_id).conditional_tokens
        payload = client.build_safe_transaction(target, "0xdeadbeef", 3)

        assert payload["from"] == test_address
        assert payload["to"] == target
        assert payload["proxyWallet"] == client.safe_address
        assert payload["data"] == "0xdeadbeef"
        assert payload["nonce"] == "3"
        assert payload["type"] == "SAFE"
        assert payload["signatureParams"]["operation"] == "0"

        digest = hash_safe_tx(target, "0xdeadbeef", 3, chain_id, client.safe_address)
        signature = bytes.fromhex(payload["signature"][2:])
        assert recover_address(keccak(EIP191_PREFIX + digest), signature) == test_address

    @respx.mock
    def test_redeem_positions(self, private_key, relayer_host, condition_id, chain_id):
        respx.get(f"{relayer_host}/nonce").mock(return_value=Response(200, json={"nonce": 1}))
        submit = respx.post(f"{relayer_host}/submit").mock(
            return_value=Response(
                200,
                json={"transactionID": "tx-1", "transactionHash": "0xabc", "state": "STATE_NEW"},
            )
        )
        client = relayer(private_key, relayer_host)
        result = client.redeem_positions(NegRiskRedeem(condition_id, [1, 2]))

        assert result.transaction_id == "tx-1"
        assert result.transaction_hash == "0xabc"
        body = json.loads(submit.calls.last.request.content)
        assert body["to"] == get_contract_config(chain_id).neg_risk_adapter
        assert body["nonce"] == "1"

    def test_redeem_requires_deployed_safe(self, private_key, relayer_host, condition_id):
        client = relayer(private_key, relayer_host, code=b"")
        with pytest.raises(RelayerError):
            client.redeem_positions(NegRiskRedeem(condition_id, [1, 2]))

    @respx.mock
    def test_submit_stamps_builder_headers(
        self, private_key, relayer_host, builder_creds, chain_id
    ):
        from polymarket_client.auth import BuilderAuth

        respx.get(f"{relayer_host}/nonce").mock(return_value=Response(200, json={"nonce": 0}))
        submit = respx.post(f"{relayer_host}/submit").mock(
            return_value=Response(200, json={"transactionID": "tx-2", "state": "STATE_NEW"})
        )
        client = relayer(private_key, relayer_host, builder_auth=BuilderAuth(builder_creds))
        client.submit_transaction(get_contract_config(chain_id).conditional_tokens, b"\x01")

        headers = submit.calls.last.request.headers
        assert headers["POLY_BUILDER_API_KEY"] == "builder-key"
        assert headers["POLY_BUILDER_SIGNATURE"]

    @respx.mock
    def test_submit_api_error(self, private_key, relayer_host, chain_id):
        respx.get(f"{relayer_host}/nonce").mock(return_value=Response(200, json={"nonce": 0}))
        respx.post(f"{relayer_host}/submit").mock(
            return_value=Response(400, json={"error": "invalid nonce"})
        )
        client = relayer(private_key, relayer_host)
        with pytest.raises(PolymarketApiError) as exc_info:
            client.submit_transaction(get_contract_config(chain_id).conditional_tokens, b"")
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "invalid nonce"

    @respx.mock
    def test_deploy_safe(self, private_key, relayer_host, test_address):
        route = respx.post(f"{relayer_host}/deploy-safe").mock(
            return_value=Response(200, json={"transactionID": "tx-3", "state": "submitted"})
        )
        client = relayer(private_key, relayer_host, code=b"")
        result = client.deploy_safe()

        assert result.state == "submitted"
        body = json.loads(route.calls.last.request.content)
        assert body["from"] == test_address
        assert body["safe"] == client.safe_address
        assert body["saltNonce"] == "0"
        assert body["type"] == "SAFE-CREATE"
        assert body["signature"].startswith("0x")

    def test_deploy_safe_already_deployed(self, private_key, relayer_host):
        result = relayer(private_key, relayer_host, code=b"\x60").deploy_safe()
        assert result.state == "already_deployed"

    @respx.mock
    def test_deploy_safe_rejected(self, private_key, relayer_host):
        respx.post(f"{relayer_host}/deploy-safe").mock(
            return_value=Response(200, json={"state": "failed", "message": "no gas"})
        )
        with pytest.raises(RelayerError):
            relayer(private_key, relayer_host, code=b"").deploy_safe()


class TestCollateral:
    """Tests for USDC approvals and on-chain reads."""

    def test_erc20_selectors(self):
        assert ERC20_APPROVE.selector == bytes.fromhex("095ea7b3")
        assert ERC20_ALLOWANCE.selector == bytes.fromhex("dd62ed3e")
        assert ERC20_BALANCE_OF.selector == bytes.fromhex("70a08231")

    @respx.mock
    def test_approve_collateral_unlimited(self, private_key, relayer_host, chain_id):
        respx.get(f"{relayer_host}/nonce").mock(return_value=Response(200, json={"nonce": "9"}))
        submit = respx.post(f"{relayer_host}/submit").mock(
            return_value=Response(200, json={"transactionID": "tx-5", "state": "STATE_NEW"})
        )
        contracts = get_contract_config(chain_id)
        result = relayer(private_key, relayer_host).approve_collateral(contracts.exchange)

        assert result.transaction_id == "tx-5"
        body = json.loads(submit.calls.last.request.content)
        assert body["to"] == contracts.collateral
        assert body["nonce"] == "9"
        data = bytes.fromhex(body["data"][2:])
        assert data[:4] == ERC20_APPROVE.selector
        spender, amount = decode(["address", "uint256"], data[4:])
        assert spender.lower() == contracts.exchange.lower()
        assert amount == MAX_UINT256

    @respx.mock
    def test_approve_collateral_for_amount(self, private_key, relayer_host, chain_id):
        respx.get(f"{relayer_host}/nonce").mock(return_value=Response(200, json={"nonce": "0"}))
        submit = respx.post(f"{relayer_host}/submit").mock(
            return_value=Response(200, json={"transactionID": "tx-6", "state": "STATE_NEW"})
        )
        spender = get_contract_config(chain_id).neg_risk_exchange
        relayer(private_key, relayer_host).approve_collateral_for_amount(spender, "12.5")

        data = bytes.fromhex(json.loads(submit.calls.last.request.content)["data"][2:])
        _, amount = decode(["address", "uint256"], data[4:])
        assert amount == 12_500_000

    def test_approve_negative_amount(self, private_key, relayer_host, chain_id):
        spender = get_contract_config(chain_id).exchange
        with pytest.raises(InvalidArgumentError):
            relayer(private_key, relayer_host).approve_collateral_for_amount(spender, -1)

    def test_approve_invalid_spender(self, private_key, relayer_host):
        with pytest.raises(InvalidArgumentError):
            relayer(private_key, relayer_host).approve_collateral("0x1234")

    def test_get_collateral_allowance(self, private_key, relayer_host, chain_id, test_address):
        web3 = FakeWeb3(call_result=5_000_000)
        client = RelayerClient(private_key, host=relayer_host, web3=web3)
        contracts = get_contract_config(chain_id)

        assert client.get_collateral_allowance(test_address, contracts.exchange) == 5_000_000
        call = web3.eth.calls[-1]
        assert call["to"] == to_checksum_address(contracts.collateral)
        data = bytes.fromhex(call["data"][2:])
        assert data[:4] == ERC20_ALLOWANCE.selector
        owner, spender = decode(["address", "address"], data[4:])
        assert owner.lower() == test_address.lower()
        assert spender.lower() == contracts.exchange.lower()

    def test_get_collateral_balance_defaults_to_safe(self, private_key, relayer_host):
        web3 = FakeWeb3(call_result=42)
        client = RelayerClient(private_key, host=relayer_host, web3=web3)

        assert client.get_collateral_balance() == 42
        data = bytes.fromhex(web3.eth.calls[-1]["data"][2:])
        assert data[:4] == ERC20_BALANCE_OF.selector
        (account,) = decode(["address"], data[4:])
        assert account.lower() == client.safe_address.lower()

    def test_reads_require_rpc(self, private_key, relayer_host, test_address):
        client = RelayerClient(private_key, host=relayer_host)
        with pytest.raises(InvalidArgumentError):
            client.get_collateral_balance(test_address)
