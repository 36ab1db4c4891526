"""
Relayer client for gasless Safe transactions.

The relayer executes meta-transactions from a counterfactual Gnosis Safe
owned by the signer's EOA. The Safe address is derived with CREATE2, so it is
known before deployment.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from eth_abi import decode, encode
from eth_account.messages import encode_typed_data
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address
from web3 import Web3

from polymarket_client.auth import BuilderAuth
from polymarket_client.config import ContractConfig, get_contract_config
from polymarket_client.constants import (
    DEFAULT_RELAYER_HOST,
    DEFAULT_TIMEOUT,
    POLYGON,
    RELAYER_ENDPOINTS,
    SAFE_FACTORY_ADDRESS,
    SAFE_FACTORY_NAME,
    SAFE_INIT_CODE_HASH,
    ZERO_ADDRESS,
    ZERO_BYTES32,
)
from polymarket_client.eip712 import (
    decode_hex,
    hash_safe_tx,
    hash_signable,
    require_address,
    require_uint,
)
from polymarket_client.exceptions import InvalidArgumentError, RelayerError
from polymarket_client.http import HttpClient, serialize_body
from polymarket_client.order_builder.helpers import Number, to_decimal, to_token_decimals
from polymarket_client.signer import Signer, create_signer
from polymarket_client.types import RelayerTransaction

logger = logging.getLogger(__name__)

EIP191_PREFIX = b"\x19Ethereum Signed Message:\n32"

# Relayer marker for an eth_sign owner signature in a Safe signature blob
SAFE_SIGNATURE_V_OFFSET = 4

CTF_REDEEM_ABI = [
    {
        "inputs": [
            {"name": "collateralToken", "type": "address"},
            {"name": "parentCollectionId", "type": "bytes32"},
            {"name": "conditionId", "type": "bytes32"},
            {"name": "indexSets", "type": "uint256[]"},
        ],
        "name": "redeemPositions",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    }
]

NEG_RISK_REDEEM_ABI = [
    {
        "inputs": [
            {"name": "_conditionId", "type": "bytes32"},
            {"name": "_amounts", "type": "uint256[]"},
        ],
        "name": "redeemPositions",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    }
]


ERC20_ABI = [
    {
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

MAX_UINT256 = 2**256 - 1


def _canonical_type(param: Dict[str, Any]) -> str:
    abi_type = param["type"]
    if not abi_type.startswith("tuple"):
        return abi_type
    inner = ",".join(_canonical_type(c) for c in param.get("components", []))
    return f"({inner}){abi_type[len('tuple'):]}"


@dataclass(frozen=True)
class AbiFunction:
    """An immutable ABI definition for one contract function."""

    name: str
    input_types: Tuple[str, ...]

    @classmethod
    def from_abi(cls, abi: List[Dict[str, Any]], name: str) -> "AbiFunction":
        """Look up a function in an ABI fragment.

        Raises:
            InvalidArgumentError: If the ABI has no function with that name.
        """
        for entry in abi:
            if entry.get("type") == "function" and entry.get("name") == name:
                return cls(
                    name=name,
                    input_types=tuple(_canonical_type(p) for p in entry.get("inputs", [])),
                )
        raise InvalidArgumentError(f"ABI has no function named {name!r}")

    @property
    def signature(self) -> str:
        """Get the canonical signature, e.g. "transfer(address,uint256)"."""
        return f"{self.name}({','.join(self.input_types)})"

    @property
    def selector(self) -> bytes:
        """Get the 4-byte function selector."""
        return function_signature_to_4byte_selector(self.signature)

    def encode_call(self, *args: Any) -> bytes:
        """ABI-encode a call to this function."""
        if len(args) != len(self.input_types):
            raise InvalidArgumentError(
                f"{self.name} takes {len(self.input_types)} arguments, got {len(args)}"
            )
        return self.selector + encode(list(self.input_types), list(args))


@lru_cache(maxsize=None)
def _derive_safe_address(owner: str) -> str:
    salt = keccak(encode(["address"], [owner]))
    factory = decode_hex(SAFE_FACTORY_ADDRESS)
    init_code_hash = decode_hex(SAFE_INIT_CODE_HASH)
    digest = keccak(b"\xff" + factory + salt + init_code_hash)
    return to_checksum_address(digest[12:])


def derive_safe_address(owner: str) -> str:
    """Derive the counterfactual Safe address owned by an EOA.

    salt = keccak256(pad32(owner)) and the address is the last 20 bytes of
    keccak256(0xff || factory || salt || initCodeHash). Results are memoized.

    Raises:
        InvalidArgumentError: If the owner is not a valid address.
    """
    return _derive_safe_address(require_address(owner, "owner"))


def _condition_id(value: Union[str, bytes], name: str = "condition_id") -> bytes:
    raw = decode_hex(value, name)
    if len(raw) != 32:
        raise InvalidArgumentError(f"{name} must be 32 bytes, got {len(raw)}")
    return raw


@dataclass(frozen=True)
class CtfRedeem:
    """Redeem resolved positions through the ConditionalTokens contract."""

    condition_id: str
    index_sets: Sequence[int]
    collateral_token: str
    parent_collection_id: str = ZERO_BYTES32

    def __post_init__(self) -> None:
        _condition_id(self.condition_id)
        _condition_id(self.parent_collection_id, "parent_collection_id")
        if not self.index_sets:
            raise InvalidArgumentError("index_sets must not be empty")
        for index_set in self.index_sets:
            if require_uint(index_set, "index_set") == 0:
                raise InvalidArgumentError("index_set must be positive")
        if require_address(self.collateral_token, "collateral_token") == ZERO_ADDRESS:
            raise InvalidArgumentError("collateral_token must not be the zero address")


@dataclass(frozen=True)
class NegRiskRedeem:
    """Redeem neg-risk positions through the NegRiskAdapter.

    amounts holds the YES and NO token amounts, in that order.
    """

    condition_id: str
    amounts: Sequence[int]

    def __post_init__(self) -> None:
        _condition_id(self.condition_id)
        if len(self.amounts) != 2:
            raise InvalidArgumentError(
                f"Neg-risk redeem needs exactly 2 amounts, got {len(self.amounts)}"
            )
        for amount in self.amounts:
            require_uint(amount, "amount")


RedeemIntent = Union[CtfRedeem, NegRiskRedeem]

CTF_REDEEM = AbiFunction.from_abi(CTF_REDEEM_ABI, "redeemPositions")
NEG_RISK_REDEEM = AbiFunction.from_abi(NEG_RISK_REDEEM_ABI, "redeemPositions")
ERC20_APPROVE = AbiFunction.from_abi(ERC20_ABI, "approve")
ERC20_ALLOWANCE = AbiFunction.from_abi(ERC20_ABI, "allowance")
ERC20_BALANCE_OF = AbiFunction.from_abi(ERC20_ABI, "balanceOf")


def encode_redeem(intent: RedeemIntent, contracts: ContractConfig) -> Tuple[str, bytes]:
    """Encode a redeem call.

    Args:
        intent: The redemption to perform.
        contracts: Contract addresses for the chain.

    Returns:
        (target contract, call data).
    """
    if isinstance(intent, CtfRedeem):
        data = CTF_REDEEM.encode_call(
            require_address(intent.collateral_token, "collateral_token"),
            _condition_id(intent.parent_collection_id, "parent_collection_id"),
            _condition_id(intent.condition_id),
            list(intent.index_sets),
        )
        return contracts.conditional_tokens, data
    if isinstance(intent, NegRiskRedeem):
        data = NEG_RISK_REDEEM.encode_call(
            _condition_id(intent.condition_id),
            list(intent.amounts),
        )
        return contracts.neg_risk_adapter, data
    raise InvalidArgumentError(f"Unknown redeem intent: {type(intent).__name__}")


def sign_safe_tx(signer: Signer, safe_tx_hash: bytes) -> bytes:
    """Sign a SafeTx digest the way the relayer's Safe flow expects.

    The digest is wrapped in an EIP-191 personal-sign envelope before signing
    and v is moved from {27, 28} to {31, 32}.

    Returns:
        The 65-byte signature.
    """
    signature = signer.sign_hash(keccak(EIP191_PREFIX + safe_tx_hash))
    v = signature[64]
    if v < 27:
        v += 27
    return signature[:64] + bytes([v + SAFE_SIGNATURE_V_OFFSET])


def _safe_signature_params() -> Dict[str, str]:
    return {
        "gasPrice": "0",
        "operation": "0",
        "safeTxnGas": "0",
        "baseGas": "0",
        "gasToken": ZERO_ADDRESS,
        "refundReceiver": ZERO_ADDRESS,
    }


def build_create_proxy_typed_data(chain_id: int) -> Dict[str, Any]:
    """Typed data the Safe factory verifies when deploying a Safe for free."""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "CreateProxy": [
                {"name": "paymentToken", "type": "address"},
                {"name": "payment", "type": "uint256"},
                {"name": "paymentReceiver", "type": "address"},
            ],
        },
        "primaryType": "CreateProxy",
        "domain": {
            "name": SAFE_FACTORY_NAME,
            "chainId": chain_id,
            "verifyingContract": SAFE_FACTORY_ADDRESS,
        },
        "message": {
            "paymentToken": ZERO_ADDRESS,
            "payment": 0,
            "paymentReceiver": ZERO_ADDRESS,
        },
    }


class RelayerClient:
    """Client for submitting Safe meta-transactions through the relayer."""

    def __init__(
        self,
        private_key: str,
        host: str = DEFAULT_RELAYER_HOST,
        chain_id: int = POLYGON,
        builder_auth: Optional[BuilderAuth] = None,
        rpc_url: Optional[str] = None,
        web3: Optional[Web3] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the relayer client.

        Args:
            private_key: The Safe owner's private key.
            host: The relayer URL.
            chain_id: The chain ID.
            builder_auth: Optional builder credentials stamped on submissions.
            rpc_url: JSON-RPC URL used to check whether the Safe is deployed.
            web3: A ready Web3 instance, used instead of rpc_url.
            timeout: HTTP request timeout in seconds.

        Raises:
            InvalidArgumentError: If the private key or chain is invalid.
        """
        self._signer = create_signer(private_key, chain_id)
        self._contracts = get_contract_config(chain_id)
        self._builder_auth = builder_auth
        self._http = HttpClient(host, timeout=timeout)
        if web3 is None and rpc_url:
            web3 = Web3(Web3.HTTPProvider(rpc_url))
        self._web3 = web3

    def close(self) -> None:
        """Close the client and release resources."""
        self._http.close()

    def __enter__(self) -> "RelayerClient":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    @property
    def address(self) -> str:
        """Get the owner EOA address."""
        return self._signer.address

    @property
    def safe_address(self) -> str:
        """Get the owner's Safe address."""
        return derive_safe_address(self._signer.address)

    @property
    def contracts(self) -> ContractConfig:
        """Get the contract configuration."""
        return self._contracts

    def _headers(self, method: str, path: str, body: Optional[str] = None) -> Dict[str, str]:
        if self._builder_auth is None:
            return {}
        return self._builder_auth.headers(method, path, body)

    def is_safe_deployed(self) -> bool:
        """Check whether the Safe has code on chain.

        Raises:
            InvalidArgumentError: If no RPC endpoint is configured.
        """
        if self._web3 is None:
            raise InvalidArgumentError("rpc_url or web3 is required to check Safe deployment")
        code = self._web3.eth.get_code(Web3.to_checksum_address(self.safe_address))
        return len(code) > 0

    def get_nonce(self, wallet_type: str = "SAFE", timeout: Optional[float] = None) -> int:
        """Fetch the current relayer nonce for the owner.

        Args:
            wallet_type: "SAFE" or "PROXY".
            timeout: Per-call timeout in seconds.

        Raises:
            RelayerError: If the response carries no usable nonce.
        """
        path = RELAYER_ENDPOINTS["nonce"]
        response = self._http.get(
            path,
            params={"address": self._signer.address, "type": wallet_type},
            headers=self._headers("GET", path),
            timeout=timeout,
        )
        nonce = response.get("nonce") if isinstance(response, dict) else None
        if nonce is None or nonce == "" or isinstance(nonce, bool):
            raise RelayerError(f"Relayer returned no nonce: {response!r}", body=response)
        try:
            return int(nonce)
        except (TypeError, ValueError):
            raise RelayerError(
                f"Relayer returned an invalid nonce: {nonce!r}", body=response
            ) from None

    def get_transaction(self, transaction_id: str) -> List[Dict[str, Any]]:
        """Get the status of a submitted transaction."""
        path = RELAYER_ENDPOINTS["transaction"]
        return self._http.get(path, params={"id": transaction_id}, headers=self._headers("GET", path))

    def _post(
        self, path: str, payload: Dict[str, Any], timeout: Optional[float] = None
    ) -> RelayerTransaction:
        body = serialize_body(payload)
        response = self._http.post(
            path, data=body, headers=self._headers("POST", path, body), timeout=timeout
        )
        return RelayerTransaction.from_dict(response or {})

    def build_safe_transaction(
        self,
        to: str,
        data: Union[str, bytes],
        nonce: int,
        operation: int = 0,
    ) -> Dict[str, Any]:
        """Build and sign a Safe submission for a given nonce.

        Args:
            to: The contract the Safe calls.
            data: Call data.
            nonce: The Safe nonce, fetched immediately before signing.
            operation: 0 for CALL, 1 for DELEGATECALL.

        Returns:
            The relayer submission payload.
        """
        to = require_address(to, "to")
        call_data = decode_hex(data, "data")
        safe = self.safe_address

        digest = hash_safe_tx(
            to=to,
            data=call_data,
            nonce=nonce,
            chain_id=self._signer.chain_id,
            safe_address=safe,
            operation=operation,
        )
        signature = sign_safe_tx(self._signer, digest)

        params = _safe_signature_params()
        params["operation"] = str(operation)
        return {
            "from": self._signer.address,
            "to": to,
            "proxyWallet": safe,
            "data": "0x" + call_data.hex(),
            "nonce": str(nonce),
            "signature": "0x" + signature.hex(),
            "signatureParams": params,
            "type": "SAFE",
            "metadata": "",
        }

    def submit_transaction(
        self,
        to: str,
        data: Union[str, bytes],
        operation: int = 0,
        timeout: Optional[float] = None,
    ) -> RelayerTransaction:
        """Sign and submit a call from the Safe.

        The nonce is fetched right before signing. A stale nonce surfaces as a
        PolymarketApiError; callers retry by calling this method again.

        Args:
            to: The contract the Safe calls.
            data: Call data.
            operation: 0 for CALL, 1 for DELEGATECALL.
            timeout: Per-call timeout in seconds for the nonce and submit requests.
        """
        nonce = self.get_nonce(timeout=timeout)
        payload = self.build_safe_transaction(to, data, nonce, operation=operation)
        logger.info(
            "Submitting Safe transaction %s -> %s (nonce %d)",
            payload["proxyWallet"],
            payload["to"],
            nonce,
        )
        return self._post(RELAYER_ENDPOINTS["submit"], payload, timeout=timeout)

    def _call_uint(self, to: str, data: bytes) -> int:
        if self._web3 is None:
            raise InvalidArgumentError("rpc_url or web3 is required for on-chain reads")
        result = self._web3.eth.call(
            {"to": Web3.to_checksum_address(to), "data": "0x" + data.hex()}
        )
        (value,) = decode(["uint256"], bytes(result))
        return value

    def get_collateral_allowance(self, owner: str, spender: str) -> int:
        """Read how much USDC a spender may move on behalf of owner, in base units.

        Raises:
            InvalidArgumentError: If an address is invalid or no RPC endpoint is configured.
        """
        data = ERC20_ALLOWANCE.encode_call(
            require_address(owner, "owner"), require_address(spender, "spender")
        )
        return self._call_uint(self._contracts.collateral, data)

    def get_collateral_balance(self, address: Optional[str] = None) -> int:
        """Read the USDC balance of an address in base units.

        Args:
            address: The account to read. Defaults to the Safe.
        """
        account = require_address(address or self.safe_address, "address")
        return self._call_uint(self._contracts.collateral, ERC20_BALANCE_OF.encode_call(account))

    def approve_collateral(
        self,
        spender: str,
        amount: int = MAX_UINT256,
        timeout: Optional[float] = None,
    ) -> RelayerTransaction:
        """Approve a spender to move the Safe's USDC.

        Args:
            spender: The contract being approved, e.g. an exchange.
            amount: Allowance in base units. Defaults to an unlimited allowance.
            timeout: Per-call timeout in seconds.

        Raises:
            InvalidArgumentError: If the spender or amount is invalid.
        """
        spender = require_address(spender, "spender")
        data = ERC20_APPROVE.encode_call(spender, require_uint(amount, "amount"))
        logger.info("Approving %s to spend USDC from %s", spender, self.safe_address)
        return self.submit_transaction(self._contracts.collateral, data, timeout=timeout)

    def approve_collateral_for_amount(
        self, spender: str, amount: Number, timeout: Optional[float] = None
    ) -> RelayerTransaction:
        """Approve a spender for a human USDC amount, e.g. 12.5."""
        value = to_decimal(amount, "amount")
        if value < 0:
            raise InvalidArgumentError(f"amount must not be negative, got {amount}")
        return self.approve_collateral(spender, to_token_decimals(value), timeout=timeout)

    def redeem_positions(self, intent: RedeemIntent) -> RelayerTransaction:
        """Redeem positions from the Safe.

        Raises:
            RelayerError: If the Safe has not been deployed yet.
        """
        target, data = encode_redeem(intent, self._contracts)
        if not self.is_safe_deployed():
            raise RelayerError(f"Safe {self.safe_address} is not deployed; call deploy_safe() first")
        return self.submit_transaction(target, data)

    def deploy_safe(self) -> RelayerTransaction:
        """Deploy the owner's Safe through the relayer.

        Returns:
            The relayer response, with state "already_deployed" when the Safe
            already has code.

        Raises:
            RelayerError: If the relayer does not report the deployment as submitted.
        """
        if self.is_safe_deployed():
            logger.info("Safe %s already deployed", self.safe_address)
            return RelayerTransaction(transaction_id="", transaction_hash="", state="already_deployed")

        signable = encode_typed_data(full_message=build_create_proxy_typed_data(self._signer.chain_id))
        signature = self._signer.sign_hash(hash_signable(signable))

        payload = {
            "from": self._signer.address,
            "safe": self.safe_address,
            "saltNonce": "0",
            "signature": "0x" + signature.hex(),
            "signatureParams": _safe_signature_params(),
            "type": "SAFE-CREATE",
            "metadata": "",
        }
        logger.info("Deploying Safe %s for %s", payload["safe"], payload["from"])
        result = self._post(RELAYER_ENDPOINTS["deploy_safe"], payload)
        if result.state != "submitted":
            raise RelayerError(
                f"Safe deployment failed: {result.message or result.state}",
                body=result,
            )
        return result
