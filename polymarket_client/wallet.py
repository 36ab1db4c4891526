"""
Wallet variants that hold positions on behalf of an EOA.

A Safe wallet is a Gnosis Safe at a CREATE2 address; the owner executes
calls through execTransaction. A proxy wallet is addressed by the EOA and
routes calls through the proxy factory. Both expose the same operations as
plain functions over the Wallet union.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from eth_abi import encode
from web3 import Web3

from polymarket_client.config import ContractConfig
from polymarket_client.constants import PROXY_FACTORY_ADDRESS, ZERO_ADDRESS
from polymarket_client.eip712 import require_address
from polymarket_client.exceptions import InvalidArgumentError
from polymarket_client.relayer import AbiFunction, RedeemIntent, derive_safe_address, encode_redeem

SAFE_EXEC_ABI = [
    {
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
            {"name": "data", "type": "bytes"},
            {"name": "operation", "type": "uint8"},
            {"name": "safeTxGas", "type": "uint256"},
            {"name": "baseGas", "type": "uint256"},
            {"name": "gasPrice", "type": "uint256"},
            {"name": "gasToken", "type": "address"},
            {"name": "refundReceiver", "type": "address"},
            {"name": "signatures", "type": "bytes"},
        ],
        "name": "execTransaction",
        "outputs": [{"name": "success", "type": "bool"}],
        "stateMutability": "payable",
        "type": "function",
    }
]

PROXY_FACTORY_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"name": "typeCode", "type": "uint8"},
                    {"name": "to", "type": "address"},
                    {"name": "value", "type": "uint256"},
                    {"name": "data", "type": "bytes"},
                ],
                "name": "calls",
                "type": "tuple[]",
            }
        ],
        "name": "proxy",
        "outputs": [{"name": "returnValues", "type": "bytes[]"}],
        "stateMutability": "payable",
        "type": "function",
    }
]

SAFE_EXEC_TRANSACTION = AbiFunction.from_abi(SAFE_EXEC_ABI, "execTransaction")
PROXY_CALL = AbiFunction.from_abi(PROXY_FACTORY_ABI, "proxy")

# ProxyFactory CallType: 0 invalid, 1 call, 2 delegatecall
PROXY_CALL_TYPE = 1


@dataclass(frozen=True)
class SafeWallet:
    """A Gnosis Safe owned by an EOA."""

    owner: str
    safe_address: Optional[str] = None

    def __post_init__(self) -> None:
        owner = require_address(self.owner, "owner")
        object.__setattr__(self, "owner", owner)
        if self.safe_address is None:
            object.__setattr__(self, "safe_address", derive_safe_address(owner))
        else:
            object.__setattr__(
                self, "safe_address", require_address(self.safe_address, "safe_address")
            )


@dataclass(frozen=True)
class ProxyWallet:
    """A Polymarket proxy wallet addressed by its EOA."""

    owner: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "owner", require_address(self.owner, "owner"))


Wallet = Union[SafeWallet, ProxyWallet]


@dataclass(frozen=True)
class WalletTransaction:
    """An unsigned transaction the owner EOA sends."""

    to: str
    data: bytes
    value: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a web3 transaction dictionary (without gas or nonce)."""
        return {"to": self.to, "data": "0x" + self.data.hex(), "value": self.value}


def wallet_address(wallet: Wallet) -> str:
    """Get the address that holds the wallet's positions."""
    if isinstance(wallet, SafeWallet):
        return wallet.safe_address
    if isinstance(wallet, ProxyWallet):
        return wallet.owner
    raise InvalidArgumentError(f"Unknown wallet type: {type(wallet).__name__}")


def is_deployed(wallet: Wallet, web3: Optional[Web3] = None) -> bool:
    """Check whether the wallet exists on chain.

    Proxy wallets are always usable. Safes need code at their address.

    Raises:
        InvalidArgumentError: If a Safe is checked without a Web3 instance.
    """
    if isinstance(wallet, ProxyWallet):
        return True
    if web3 is None:
        raise InvalidArgumentError("A Web3 instance is required to check Safe deployment")
    return len(web3.eth.get_code(Web3.to_checksum_address(wallet_address(wallet)))) > 0


def prevalidated_signature(owner: str) -> bytes:
    """Safe signature accepted when the owner itself sends execTransaction.

    Layout: r = owner padded to 32 bytes, s = 0, v = 1.
    """
    return encode(["address"], [require_address(owner, "owner")]) + b"\x00" * 32 + b"\x01"


def build_wallet_call(wallet: Wallet, to: str, data: bytes) -> WalletTransaction:
    """Wrap a contract call so the owner EOA can execute it through its wallet."""
    to = require_address(to, "to")
    if isinstance(wallet, SafeWallet):
        call = SAFE_EXEC_TRANSACTION.encode_call(
            to,
            0,
            data,
            0,
            0,
            0,
            0,
            ZERO_ADDRESS,
            ZERO_ADDRESS,
            prevalidated_signature(wallet.owner),
        )
        return WalletTransaction(to=wallet.safe_address, data=call)
    if isinstance(wallet, ProxyWallet):
        call = PROXY_CALL.encode_call([(PROXY_CALL_TYPE, to, 0, data)])
        return WalletTransaction(to=PROXY_FACTORY_ADDRESS, data=call)
    raise InvalidArgumentError(f"Unknown wallet type: {type(wallet).__name__}")


def build_redeem_transaction(
    wallet: Wallet,
    intent: RedeemIntent,
    contracts: ContractConfig,
) -> WalletTransaction:
    """Build the owner transaction that redeems positions held by a wallet."""
    target, data = encode_redeem(intent, contracts)
    return build_wallet_call(wallet, target, data)
