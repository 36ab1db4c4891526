"""
EIP-712 digests for CLOB authentication and Safe transactions.

Every digest is keccak256(0x1901 || domainSeparator || structHash). Dynamic
fields (string, bytes) are keccak-hashed before packing and every field is
padded to 32 bytes, in the order the type string declares them.
"""

from typing import Union

from eth_abi import encode
from eth_account.messages import SignableMessage
from eth_utils import is_address, keccak, to_checksum_address

from polymarket_client.constants import (
    CLOB_AUTH_DOMAIN_NAME,
    CLOB_AUTH_MESSAGE,
    CLOB_AUTH_VERSION,
    ZERO_ADDRESS,
)
from polymarket_client.exceptions import InvalidArgumentError

CLOB_AUTH_DOMAIN_TYPEHASH = keccak(
    text="EIP712Domain(string name,string version,uint256 chainId)"
)
CLOB_AUTH_TYPEHASH = keccak(
    text="ClobAuth(address address,string timestamp,uint256 nonce,string message)"
)

SAFE_DOMAIN_TYPEHASH = keccak(text="EIP712Domain(uint256 chainId,address verifyingContract)")
SAFE_TX_TYPEHASH = keccak(
    text=(
        "SafeTx(address to,uint256 value,bytes data,uint8 operation,"
        "uint256 safeTxGas,uint256 baseGas,uint256 gasPrice,"
        "address gasToken,address refundReceiver,uint256 nonce)"
    )
)

_UINT256_MAX = 2**256 - 1
_UINT8_MAX = 2**8 - 1


def require_address(value: str, name: str = "address") -> str:
    """Validate an address and return it checksummed.

    Raises:
        InvalidArgumentError: If the value is not a 20-byte hex address.
    """
    if not isinstance(value, str) or not is_address(value):
        raise InvalidArgumentError(f"Invalid {name}: {value!r}")
    return to_checksum_address(value)


def require_uint(value: int, name: str, maximum: int = _UINT256_MAX) -> int:
    """Validate an unsigned integer field.

    Raises:
        InvalidArgumentError: If the value is negative, too large or not an int.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > maximum:
        raise InvalidArgumentError(f"{name} out of range: {value}")
    return value


def decode_hex(value: Union[str, bytes], name: str = "value") -> bytes:
    """Decode 0x-prefixed (or bare) hex into bytes; bytes pass through.

    Raises:
        InvalidArgumentError: If the string is not valid hex.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise InvalidArgumentError(f"{name} must be hex or bytes")
    raw = value[2:] if value[:2] in ("0x", "0X") else value
    try:
        return bytes.fromhex(raw)
    except ValueError as e:
        raise InvalidArgumentError(f"Invalid hex for {name}: {e}") from e


def typed_data_digest(domain_separator: bytes, struct_hash: bytes) -> bytes:
    """Combine a domain separator and struct hash into the signable digest."""
    return keccak(b"\x19\x01" + domain_separator + struct_hash)


def hash_signable(signable: SignableMessage) -> bytes:
    """Digest of an eth_account SignableMessage, as eth_account signs it."""
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def clob_auth_domain_separator(chain_id: int) -> bytes:
    """Domain separator for the ClobAuth typed structure."""
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256"],
            [
                CLOB_AUTH_DOMAIN_TYPEHASH,
                keccak(text=CLOB_AUTH_DOMAIN_NAME),
                keccak(text=CLOB_AUTH_VERSION),
                require_uint(chain_id, "chain_id"),
            ],
        )
    )


def hash_clob_auth(address: str, timestamp: str, nonce: int, chain_id: int) -> bytes:
    """Compute the L1 authentication digest.

    Args:
        address: The wallet address attesting control.
        timestamp: Unix seconds, as the decimal string sent in POLY_TIMESTAMP.
        nonce: Caller-chosen nonce.
        chain_id: The chain ID.

    Returns:
        The 32-byte digest to sign.

    Raises:
        InvalidArgumentError: On a malformed address or out-of-range number.
    """
    address = require_address(address)
    if not isinstance(timestamp, str):
        raise InvalidArgumentError("timestamp must be a string")

    struct_hash = keccak(
        encode(
            ["bytes32", "address", "bytes32", "uint256", "bytes32"],
            [
                CLOB_AUTH_TYPEHASH,
                address,
                keccak(text=timestamp),
                require_uint(nonce, "nonce"),
                keccak(text=CLOB_AUTH_MESSAGE),
            ],
        )
    )
    return typed_data_digest(clob_auth_domain_separator(chain_id), struct_hash)


def safe_domain_separator(chain_id: int, safe_address: str) -> bytes:
    """Domain separator for a Safe; the Safe itself is the verifying contract."""
    return keccak(
        encode(
            ["bytes32", "uint256", "address"],
            [
                SAFE_DOMAIN_TYPEHASH,
                require_uint(chain_id, "chain_id"),
                require_address(safe_address, "safe_address"),
            ],
        )
    )


def hash_safe_tx(
    to: str,
    data: Union[str, bytes],
    nonce: int,
    chain_id: int,
    safe_address: str,
    value: int = 0,
    operation: int = 0,
    safe_tx_gas: int = 0,
    base_gas: int = 0,
    gas_price: int = 0,
    gas_token: str = ZERO_ADDRESS,
    refund_receiver: str = ZERO_ADDRESS,
) -> bytes:
    """Compute the EIP-712 SafeTx digest.

    Args:
        to: The contract the Safe calls.
        data: Call data, as bytes or 0x hex. Only its keccak enters the hash.
        nonce: The Safe nonce.
        chain_id: The chain ID.
        safe_address: The Safe verifying the signature.
        value: Native value sent with the call.
        operation: 0 for CALL, 1 for DELEGATECALL.
        safe_tx_gas: Gas for the Safe transaction.
        base_gas: Gas costs independent of the call.
        gas_price: Gas price used for refunds.
        gas_token: Token used for refunds.
        refund_receiver: Refund recipient.

    Returns:
        The 32-byte digest.

    Raises:
        InvalidArgumentError: On malformed addresses, hex or numbers.
    """
    struct_hash = keccak(
        encode(
            [
                "bytes32",
                "address",
                "uint256",
                "bytes32",
                "uint8",
                "uint256",
                "uint256",
                "uint256",
                "address",
                "address",
                "uint256",
            ],
            [
                SAFE_TX_TYPEHASH,
                require_address(to, "to"),
                require_uint(value, "value"),
                keccak(decode_hex(data, "data")),
                require_uint(operation, "operation", maximum=_UINT8_MAX),
                require_uint(safe_tx_gas, "safe_tx_gas"),
                require_uint(base_gas, "base_gas"),
                require_uint(gas_price, "gas_price"),
                require_address(gas_token, "gas_token"),
                require_address(refund_receiver, "refund_receiver"),
                require_uint(nonce, "nonce"),
            ],
        )
    )
    return typed_data_digest(safe_domain_separator(chain_id, safe_address), struct_hash)
