"""
Wallet signing identity.
"""

from typing import Any

from eth_account import Account
from eth_keys import keys
from eth_keys.exceptions import BadSignature

from polymarket_client.eip712 import decode_hex
from polymarket_client.exceptions import InvalidArgumentError, SigningError


def normalize_v(v: int) -> int:
    """Map a raw recovery id (0/1) onto the Ethereum range (27/28)."""
    return v + 27 if v < 27 else v


def pack_signature(r: int, s: int, v: int) -> bytes:
    """Pack r, s, v into the 65-byte r || s || v layout."""
    return r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([v])


def recover_address(digest: Any, signature: Any) -> str:
    """Recover the signing address from a digest and a 65-byte signature.

    Accepts v in {0, 1}, {27, 28} or the relayer's {31, 32} range.

    Args:
        digest: The 32-byte digest as bytes or hex.
        signature: The signature as bytes or 0x-prefixed hex.

    Returns:
        The checksummed address of the signer.

    Raises:
        InvalidArgumentError: If the signature is malformed.
    """
    signature = decode_hex(signature, "signature")
    digest = decode_hex(digest, "digest")
    if len(signature) != 65:
        raise InvalidArgumentError(f"Signature must be 65 bytes, got {len(signature)}")
    if len(digest) != 32:
        raise InvalidArgumentError(f"Digest must be 32 bytes, got {len(digest)}")

    v = signature[64]
    if v >= 31:
        v -= 4
    if v >= 27:
        v -= 27

    try:
        sig = keys.Signature(
            vrs=(
                v,
                int.from_bytes(signature[:32], "big"),
                int.from_bytes(signature[32:64], "big"),
            )
        )
        public_key = sig.recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValueError) as e:
        raise InvalidArgumentError(f"Invalid signature: {e}") from e
    return public_key.to_checksum_address()


class Signer:
    """Holds a wallet private key and signs digests with it.

    The key is never exposed through repr or logging.
    """

    def __init__(self, private_key: str, chain_id: int) -> None:
        """Initialize the signer.

        Args:
            private_key: Hex-encoded private key, with or without 0x prefix.
            chain_id: The chain ID signatures are produced for.

        Raises:
            InvalidArgumentError: If the private key is malformed.
        """
        if not private_key:
            raise InvalidArgumentError("Private key is required")
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise InvalidArgumentError(f"Invalid private key: {e}") from None
        self._chain_id = chain_id

    def __repr__(self) -> str:
        return f"Signer(address={self.address!r}, chain_id={self._chain_id})"

    @property
    def address(self) -> str:
        """Get the checksummed wallet address."""
        return self._account.address

    @property
    def chain_id(self) -> int:
        """Get the chain ID."""
        return self._chain_id

    def sign_hash(self, digest: bytes) -> bytes:
        """Sign a 32-byte digest directly, without any message prefix.

        Args:
            digest: The digest to sign.

        Returns:
            The 65-byte signature with v in {27, 28}.

        Raises:
            InvalidArgumentError: If the digest is not 32 bytes.
            SigningError: If the ECDSA library fails.
        """
        if len(digest) != 32:
            raise InvalidArgumentError(f"Digest must be 32 bytes, got {len(digest)}")
        try:
            signed = self._account.unsafe_sign_hash(digest)
        except Exception as e:
            raise SigningError(f"Failed to sign digest: {e}") from e
        return pack_signature(signed.r, signed.s, normalize_v(signed.v))


def create_signer(private_key: str, chain_id: int) -> Signer:
    """Create a signer from a private key.

    Args:
        private_key: Hex-encoded private key.
        chain_id: The chain ID.

    Returns:
        A Signer instance.
    """
    return Signer(private_key, chain_id)
