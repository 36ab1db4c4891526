"""
Request authentication for the CLOB and relayer.

Three schemes produce header sets:
- Level 1: an EIP-712 ClobAuth signature proving wallet control, used to
  create or derive API credentials.
- Level 2: HMAC-SHA256 over the request with the API secret, used on every
  authenticated trading call.
- Builder: the same HMAC construction with separate credentials and header
  names, stamped on top of Level 2 headers for order attribution.
"""

import base64
import binascii
import hashlib
import hmac
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from polymarket_client.constants import (
    POLY_ADDRESS,
    POLY_API_KEY,
    POLY_BUILDER_API_KEY,
    POLY_BUILDER_PASSPHRASE,
    POLY_BUILDER_SIGNATURE,
    POLY_BUILDER_TIMESTAMP,
    POLY_NONCE,
    POLY_PASSPHRASE,
    POLY_SIGNATURE,
    POLY_TIMESTAMP,
)
from polymarket_client.eip712 import hash_clob_auth
from polymarket_client.exceptions import InvalidArgumentError
from polymarket_client.signer import Signer


@dataclass(frozen=True)
class ApiCreds:
    """L2 API credentials issued by the CLOB."""

    api_key: str
    api_secret: str
    api_passphrase: str

    def __post_init__(self) -> None:
        if not self.api_key or not self.api_secret or not self.api_passphrase:
            raise InvalidArgumentError("API key, secret and passphrase are all required")

    def __repr__(self) -> str:
        return f"ApiCreds(api_key={self.api_key!r})"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApiCreds":
        """Create from an API key response."""
        return cls(
            api_key=data.get("apiKey", ""),
            api_secret=data.get("secret", ""),
            api_passphrase=data.get("passphrase", ""),
        )


@dataclass(frozen=True)
class BuilderCreds:
    """Builder API credentials used for order attribution."""

    api_key: str
    api_secret: str
    api_passphrase: str

    def __post_init__(self) -> None:
        if not self.api_key or not self.api_secret or not self.api_passphrase:
            raise InvalidArgumentError("Builder key, secret and passphrase are all required")

    def __repr__(self) -> str:
        return f"BuilderCreds(api_key={self.api_key!r})"


@dataclass(frozen=True)
class RequestArgs:
    """The parts of a request covered by an HMAC signature."""

    method: str
    request_path: str
    body: Optional[str] = None


def _timestamp(timestamp: Optional[int]) -> str:
    return str(timestamp if timestamp is not None else int(time.time()))


_URLSAFE_BASE64 = re.compile(r"[A-Za-z0-9_-]*={0,2}")
_STANDARD_BASE64 = re.compile(r"[A-Za-z0-9+/]*={0,2}")


def _b64decode_strict(secret: str, alphabet: "re.Pattern[str]", urlsafe: bool) -> Optional[bytes]:
    if not alphabet.fullmatch(secret):
        return None
    try:
        if urlsafe:
            return base64.urlsafe_b64decode(secret)
        return base64.b64decode(secret, validate=True)
    except binascii.Error:
        return None


def decode_secret(secret: str) -> bytes:
    """Decode an L2 API secret.

    Tries URL-safe base64, then standard base64, and falls back to the raw
    secret bytes when neither alphabet decodes. A secret with characters
    outside an alphabet is never decoded with it.
    """
    decoded = _b64decode_strict(secret, _URLSAFE_BASE64, urlsafe=True)
    if decoded is None:
        decoded = _b64decode_strict(secret, _STANDARD_BASE64, urlsafe=False)
    if decoded is None:
        return secret.encode("utf-8")
    return decoded


def decode_builder_secret(secret: str) -> bytes:
    """Decode a builder secret: URL-safe base64 only, else the raw bytes."""
    decoded = _b64decode_strict(secret, _URLSAFE_BASE64, urlsafe=True)
    if decoded is None:
        return secret.encode("utf-8")
    return decoded


def _hmac_b64(key: bytes, message: str) -> str:
    digest = hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8")


def build_hmac_signature(
    secret: str,
    timestamp: str,
    method: str,
    request_path: str,
    body: Optional[str] = None,
) -> str:
    """Compute the L2 HMAC signature.

    The signed message is timestamp + method + request_path + body.

    Args:
        secret: The API secret.
        timestamp: Unix seconds as a string.
        method: HTTP method.
        request_path: Path without host or query string.
        body: Serialized request body, if any.

    Returns:
        The URL-safe base64 signature.
    """
    if not secret:
        raise InvalidArgumentError("API secret is required")
    message = f"{timestamp}{method}{request_path}{body or ''}"
    return _hmac_b64(decode_secret(secret), message)


def build_builder_signature(
    secret: str,
    timestamp: str,
    method: str,
    request_path: str,
    body: Optional[str] = None,
) -> str:
    """Compute the builder HMAC signature.

    Single quotes in the body are rewritten to double quotes before hashing,
    matching how the server rebuilds bodies that were rendered with Python
    repr. This is a compatibility workaround and must stay byte-exact.
    """
    if not secret:
        raise InvalidArgumentError("Builder secret is required")
    message = f"{timestamp}{method}{request_path}"
    if body:
        message += body.replace("'", '"')
    return _hmac_b64(decode_builder_secret(secret), message)


def create_level_1_headers(
    signer: Signer,
    nonce: int = 0,
    timestamp: Optional[int] = None,
) -> Dict[str, str]:
    """Create Level 1 headers proving control of the signer's wallet.

    Args:
        signer: The wallet signer.
        nonce: Caller-chosen nonce.
        timestamp: Unix seconds; defaults to now.

    Returns:
        POLY_ADDRESS, POLY_SIGNATURE, POLY_TIMESTAMP and POLY_NONCE headers.
    """
    ts = _timestamp(timestamp)
    digest = hash_clob_auth(signer.address, ts, nonce, signer.chain_id)
    signature = signer.sign_hash(digest)
    return {
        POLY_ADDRESS: signer.address,
        POLY_SIGNATURE: "0x" + signature.hex(),
        POLY_TIMESTAMP: ts,
        POLY_NONCE: str(nonce),
    }


def create_level_2_headers(
    signer: Signer,
    creds: ApiCreds,
    request_args: RequestArgs,
    timestamp: Optional[int] = None,
) -> Dict[str, str]:
    """Create Level 2 HMAC headers for an authenticated request.

    Args:
        signer: The wallet signer; supplies POLY_ADDRESS.
        creds: The API credentials.
        request_args: Method, path and body being sent.
        timestamp: Unix seconds; defaults to now.

    Returns:
        POLY_ADDRESS, POLY_SIGNATURE, POLY_TIMESTAMP, POLY_API_KEY and
        POLY_PASSPHRASE headers.
    """
    ts = _timestamp(timestamp)
    signature = build_hmac_signature(
        creds.api_secret,
        ts,
        request_args.method,
        request_args.request_path,
        request_args.body,
    )
    return {
        POLY_ADDRESS: signer.address,
        POLY_SIGNATURE: signature,
        POLY_TIMESTAMP: ts,
        POLY_API_KEY: creds.api_key,
        POLY_PASSPHRASE: creds.api_passphrase,
    }


class BuilderAuth:
    """Produces builder attribution headers."""

    def __init__(self, creds: BuilderCreds) -> None:
        self._creds = creds

    @property
    def api_key(self) -> str:
        """Get the builder API key."""
        return self._creds.api_key

    def headers(
        self,
        method: str,
        request_path: str,
        body: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> Dict[str, str]:
        """Create builder headers for a request.

        Args:
            method: HTTP method.
            request_path: Path without host or query string.
            body: Serialized request body, if any.
            timestamp: Unix seconds; defaults to now.

        Returns:
            The POLY_BUILDER_* headers plus a JSON content type.
        """
        ts = _timestamp(timestamp)
        signature = build_builder_signature(
            self._creds.api_secret, ts, method, request_path, body
        )
        return {
            POLY_BUILDER_API_KEY: self._creds.api_key,
            POLY_BUILDER_SIGNATURE: signature,
            POLY_BUILDER_TIMESTAMP: ts,
            POLY_BUILDER_PASSPHRASE: self._creds.api_passphrase,
            "Content-Type": "application/json",
        }


def create_builder_auth(
    api_key: str,
    api_secret: str,
    api_passphrase: str,
) -> BuilderAuth:
    """Create builder auth from raw credential strings.

    Raises:
        InvalidArgumentError: If any credential field is empty.
    """
    return BuilderAuth(BuilderCreds(api_key, api_secret, api_passphrase))


def merge_headers(base: Dict[str, str], overlay: Dict[str, str]) -> Dict[str, str]:
    """Merge two header sets; the overlay wins on collisions."""
    merged = dict(base)
    merged.update(overlay)
    return merged
