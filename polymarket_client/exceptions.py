"""
Exceptions for the Polymarket Python client.
"""

from typing import Any, Optional


class PolymarketError(Exception):
    """Base exception for all Polymarket client errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgumentError(PolymarketError, ValueError):
    """Raised when caller input is malformed.

    Covers bad addresses or hex, missing credential fields, wrong
    condition ID lengths and redeem arity errors. Raised before any
    signing or network work is attempted.
    """


class AuthenticationError(PolymarketError):
    """Raised when an operation needs a signer or credentials the client lacks."""

    def __init__(self, message: str, required_level: Optional[str] = None) -> None:
        super().__init__(message)
        self.required_level = required_level

    def __str__(self) -> str:
        if self.required_level:
            return f"{self.message} (requires {self.required_level})"
        return self.message


class SigningError(PolymarketError):
    """Raised when the underlying ECDSA library fails to sign."""


class PolymarketApiError(PolymarketError):
    """Raised when a service returns a non-2xx response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        request_id: Optional[str] = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.request_id = request_id
        self.body = body

    def __str__(self) -> str:
        parts = []
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.code:
            parts.append(f"code={self.code}")
        if self.request_id:
            parts.append(f"request_id={self.request_id}")
        if parts:
            return f"{self.message} ({', '.join(parts)})"
        return self.message


class RelayerError(PolymarketApiError):
    """Raised when the relayer reports a failed state or an unusable response."""


class WebSocketError(PolymarketError):
    """Raised on WebSocket connection or message errors."""
