"""
Data types and models for the Polymarket Python client.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

from polymarket_client.constants import ZERO_ADDRESS
from polymarket_client.exceptions import InvalidArgumentError


class Side(IntEnum):
    """Order side: BUY or SELL. The integer value is what gets signed."""

    BUY = 0
    SELL = 1


class SignatureType(IntEnum):
    """How the exchange verifies an order signature."""

    EOA = 0
    POLY_PROXY = 1
    POLY_GNOSIS_SAFE = 2


class OrderType(str, Enum):
    """Time-in-force for a posted order."""

    GTC = "GTC"  # Good till cancelled
    GTD = "GTD"  # Good till date
    FOK = "FOK"  # Fill or kill
    FAK = "FAK"  # Fill and kill


@dataclass
class OrderArgs:
    """A limit order expressed as a price and a size in shares."""

    token_id: str
    price: float
    size: float
    side: Side
    fee_rate_bps: int = 0
    nonce: int = 0
    expiration: int = 0  # Unix timestamp, 0 for no expiry
    taker: str = ZERO_ADDRESS

    def __post_init__(self) -> None:
        """Validate order arguments."""
        if not self.token_id:
            raise InvalidArgumentError("token_id is required")
        if not (0 < self.price < 1):
            raise InvalidArgumentError(f"Price must be between 0 and 1, got {self.price}")
        if self.size <= 0:
            raise InvalidArgumentError(f"Size must be positive, got {self.size}")


@dataclass
class MarketOrderArgs:
    """A marketable order.

    For BUY, amount is collateral to spend; for SELL it is shares to sell.
    The price is the worst acceptable price.
    """

    token_id: str
    amount: float
    side: Side
    price: float
    fee_rate_bps: int = 0
    nonce: int = 0
    taker: str = ZERO_ADDRESS

    def __post_init__(self) -> None:
        """Validate order arguments."""
        if not self.token_id:
            raise InvalidArgumentError("token_id is required")
        if self.amount <= 0:
            raise InvalidArgumentError(f"Amount must be positive, got {self.amount}")
        if not (0 < self.price < 1):
            raise InvalidArgumentError(f"Price must be between 0 and 1, got {self.price}")


@dataclass(frozen=True)
class OrderIntent:
    """An order in exchange base units, ready to be signed."""

    token_id: str
    maker_amount: int
    taker_amount: int
    side: Side
    fee_rate_bps: int = 0
    nonce: int = 0
    expiration: int = 0
    taker: str = ZERO_ADDRESS
    signature_type: SignatureType = SignatureType.EOA


@dataclass(frozen=True)
class CreateOrderOptions:
    """Market parameters an order is built against."""

    tick_size: str
    neg_risk: bool = False


@dataclass
class SignedOrder:
    """A signed order ready for submission."""

    salt: int
    maker: str
    signer: str
    taker: str
    token_id: str
    maker_amount: int
    taker_amount: int
    expiration: int
    nonce: int
    fee_rate_bps: int
    side: Side
    signature_type: int
    signature: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the order payload the CLOB expects."""
        sig = self.signature if self.signature.startswith("0x") else f"0x{self.signature}"
        return {
            "salt": self.salt,
            "maker": self.maker,
            "signer": self.signer,
            "taker": self.taker,
            "tokenId": self.token_id,
            "makerAmount": str(self.maker_amount),
            "takerAmount": str(self.taker_amount),
            "expiration": str(self.expiration),
            "nonce": str(self.nonce),
            "feeRateBps": str(self.fee_rate_bps),
            "side": Side(self.side).name,
            "signatureType": int(self.signature_type),
            "signature": sig,
        }


@dataclass
class PriceLevel:
    """A price level in the orderbook."""

    price: str
    size: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceLevel":
        """Create from API response dictionary."""
        return cls(price=str(data["price"]), size=str(data["size"]))


@dataclass
class OrderBookSummary:
    """An order book snapshot for one token."""

    market: str
    asset_id: str
    timestamp: str
    bids: List[PriceLevel]
    asks: List[PriceLevel]
    min_order_size: str = ""
    tick_size: str = ""
    neg_risk: bool = False
    last_trade_price: str = ""
    hash: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderBookSummary":
        """Create from API response dictionary."""
        return cls(
            market=data.get("market", ""),
            asset_id=data.get("asset_id", ""),
            timestamp=str(data.get("timestamp", "")),
            bids=[PriceLevel.from_dict(b) for b in data.get("bids") or []],
            asks=[PriceLevel.from_dict(a) for a in data.get("asks") or []],
            min_order_size=str(data.get("min_order_size", "")),
            tick_size=str(data.get("tick_size", "")),
            neg_risk=bool(data.get("neg_risk", False)),
            last_trade_price=str(data.get("last_trade_price", "")),
            hash=data.get("hash", ""),
        )


@dataclass
class OpenOrder:
    """An order resting on the book."""

    id: str
    market: str
    asset_id: str
    price: str
    side: str
    original_size: str
    size_matched: str
    status: str
    order_type: str = ""
    owner: str = ""
    maker_address: str = ""
    outcome: str = ""
    created_at: Any = None
    associate_trades: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OpenOrder":
        """Create from API response dictionary."""
        return cls(
            id=data.get("id", ""),
            market=data.get("market", ""),
            asset_id=data.get("asset_id", ""),
            price=str(data.get("price", "")),
            side=data.get("side", ""),
            original_size=str(data.get("original_size", "")),
            size_matched=str(data.get("size_matched", "")),
            status=data.get("status", ""),
            order_type=data.get("type", ""),
            owner=data.get("owner", ""),
            maker_address=data.get("maker_address", ""),
            outcome=data.get("outcome", ""),
            created_at=data.get("created_at"),
            associate_trades=list(data.get("associate_trades") or []),
        )


@dataclass
class RelayerTransaction:
    """Relayer response for a submitted transaction."""

    transaction_id: str
    transaction_hash: str
    state: str
    message: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RelayerTransaction":
        """Create from relayer response dictionary."""
        return cls(
            transaction_id=data.get("transactionID") or data.get("transactionId", ""),
            transaction_hash=data.get("transactionHash", "") or data.get("hash", ""),
            state=data.get("state", ""),
            message=data.get("message", ""),
        )


@dataclass
class WSMessage:
    """Base WebSocket message."""

    event_type: str
    market: Optional[str] = None
    asset_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WSMessage":
        """Create from WebSocket message dictionary."""
        return cls(
            event_type=data.get("event_type", ""),
            market=data.get("market"),
            asset_id=data.get("asset_id"),
            data=data,
        )


@dataclass
class BookMessage(WSMessage):
    """Full order book snapshot pushed on the market channel."""

    @property
    def book(self) -> OrderBookSummary:
        """Get the order book carried by the message."""
        return OrderBookSummary.from_dict(self.data)


@dataclass
class PriceChangeMessage(WSMessage):
    """Incremental price-level changes."""

    @property
    def changes(self) -> List[Dict[str, Any]]:
        """Get the changed levels."""
        return list(self.data.get("changes") or self.data.get("price_changes") or [])


@dataclass
class TickSizeChangeMessage(WSMessage):
    """Tick size change for a token."""

    @property
    def current_tick_size(self) -> str:
        """Get the new tick size."""
        return str(self.data.get("new_tick_size") or self.data.get("current_tick_size", ""))


@dataclass
class LastTradePriceMessage(WSMessage):
    """Last trade price for a token."""

    @property
    def price(self) -> str:
        """Get the trade price."""
        return str(self.data.get("price", ""))


@dataclass
class TradeMessage(WSMessage):
    """Trade event on the user channel."""


@dataclass
class OrderMessage(WSMessage):
    """Order placement, update or cancellation on the user channel."""


WS_MESSAGE_TYPES = {
    "book": BookMessage,
    "price_change": PriceChangeMessage,
    "tick_size_change": TickSizeChangeMessage,
    "last_trade_price": LastTradePriceMessage,
    "trade": TradeMessage,
    "order": OrderMessage,
}
