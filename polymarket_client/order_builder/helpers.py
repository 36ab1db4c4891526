"""
Price, size and market-parameter helpers for order construction.

Amounts are computed with Decimal and converted to 6-decimal base units.
"""

import secrets
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Dict, Optional, Tuple, Union

from polymarket_client.exceptions import InvalidArgumentError
from polymarket_client.types import Side

TOKEN_DECIMALS = 6

Number = Union[int, float, str, Decimal]


@dataclass(frozen=True)
class RoundConfig:
    """Decimal places allowed for price, size and notional at a tick size."""

    price: int
    size: int
    amount: int


ROUNDING_CONFIG: Dict[str, RoundConfig] = {
    "0.1": RoundConfig(price=1, size=2, amount=3),
    "0.01": RoundConfig(price=2, size=2, amount=4),
    "0.001": RoundConfig(price=3, size=2, amount=5),
    "0.0001": RoundConfig(price=4, size=2, amount=6),
}


def to_decimal(value: Number, name: str = "value") -> Decimal:
    """Convert a number or numeric string to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise InvalidArgumentError(f"Invalid {name}: {value!r}") from None


def _round_down(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)


def _round_normal(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)


def to_token_decimals(value: Decimal) -> int:
    """Convert a human amount to integer base units."""
    return int((value * (10**TOKEN_DECIMALS)).to_integral_value(rounding=ROUND_HALF_EVEN))


def get_round_config(tick_size: str) -> RoundConfig:
    """Get the rounding configuration for a tick size.

    Raises:
        InvalidArgumentError: If the tick size is not one the exchange uses.
    """
    tick = to_decimal(tick_size, "tick_size")
    for key, config in ROUNDING_CONFIG.items():
        if Decimal(key) == tick:
            return config
    raise InvalidArgumentError(f"Unsupported tick size: {tick_size}")


def price_valid(price: Number, tick_size: Number) -> bool:
    """Check that a price lies within [tick_size, 1 - tick_size]."""
    p = to_decimal(price, "price")
    tick = to_decimal(tick_size, "tick_size")
    return tick <= p <= Decimal(1) - tick


def is_tick_size_smaller(tick_size: Number, min_tick_size: Number) -> bool:
    """Check whether a tick size is finer than a market minimum."""
    return to_decimal(tick_size, "tick_size") < to_decimal(min_tick_size, "min_tick_size")


def resolve_tick_size(market_tick_size: str, user_tick_size: Optional[str] = None) -> str:
    """Pick the tick size an order is built against.

    Args:
        market_tick_size: The market's minimum tick size.
        user_tick_size: Optional caller override.

    Returns:
        The user tick size when given and valid, else the market's.

    Raises:
        InvalidArgumentError: If the user tick size is finer than the market allows.
    """
    if not user_tick_size:
        return market_tick_size
    if is_tick_size_smaller(user_tick_size, market_tick_size):
        raise InvalidArgumentError(
            f"Invalid tick size ({user_tick_size}), minimum for the market is {market_tick_size}"
        )
    return user_tick_size


def resolve_fee_rate(market_fee_rate_bps: int, user_fee_rate_bps: Optional[int] = None) -> int:
    """Pick the fee rate an order is signed with.

    Raises:
        InvalidArgumentError: If both rates are non-zero and disagree.
    """
    if (
        market_fee_rate_bps
        and user_fee_rate_bps
        and market_fee_rate_bps != user_fee_rate_bps
    ):
        raise InvalidArgumentError(
            f"Invalid user provided fee rate: ({user_fee_rate_bps}), "
            f"fee rate for the market must be {market_fee_rate_bps}"
        )
    return market_fee_rate_bps or user_fee_rate_bps or 0


def get_order_amounts(
    side: Side,
    size: Number,
    price: Number,
    tick_size: str,
) -> Tuple[int, int]:
    """Compute maker and taker amounts for a limit order.

    Args:
        side: BUY or SELL.
        size: Shares to trade.
        price: Limit price.
        tick_size: The market tick size.

    Returns:
        (maker_amount, taker_amount) in base units.
    """
    config = get_round_config(tick_size)
    raw_price = _round_normal(to_decimal(price, "price"), config.price)
    raw_size = _round_down(to_decimal(size, "size"), config.size)
    notional = _round_down(raw_size * raw_price, config.amount)

    if side == Side.BUY:
        return to_token_decimals(notional), to_token_decimals(raw_size)
    if side == Side.SELL:
        return to_token_decimals(raw_size), to_token_decimals(notional)
    raise InvalidArgumentError(f"Invalid side: {side}")


def get_market_order_amounts(
    side: Side,
    amount: Number,
    price: Number,
    tick_size: str,
) -> Tuple[int, int]:
    """Compute maker and taker amounts for a marketable order.

    BUY spends `amount` collateral; SELL sells `amount` shares.

    Returns:
        (maker_amount, taker_amount) in base units.
    """
    config = get_round_config(tick_size)
    raw_price = _round_normal(to_decimal(price, "price"), config.price)
    raw_amount = _round_down(to_decimal(amount, "amount"), config.size)

    if side == Side.BUY:
        shares = _round_down(raw_amount / raw_price, config.amount)
        return to_token_decimals(raw_amount), to_token_decimals(shares)
    if side == Side.SELL:
        proceeds = _round_down(raw_amount * raw_price, config.amount)
        return to_token_decimals(raw_amount), to_token_decimals(proceeds)
    raise InvalidArgumentError(f"Invalid side: {side}")


def generate_salt() -> int:
    """Generate a random order salt that fits a JSON-safe integer."""
    return secrets.randbits(53)
