"""
Order building and signing.
"""

from polymarket_client.order_builder.builder import OrderBuilder, build_order_typed_data, hash_order
from polymarket_client.order_builder.helpers import (
    ROUNDING_CONFIG,
    generate_salt,
    get_market_order_amounts,
    get_order_amounts,
    price_valid,
    resolve_fee_rate,
    resolve_tick_size,
)

__all__ = [
    "OrderBuilder",
    "build_order_typed_data",
    "hash_order",
    "ROUNDING_CONFIG",
    "generate_salt",
    "get_market_order_amounts",
    "get_order_amounts",
    "price_valid",
    "resolve_fee_rate",
    "resolve_tick_size",
]
