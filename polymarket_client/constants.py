"""
Constants for the Polymarket Python client.
"""

# Chain IDs
POLYGON = 137
AMOY = 80002

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_BYTES32 = "0x" + "00" * 32

# Default service URLs
DEFAULT_CLOB_HOST = "https://clob.polymarket.com"
DEFAULT_GAMMA_HOST = "https://gamma-api.polymarket.com"
DEFAULT_WS_HOST = "wss://ws-subscriptions-clob.polymarket.com"
DEFAULT_RELAYER_HOST = "https://relayer-v2.polymarket.com"
DEFAULT_TIMEOUT = 30.0

# WebSocket channel paths
WS_MARKET_CHANNEL = "/ws/market"
WS_USER_CHANNEL = "/ws/user"
WS_PING_INTERVAL = 10.0

# L1 (ClobAuth) EIP-712 constants
CLOB_AUTH_DOMAIN_NAME = "ClobAuthDomain"
CLOB_AUTH_VERSION = "1"
CLOB_AUTH_MESSAGE = "This message attests that I control the given wallet"

# Exchange order EIP-712 constants
EXCHANGE_DOMAIN_NAME = "Polymarket CTF Exchange"
EXCHANGE_DOMAIN_VERSION = "1"

# Safe proxy factory deployment constants
SAFE_FACTORY_ADDRESS = "0xaacFeEa03eb1561C4e67d661e40682Bd20E3541b"
SAFE_INIT_CODE_HASH = "0x2bce2127ff07fb632d16c8347c4ebf501f4841168bed00d9e6ef715ddb6fcecf"
SAFE_FACTORY_NAME = "Polymarket Contract Proxy Factory"

# Polymarket proxy wallet factory; proxy wallets route calls through it
PROXY_FACTORY_ADDRESS = "0xaB45c5A4B0c941a2F231C04C3f49182e1A254052"

# Authentication header names
POLY_ADDRESS = "POLY_ADDRESS"
POLY_SIGNATURE = "POLY_SIGNATURE"
POLY_TIMESTAMP = "POLY_TIMESTAMP"
POLY_NONCE = "POLY_NONCE"
POLY_API_KEY = "POLY_API_KEY"
POLY_PASSPHRASE = "POLY_PASSPHRASE"

POLY_BUILDER_API_KEY = "POLY_BUILDER_API_KEY"
POLY_BUILDER_SIGNATURE = "POLY_BUILDER_SIGNATURE"
POLY_BUILDER_TIMESTAMP = "POLY_BUILDER_TIMESTAMP"
POLY_BUILDER_PASSPHRASE = "POLY_BUILDER_PASSPHRASE"

# Pagination cursors
INITIAL_CURSOR = "MA=="
END_CURSOR = "LTE="

# Maximum number of orders accepted by a single batch post
MAX_BATCH_ORDERS = 15

# CLOB API endpoints
ENDPOINTS = {
    # Public
    "ok": "/",
    "time": "/time",
    "book": "/book",
    "books": "/books",
    "midpoint": "/midpoint",
    "price": "/price",
    "spread": "/spread",
    "last_trade_price": "/last-trade-price",
    "tick_size": "/tick-size",
    "neg_risk": "/neg-risk",
    "fee_rate": "/fee-rate",
    # API key management
    "create_api_key": "/auth/api-key",
    "derive_api_key": "/auth/derive-api-key",
    "api_keys": "/auth/api-keys",
    "delete_api_key": "/auth/api-key",
    "closed_only": "/auth/ban-status/closed-only",
    "builder_api_key": "/auth/builder-api-key",
    # Orders
    "post_order": "/order",
    "post_orders": "/orders",
    "cancel": "/order",
    "cancel_orders": "/orders",
    "cancel_all": "/cancel-all",
    "cancel_market_orders": "/cancel-market-orders",
    "order": "/data/order/{order_id}",
    "orders": "/data/orders",
    "balance_allowance": "/balance-allowance",
    "update_balance_allowance": "/balance-allowance/update",
    "heartbeat": "/v1/heartbeats",
}

# Relayer endpoints
RELAYER_ENDPOINTS = {
    "nonce": "/nonce",
    "submit": "/submit",
    "transaction": "/transaction",
    "deploy_safe": "/deploy-safe",
}

# Gamma endpoints
GAMMA_ENDPOINTS = {
    "markets": "/markets",
    "market": "/markets/{market_id}",
    "events": "/events",
    "event_by_slug": "/events/slug/{slug}",
}
