"""
Polymarket Python Client

A Python client for trading on the Polymarket CLOB, streaming market data and
redeeming positions through the gasless relayer.
"""

from polymarket_client.auth import ApiCreds, BuilderAuth, BuilderCreds, create_builder_auth
from polymarket_client.client import ClobClient
from polymarket_client.config import ClientConfig, ContractConfig, get_contract_config
from polymarket_client.exceptions import (
    AuthenticationError,
    InvalidArgumentError,
    PolymarketApiError,
    PolymarketError,
    RelayerError,
    SigningError,
    WebSocketError,
)
from polymarket_client.gamma import GammaClient
from polymarket_client.relayer import CtfRedeem, NegRiskRedeem, RelayerClient, derive_safe_address
from polymarket_client.signer import Signer
from polymarket_client.types import (
    CreateOrderOptions,
    MarketOrderArgs,
    OpenOrder,
    OrderArgs,
    OrderBookSummary,
    OrderIntent,
    OrderType,
    PriceLevel,
    RelayerTransaction,
    Side,
    SignatureType,
    SignedOrder,
    WSMessage,
)
from polymarket_client.wallet import ProxyWallet, SafeWallet, build_redeem_transaction
from polymarket_client.ws.client import ClobWSClient

__version__ = "0.1.0"

__all__ = [
    # Clients
    "ClobClient",
    "ClobWSClient",
    "GammaClient",
    "RelayerClient",
    # Configuration
    "ClientConfig",
    "ContractConfig",
    "get_contract_config",
    # Credentials and signing
    "ApiCreds",
    "BuilderAuth",
    "BuilderCreds",
    "Signer",
    "create_builder_auth",
    # Types
    "CreateOrderOptions",
    "MarketOrderArgs",
    "OpenOrder",
    "OrderArgs",
    "OrderBookSummary",
    "OrderIntent",
    "OrderType",
    "PriceLevel",
    "RelayerTransaction",
    "Side",
    "SignatureType",
    "SignedOrder",
    "WSMessage",
    # Wallets and redemption
    "CtfRedeem",
    "NegRiskRedeem",
    "ProxyWallet",
    "SafeWallet",
    "build_redeem_transaction",
    "derive_safe_address",
    # Exceptions
    "PolymarketError",
    "PolymarketApiError",
    "InvalidArgumentError",
    "AuthenticationError",
    "SigningError",
    "RelayerError",
    "WebSocketError",
]
