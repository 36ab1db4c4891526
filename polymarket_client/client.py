"""
Main Polymarket client for interacting with the CLOB API.
"""

import logging
import threading
from dataclasses import replace
from typing import Any, Dict, Generic, List, Optional, TypeVar

from polymarket_client.auth import (
    ApiCreds,
    BuilderAuth,
    RequestArgs,
    create_builder_auth,
    create_level_1_headers,
    create_level_2_headers,
    merge_headers,
)
from polymarket_client.config import ClientConfig, get_contract_config
from polymarket_client.constants import (
    DEFAULT_CLOB_HOST,
    DEFAULT_TIMEOUT,
    END_CURSOR,
    ENDPOINTS,
    INITIAL_CURSOR,
    MAX_BATCH_ORDERS,
    POLYGON,
)
from polymarket_client.exceptions import (
    AuthenticationError,
    InvalidArgumentError,
    PolymarketApiError,
)
from polymarket_client.http import HttpClient, serialize_body
from polymarket_client.order_builder import OrderBuilder, resolve_fee_rate, resolve_tick_size
from polymarket_client.signer import Signer, create_signer
from polymarket_client.types import (
    CreateOrderOptions,
    MarketOrderArgs,
    OpenOrder,
    OrderArgs,
    OrderBookSummary,
    OrderType,
    SignatureType,
    SignedOrder,
)

logger = logging.getLogger(__name__)

V = TypeVar("V")


class TokenCache(Generic[V]):
    """Per-token cache safe for concurrent use.

    Entries are never evicted. Concurrent misses may both fetch; the last
    write wins, which is harmless because values for a token are identical.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: Dict[str, V] = {}

    def get(self, token_id: str) -> Optional[V]:
        with self._lock:
            return self._values.get(token_id)

    def set(self, token_id: str, value: V) -> None:
        with self._lock:
            self._values[token_id] = value

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def __contains__(self, token_id: str) -> bool:
        with self._lock:
            return token_id in self._values


def _format_tick_size(value: Any) -> str:
    return f"{float(value):g}"


class ClobClient:
    """Client for interacting with the Polymarket CLOB API.

    The client supports three access levels:
    - Level 0 (Public): No authentication, read-only market data
    - Level 1 (Signing): Private key for order signing and API key management
    - Level 2 (Full): Private key + API credentials for trading endpoints
    """

    def __init__(
        self,
        host: str = DEFAULT_CLOB_HOST,
        chain_id: int = POLYGON,
        private_key: Optional[str] = None,
        creds: Optional[ApiCreds] = None,
        signature_type: SignatureType = SignatureType.EOA,
        funder: Optional[str] = None,
        builder_auth: Optional[BuilderAuth] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the Polymarket client.

        Args:
            host: The CLOB API host URL.
            chain_id: The blockchain chain ID.
            private_key: Optional wallet private key for signing.
            creds: Optional L2 API credentials.
            signature_type: How orders are verified (EOA, proxy or Safe).
            funder: Wallet holding the funds when it differs from the signer.
            builder_auth: Optional builder credentials stamped on order posts.
            timeout: HTTP request timeout in seconds.
        """
        self._host = host.rstrip("/")
        self._chain_id = chain_id
        self._contracts = get_contract_config(chain_id)
        self._signature_type = SignatureType(signature_type)

        self._signer: Optional[Signer] = None
        if private_key:
            self._signer = create_signer(private_key, chain_id)
        self._order_builder = OrderBuilder(
            self._signer, self._contracts, signature_type=self._signature_type, funder=funder
        )

        self._creds = creds
        self._builder_auth = builder_auth
        self._http = HttpClient(self._host, timeout=timeout)

        self._tick_sizes: TokenCache[str] = TokenCache()
        self._neg_risk: TokenCache[bool] = TokenCache()
        self._fee_rates: TokenCache[int] = TokenCache()

    @classmethod
    def from_config(cls, config: ClientConfig) -> "ClobClient":
        """Create a client from a ClientConfig."""
        creds = None
        if config.api_key and config.api_secret and config.api_passphrase:
            creds = ApiCreds(config.api_key, config.api_secret, config.api_passphrase)
        builder_auth = None
        if config.builder_api_key and config.builder_secret and config.builder_passphrase:
            builder_auth = create_builder_auth(
                config.builder_api_key, config.builder_secret, config.builder_passphrase
            )
        return cls(
            host=config.clob_host,
            chain_id=config.chain_id,
            private_key=config.private_key,
            creds=creds,
            signature_type=SignatureType(config.signature_type),
            funder=config.funder,
            builder_auth=builder_auth,
            timeout=config.timeout,
        )

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "ClobClient":
        """Create a client from POLYMARKET_* environment variables.

        Args:
            dotenv: Whether to load a .env file first.
        """
        return cls.from_config(ClientConfig.from_env(dotenv=dotenv))

    def close(self) -> None:
        """Close the client and release resources."""
        self._http.close()

    def __enter__(self) -> "ClobClient":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    @property
    def host(self) -> str:
        """Get the API host URL."""
        return self._host

    @property
    def chain_id(self) -> int:
        """Get the chain ID."""
        return self._chain_id

    @property
    def address(self) -> Optional[str]:
        """Get the wallet address if a signer is configured."""
        return self._signer.address if self._signer else None

    @property
    def creds(self) -> Optional[ApiCreds]:
        """Get the L2 API credentials, if any."""
        return self._creds

    @property
    def can_sign(self) -> bool:
        """Check if the client can sign orders."""
        return self._signer is not None

    @property
    def has_auth(self) -> bool:
        """Check if the client has L2 API credentials."""
        return self._creds is not None

    def set_api_creds(self, creds: ApiCreds) -> None:
        """Replace the L2 API credentials."""
        self._creds = creds

    def _require_signer(self) -> Signer:
        """Ensure a signer is configured.

        Raises:
            AuthenticationError: If no signer is configured.
        """
        if not self._signer:
            raise AuthenticationError(
                "Private key required for this operation",
                required_level="L1",
            )
        return self._signer

    def _require_auth(self) -> ApiCreds:
        """Ensure L2 credentials are configured.

        Raises:
            AuthenticationError: If no signer or credentials are configured.
        """
        self._require_signer()
        if not self._creds:
            raise AuthenticationError(
                "API credentials required for this operation",
                required_level="L2",
            )
        return self._creds

    def _l1_headers(self, nonce: int = 0) -> Dict[str, str]:
        return create_level_1_headers(self._require_signer(), nonce=nonce)

    def _l2_headers(self, method: str, path: str, body: Optional[str] = None) -> Dict[str, str]:
        creds = self._require_auth()
        return create_level_2_headers(
            self._require_signer(), creds, RequestArgs(method, path, body)
        )

    def _builder_headers(
        self, headers: Dict[str, str], method: str, path: str, body: Optional[str]
    ) -> Dict[str, str]:
        if self._builder_auth is None:
            return headers
        return merge_headers(headers, self._builder_auth.headers(method, path, body))

    # =========================================================================
    # Public Endpoints (No Auth Required)
    # =========================================================================

    def get_ok(self) -> Any:
        """Check API health."""
        return self._http.get(ENDPOINTS["ok"])

    def get_server_time(self) -> int:
        """Get the server's unix time in seconds."""
        return int(self._http.get(ENDPOINTS["time"]))

    def get_order_book(self, token_id: str) -> OrderBookSummary:
        """Get the order book for a token.

        Args:
            token_id: The outcome token ID.

        Returns:
            The order book snapshot.
        """
        response = self._http.get(ENDPOINTS["book"], params={"token_id": token_id})
        return OrderBookSummary.from_dict(response)

    def get_order_books(self, token_ids: List[str]) -> List[OrderBookSummary]:
        """Get order books for several tokens in one request."""
        body = [{"token_id": token_id} for token_id in token_ids]
        response = self._http.post(ENDPOINTS["books"], data=body)
        return [OrderBookSummary.from_dict(b) for b in response or []]

    def get_midpoint(self, token_id: str) -> Dict[str, Any]:
        """Get the midpoint price for a token."""
        return self._http.get(ENDPOINTS["midpoint"], params={"token_id": token_id})

    def get_price(self, token_id: str, side: str) -> Dict[str, Any]:
        """Get the best price for a token on one side ("BUY" or "SELL")."""
        return self._http.get(ENDPOINTS["price"], params={"token_id": token_id, "side": side})

    def get_spread(self, token_id: str) -> Dict[str, Any]:
        """Get the bid-ask spread for a token."""
        return self._http.get(ENDPOINTS["spread"], params={"token_id": token_id})

    def get_last_trade_price(self, token_id: str) -> Dict[str, Any]:
        """Get the last traded price for a token."""
        return self._http.get(ENDPOINTS["last_trade_price"], params={"token_id": token_id})

    # =========================================================================
    # Market Parameters (cached per token)
    # =========================================================================

    def get_tick_size(self, token_id: str) -> str:
        """Get the minimum tick size for a token.

        Args:
            token_id: The outcome token ID.

        Returns:
            The tick size as a decimal string, e.g. "0.01".
        """
        cached = self._tick_sizes.get(token_id)
        if cached is not None:
            return cached
        response = self._http.get(ENDPOINTS["tick_size"], params={"token_id": token_id})
        tick_size = _format_tick_size(response["minimum_tick_size"])
        self._tick_sizes.set(token_id, tick_size)
        return tick_size

    def get_neg_risk(self, token_id: str) -> bool:
        """Check whether a token trades on the neg-risk exchange."""
        cached = self._neg_risk.get(token_id)
        if cached is not None:
            return cached
        response = self._http.get(ENDPOINTS["neg_risk"], params={"token_id": token_id})
        neg_risk = bool(response["neg_risk"])
        self._neg_risk.set(token_id, neg_risk)
        return neg_risk

    def get_fee_rate_bps(self, token_id: str) -> int:
        """Get the fee rate in basis points charged for a token."""
        cached = self._fee_rates.get(token_id)
        if cached is not None:
            return cached
        response = self._http.get(ENDPOINTS["fee_rate"], params={"token_id": token_id})
        fee_rate = int(response.get("base_fee") or 0)
        self._fee_rates.set(token_id, fee_rate)
        return fee_rate

    def clear_market_params_cache(self) -> None:
        """Forget cached tick sizes, neg-risk flags and fee rates."""
        self._tick_sizes.clear()
        self._neg_risk.clear()
        self._fee_rates.clear()

    # =========================================================================
    # API Key Management (L1)
    # =========================================================================

    def create_api_key(self, nonce: int = 0) -> ApiCreds:
        """Create new L2 API credentials by proving wallet control.

        Args:
            nonce: Nonce signed into the L1 headers.

        Returns:
            The new credentials, installed on the client.

        Raises:
            AuthenticationError: If no signer is configured.
        """
        response = self._http.post(ENDPOINTS["create_api_key"], headers=self._l1_headers(nonce))
        self._creds = ApiCreds.from_dict(response)
        return self._creds

    def derive_api_key(self, nonce: int = 0) -> ApiCreds:
        """Derive the existing L2 API credentials for a nonce and install them.

        Raises:
            AuthenticationError: If no signer is configured.
        """
        response = self._http.get(ENDPOINTS["derive_api_key"], headers=self._l1_headers(nonce))
        self._creds = ApiCreds.from_dict(response)
        return self._creds

    def create_or_derive_api_creds(self, nonce: int = 0) -> ApiCreds:
        """Derive existing credentials, creating them if none exist.

        Returns:
            The credentials, which are also installed on the client.
        """
        try:
            return self.derive_api_key(nonce)
        except PolymarketApiError as e:
            logger.info("Could not derive API key (%s), creating a new one", e)
        return self.create_api_key(nonce)

    # =========================================================================
    # Account Endpoints (L2)
    # =========================================================================

    def get_api_keys(self) -> List[str]:
        """List the API keys registered for this wallet."""
        path = ENDPOINTS["api_keys"]
        response = self._http.get(path, headers=self._l2_headers("GET", path))
        return list(response.get("apiKeys") or [])

    def delete_api_key(self) -> Any:
        """Delete the API key the client is using."""
        path = ENDPOINTS["delete_api_key"]
        return self._http.delete(path, headers=self._l2_headers("DELETE", path))

    def get_closed_only_mode(self) -> bool:
        """Check whether the account is restricted to closing positions."""
        path = ENDPOINTS["closed_only"]
        response = self._http.get(path, headers=self._l2_headers("GET", path))
        return bool(response.get("closed_only", False))

    def create_builder_api_key(self) -> Dict[str, Any]:
        """Create builder API credentials for this account."""
        path = ENDPOINTS["builder_api_key"]
        return self._http.post(path, headers=self._l2_headers("POST", path))

    def get_balance_allowance(
        self,
        asset_type: str = "COLLATERAL",
        token_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Get balance and exchange allowance for collateral or a conditional token.

        Args:
            asset_type: "COLLATERAL" or "CONDITIONAL".
            token_id: The token ID for conditional assets.
        """
        path = ENDPOINTS["balance_allowance"]
        params = {"asset_type": asset_type, "signature_type": int(self._signature_type)}
        if token_id:
            params["token_id"] = token_id
        return self._http.get(path, params=params, headers=self._l2_headers("GET", path))

    def update_balance_allowance(
        self,
        asset_type: str = "COLLATERAL",
        token_id: Optional[str] = None,
    ) -> Any:
        """Ask the CLOB to refresh its view of balance and allowance."""
        path = ENDPOINTS["update_balance_allowance"]
        params = {"asset_type": asset_type, "signature_type": int(self._signature_type)}
        if token_id:
            params["token_id"] = token_id
        return self._http.get(path, params=params, headers=self._l2_headers("GET", path))

    def post_heartbeat(self, heartbeat_id: Optional[str] = None) -> Dict[str, Any]:
        """Send a heartbeat. Once started, missing beats for 10s cancels open orders."""
        path = ENDPOINTS["heartbeat"]
        body = serialize_body({"heartbeat_id": heartbeat_id})
        return self._http.post(path, data=body, headers=self._l2_headers("POST", path, body))

    # =========================================================================
    # Orders
    # =========================================================================

    def _order_options(
        self,
        token_id: str,
        tick_size: Optional[str],
        neg_risk: Optional[bool],
    ) -> CreateOrderOptions:
        resolved_tick = resolve_tick_size(self.get_tick_size(token_id), tick_size)
        if neg_risk is None:
            neg_risk = self.get_neg_risk(token_id)
        return CreateOrderOptions(tick_size=resolved_tick, neg_risk=neg_risk)

    def create_order(
        self,
        args: OrderArgs,
        tick_size: Optional[str] = None,
        neg_risk: Optional[bool] = None,
    ) -> SignedOrder:
        """Create and sign a limit order.

        Market parameters are fetched (and cached) when not supplied.

        Args:
            args: The order arguments.
            tick_size: Optional tick size; must not be finer than the market's.
            neg_risk: Optional neg-risk flag; fetched when omitted.

        Returns:
            The signed order.

        Raises:
            AuthenticationError: If no signer is configured.
            InvalidArgumentError: On invalid price, tick size or fee rate.
        """
        self._require_signer()
        options = self._order_options(args.token_id, tick_size, neg_risk)
        fee_rate = resolve_fee_rate(self.get_fee_rate_bps(args.token_id), args.fee_rate_bps)
        return self._order_builder.create_order(replace(args, fee_rate_bps=fee_rate), options)

    def create_market_order(
        self,
        args: MarketOrderArgs,
        tick_size: Optional[str] = None,
        neg_risk: Optional[bool] = None,
    ) -> SignedOrder:
        """Create and sign a marketable order at a worst-acceptable price."""
        self._require_signer()
        options = self._order_options(args.token_id, tick_size, neg_risk)
        fee_rate = resolve_fee_rate(self.get_fee_rate_bps(args.token_id), args.fee_rate_bps)
        return self._order_builder.create_market_order(replace(args, fee_rate_bps=fee_rate), options)

    def _post_order_payload(
        self,
        order: SignedOrder,
        order_type: OrderType,
        post_only: bool,
        defer_exec: bool,
    ) -> Dict[str, Any]:
        order_type = OrderType(order_type)
        if post_only and order_type not in (OrderType.GTC, OrderType.GTD):
            raise InvalidArgumentError("postOnly is only supported for GTC and GTD orders")
        return {
            "order": order.to_dict(),
            "owner": self._require_auth().api_key,
            "orderType": order_type.value,
            "deferExec": defer_exec,
            "postOnly": post_only,
        }

    def post_order(
        self,
        order: SignedOrder,
        order_type: OrderType = OrderType.GTC,
        post_only: bool = False,
        defer_exec: bool = False,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Submit a signed order to the order book.

        Builder headers are added when builder credentials are configured.

        Args:
            order: The signed order.
            order_type: Time-in-force.
            post_only: Reject instead of matching on arrival (GTC/GTD only).
            defer_exec: Ask the matching engine to defer execution.
            timeout: Per-call timeout in seconds.

        Returns:
            The order submission response.

        Raises:
            AuthenticationError: If L2 credentials are missing.
            InvalidArgumentError: If post_only is used with FOK/FAK.
        """
        path = ENDPOINTS["post_order"]
        body = serialize_body(self._post_order_payload(order, order_type, post_only, defer_exec))
        headers = self._builder_headers(self._l2_headers("POST", path, body), "POST", path, body)
        logger.info("Posting %s order for token %s", OrderType(order_type).value, order.token_id)
        return self._http.post(path, data=body, headers=headers, timeout=timeout)

    def post_orders(
        self,
        orders: List[SignedOrder],
        order_type: OrderType = OrderType.GTC,
        post_only: bool = False,
        defer_exec: bool = False,
        timeout: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """Submit up to 15 signed orders in one request.

        Raises:
            InvalidArgumentError: If the batch is empty or too large.
        """
        if not orders:
            raise InvalidArgumentError("At least one order is required")
        if len(orders) > MAX_BATCH_ORDERS:
            raise InvalidArgumentError(f"Max {MAX_BATCH_ORDERS} orders per batch")

        path = ENDPOINTS["post_orders"]
        payload = [
            self._post_order_payload(order, order_type, post_only, defer_exec) for order in orders
        ]
        body = serialize_body(payload)
        headers = self._builder_headers(self._l2_headers("POST", path, body), "POST", path, body)
        logger.info("Posting batch of %d orders", len(orders))
        return self._http.post(path, data=body, headers=headers, timeout=timeout)

    def create_and_post_order(
        self,
        args: OrderArgs,
        order_type: OrderType = OrderType.GTC,
        tick_size: Optional[str] = None,
        neg_risk: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Create, sign and submit a limit order."""
        order = self.create_order(args, tick_size=tick_size, neg_risk=neg_risk)
        return self.post_order(order, order_type=order_type)

    def get_order(self, order_id: str) -> OpenOrder:
        """Get a single order by ID."""
        path = ENDPOINTS["order"].format(order_id=order_id)
        response = self._http.get(path, headers=self._l2_headers("GET", path))
        return OpenOrder.from_dict(response)

    def get_orders(
        self,
        market: Optional[str] = None,
        asset_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> List[OpenOrder]:
        """Get the account's open orders, following pagination to the end.

        Args:
            market: Optional condition ID filter.
            asset_id: Optional token ID filter.
            order_id: Optional order ID filter.

        Returns:
            All matching open orders.
        """
        path = ENDPOINTS["orders"]
        params: Dict[str, Any] = {}
        if market:
            params["market"] = market
        if asset_id:
            params["asset_id"] = asset_id
        if order_id:
            params["id"] = order_id

        orders: List[OpenOrder] = []
        cursor = INITIAL_CURSOR
        while cursor != END_CURSOR:
            response = self._http.get(
                path,
                params={**params, "next_cursor": cursor},
                headers=self._l2_headers("GET", path),
            )
            orders.extend(OpenOrder.from_dict(o) for o in response.get("data") or [])
            next_cursor = response.get("next_cursor") or END_CURSOR
            if next_cursor == cursor:
                logger.warning("Server repeated cursor %s; stopping pagination", cursor)
                break
            cursor = next_cursor
        return orders

    def cancel(self, order_id: str) -> Dict[str, Any]:
        """Cancel one order."""
        if not order_id:
            raise InvalidArgumentError("order_id is required")
        path = ENDPOINTS["cancel"]
        body = serialize_body({"orderID": order_id})
        return self._http.delete(path, data=body, headers=self._l2_headers("DELETE", path, body))

    def cancel_orders(self, order_ids: List[str]) -> Dict[str, Any]:
        """Cancel several orders."""
        if not order_ids:
            raise InvalidArgumentError("order_ids is required")
        path = ENDPOINTS["cancel_orders"]
        body = serialize_body(list(order_ids))
        return self._http.delete(path, data=body, headers=self._l2_headers("DELETE", path, body))

    def cancel_all(self) -> Dict[str, Any]:
        """Cancel every open order of the account."""
        path = ENDPOINTS["cancel_all"]
        return self._http.delete(path, headers=self._l2_headers("DELETE", path))

    def cancel_market_orders(
        self,
        market: Optional[str] = None,
        asset_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Cancel open orders for a market (condition ID) or a token."""
        if not market and not asset_id:
            raise InvalidArgumentError("market or asset_id is required")
        path = ENDPOINTS["cancel_market_orders"]
        payload: Dict[str, str] = {}
        if market:
            payload["market"] = market
        if asset_id:
            payload["asset_id"] = asset_id
        body = serialize_body(payload)
        return self._http.delete(path, data=body, headers=self._l2_headers("DELETE", path, body))
