"""
WebSocket client for real-time CLOB market and user events.
"""

import asyncio
import inspect
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set, Union

import websockets
from websockets.asyncio.client import ClientConnection

from polymarket_client.auth import ApiCreds
from polymarket_client.constants import (
    DEFAULT_WS_HOST,
    WS_MARKET_CHANNEL,
    WS_PING_INTERVAL,
    WS_USER_CHANNEL,
)
from polymarket_client.exceptions import WebSocketError
from polymarket_client.types import WS_MESSAGE_TYPES, WSMessage

logger = logging.getLogger(__name__)

Handler = Callable[[WSMessage], Union[None, Awaitable[None]]]

KEEPALIVE_FRAMES = ("PING", "PONG")


def parse_messages(raw: Union[str, bytes]) -> List[WSMessage]:
    """Parse one WebSocket frame into messages.

    Keepalive frames yield nothing; a JSON array yields one message per item.

    Raises:
        WebSocketError: If the frame is not valid JSON.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    raw = raw.strip()
    if not raw or raw in KEEPALIVE_FRAMES:
        return []

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise WebSocketError(f"Failed to parse message: {e}") from e

    items = data if isinstance(data, list) else [data]
    messages = []
    for item in items:
        if not isinstance(item, dict):
            continue
        message_cls = WS_MESSAGE_TYPES.get(item.get("event_type", ""), WSMessage)
        messages.append(message_cls.from_dict(item))
    return messages


class WSStream:
    """A connected channel that dispatches events to handlers by event_type."""

    def __init__(self, connection: ClientConnection) -> None:
        """Initialize the stream.

        Args:
            connection: The WebSocket connection.
        """
        self._connection = connection
        self._handlers: Dict[str, Handler] = {}
        self._fallback: Optional[Handler] = None
        self._subscriptions: Set[str] = set()

    @property
    def subscriptions(self) -> Set[str]:
        """Get the asset IDs or markets subscribed on this stream."""
        return set(self._subscriptions)

    def on(self, event_type: str, handler: Handler) -> None:
        """Register a handler for an event type, e.g. "book" or "trade"."""
        self._handlers[event_type] = handler

    def on_unhandled(self, handler: Handler) -> None:
        """Register a handler for events with no specific handler."""
        self._fallback = handler

    async def subscribe_market(self, asset_ids: List[str]) -> None:
        """Subscribe to order book events for tokens on the market channel.

        Args:
            asset_ids: Token IDs to follow.
        """
        message = {"type": "market", "assets_ids": list(asset_ids)}
        await self._connection.send(json.dumps(message))
        self._subscriptions.update(asset_ids)

    async def subscribe_user(self, markets: List[str], creds: ApiCreds) -> None:
        """Subscribe to the account's order and trade events on the user channel.

        Args:
            markets: Condition IDs to follow; empty for all markets.
            creds: L2 API credentials authenticating the subscription.
        """
        message = {
            "auth": {
                "apiKey": creds.api_key,
                "secret": creds.api_secret,
                "passphrase": creds.api_passphrase,
            },
            "type": "user",
            "markets": list(markets),
        }
        await self._connection.send(json.dumps(message))
        self._subscriptions.update(markets)

    async def dispatch(self, raw: Union[str, bytes]) -> List[WSMessage]:
        """Parse a frame and hand each message to its handler.

        Returns:
            The parsed messages.
        """
        messages = parse_messages(raw)
        for message in messages:
            handler = self._handlers.get(message.event_type, self._fallback)
            if handler is None:
                logger.debug("No handler for event type %r", message.event_type)
                continue
            result = handler(message)
            if inspect.isawaitable(result):
                await result
        return messages

    async def ping(self) -> None:
        """Send an application-level keepalive."""
        await self._connection.send("PING")

    async def _ping_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.ping()

    async def run(self, ping_interval: float = WS_PING_INTERVAL) -> None:
        """Dispatch incoming frames until the connection closes.

        A PING is sent every ping_interval seconds while running.
        """
        pinger = asyncio.create_task(self._ping_loop(ping_interval))
        try:
            async for raw_message in self._connection:
                await self.dispatch(raw_message)
        except websockets.exceptions.ConnectionClosed:
            logger.info("WebSocket connection closed")
        finally:
            pinger.cancel()

    async def __aiter__(self) -> AsyncIterator[WSMessage]:
        """Iterate over incoming messages without dispatching them.

        Yields:
            Parsed WebSocket messages.
        """
        try:
            async for raw_message in self._connection:
                for message in parse_messages(raw_message):
                    yield message
        except websockets.exceptions.ConnectionClosed:
            pass

    async def recv(self) -> List[WSMessage]:
        """Receive a single frame.

        Returns:
            The messages in the frame; empty for keepalives.

        Raises:
            WebSocketError: If the connection is closed.
        """
        try:
            raw = await self._connection.recv()
        except websockets.exceptions.ConnectionClosed as e:
            raise WebSocketError(f"Connection closed: {e}") from e
        return parse_messages(raw)

    async def close(self) -> None:
        """Close the stream."""
        await self._connection.close()


class ClobWSClient:
    """WebSocket client for the CLOB market and user channels."""

    def __init__(
        self,
        host: str = DEFAULT_WS_HOST,
        reconnect: bool = True,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 60.0,
    ) -> None:
        """Initialize the WebSocket client.

        Args:
            host: The WebSocket host URL (wss://...).
            reconnect: Whether connect_with_retry keeps retrying.
            reconnect_delay: Initial reconnect delay in seconds.
            max_reconnect_delay: Maximum reconnect delay in seconds.
        """
        if host.startswith("http://"):
            host = "ws://" + host[7:]
        elif host.startswith("https://"):
            host = "wss://" + host[8:]

        self._host = host.rstrip("/")
        self._reconnect = reconnect
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._connection: Optional[ClientConnection] = None

    @property
    def market_url(self) -> str:
        """Get the market channel URL."""
        return f"{self._host}{WS_MARKET_CHANNEL}"

    @property
    def user_url(self) -> str:
        """Get the user channel URL."""
        return f"{self._host}{WS_USER_CHANNEL}"

    def _url(self, channel: str) -> str:
        if channel == "market":
            return self.market_url
        if channel == "user":
            return self.user_url
        raise WebSocketError(f"Unknown channel: {channel}")

    @asynccontextmanager
    async def connect(self, channel: str = "market") -> AsyncIterator[WSStream]:
        """Connect to a channel.

        Args:
            channel: "market" or "user".

        Yields:
            A WSStream for subscribing and dispatching.

        Example:
            async with client.connect("market") as stream:
                stream.on("book", lambda msg: print(msg.book.bids[:3]))
                await stream.subscribe_market([token_id])
                await stream.run()
        """
        url = self._url(channel)
        try:
            self._connection = await websockets.connect(url)
            yield WSStream(self._connection)
        finally:
            if self._connection:
                await self._connection.close()
                self._connection = None

    async def connect_with_retry(self, channel: str = "market") -> WSStream:
        """Connect with exponential backoff.

        Returns:
            A WSStream for subscribing and dispatching.

        Note:
            This method keeps trying until it connects unless reconnect is
            disabled. Use connect() for a single attempt.
        """
        url = self._url(channel)
        delay = self._reconnect_delay

        while True:
            try:
                self._connection = await websockets.connect(url)
                return WSStream(self._connection)
            except (OSError, websockets.exceptions.WebSocketException) as e:
                if not self._reconnect:
                    raise WebSocketError(f"Connection failed: {e}") from e
                logger.warning("WebSocket connect to %s failed (%s), retrying in %.1fs", url, e, delay)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._max_reconnect_delay)

    async def close(self) -> None:
        """Close the connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
