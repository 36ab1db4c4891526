"""Tests for the WebSocket client."""

import json

import pytest

from polymarket_client.auth import ApiCreds
from polymarket_client.exceptions import WebSocketError
from polymarket_client.types import (
    BookMessage,
    LastTradePriceMessage,
    OrderMessage,
    PriceChangeMessage,
    TickSizeChangeMessage,
    WSMessage,
)
from polymarket_client.ws import ClobWSClient, WSStream, parse_messages

BOOK = {
    "event_type": "book",
    "market": "0xcond",
    "asset_id": "123",
    "timestamp": "1700000000000",
    "bids": [{"price": "0.48", "size": "30"}],
    "asks": [{"price": "0.52", "size": "25"}],
}


class FakeConnection:
    """In-memory stand-in for a websockets ClientConnection."""

    def __init__(self, frames=None):
        self.frames = list(frames or [])
        self.sent = []
        self.closed = False

    async def send(self, message):
        self.sent.append(message)

    async def recv(self):
        return self.frames.pop(0)

    async def close(self):
        self.closed = True

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame


class TestParseMessages:
    """Tests for frame parsing."""

    def test_keepalive(self):
        assert parse_messages("PONG") == []
        assert parse_messages("PING") == []
        assert parse_messages("") == []

    def test_book(self):
        (message,) = parse_messages(json.dumps(BOOK))
        assert isinstance(message, BookMessage)
        assert message.asset_id == "123"
        assert message.book.bids[0].price == "0.48"

    def test_array_frame(self):
        frame = json.dumps(
            [
                BOOK,
                {"event_type": "last_trade_price", "asset_id": "123", "price": "0.5"},
            ]
        )
        messages = parse_messages(frame)
        assert [type(m) for m in messages] == [BookMessage, LastTradePriceMessage]
        assert messages[1].price == "0.5"

    def test_bytes_frame(self):
        (message,) = parse_messages(json.dumps(BOOK).encode())
        assert isinstance(message, BookMessage)

    def test_event_types(self):
        price_change = {"event_type": "price_change", "changes": [{"price": "0.4"}]}
        tick_change = {"event_type": "tick_size_change", "new_tick_size": "0.001"}
        order = {"event_type": "order", "id": "0x1"}
        messages = parse_messages(json.dumps([price_change, tick_change, order]))
        assert isinstance(messages[0], PriceChangeMessage)
        assert messages[0].changes == [{"price": "0.4"}]
        assert isinstance(messages[1], TickSizeChangeMessage)
        assert messages[1].current_tick_size == "0.001"
        assert isinstance(messages[2], OrderMessage)

    def test_unknown_event_type(self):
        (message,) = parse_messages('{"event_type": "mystery"}')
        assert type(message) is WSMessage

    def test_invalid_json(self):
        with pytest.raises(WebSocketError):
            parse_messages("{not json")


class TestWSStream:
    """Tests for subscription and dispatch."""

    @pytest.mark.asyncio
    async def test_subscribe_market(self):
        connection = FakeConnection()
        stream = WSStream(connection)
        await stream.subscribe_market(["123", "456"])
        assert json.loads(connection.sent[0]) == {"type": "market", "assets_ids": ["123", "456"]}
        assert stream.subscriptions == {"123", "456"}

    @pytest.mark.asyncio
    async def test_subscribe_user(self, api_creds):
        connection = FakeConnection()
        await WSStream(connection).subscribe_user(["0xcond"], api_creds)
        message = json.loads(connection.sent[0])
        assert message["type"] == "user"
        assert message["markets"] == ["0xcond"]
        assert message["auth"]["apiKey"] == api_creds.api_key

    @pytest.mark.asyncio
    async def test_dispatch_sync_and_async_handlers(self):
        stream = WSStream(FakeConnection())
        books = []
        trades = []

        async def on_trade(message):
            trades.append(message)

        stream.on("book", books.append)
        stream.on("last_trade_price", on_trade)
        frame = json.dumps([BOOK, {"event_type": "last_trade_price", "price": "0.5"}])
        messages = await stream.dispatch(frame)

        assert len(messages) == 2
        assert len(books) == 1
        assert len(trades) == 1

    @pytest.mark.asyncio
    async def test_dispatch_fallback(self):
        stream = WSStream(FakeConnection())
        unhandled = []
        stream.on_unhandled(unhandled.append)
        await stream.dispatch('{"event_type": "mystery"}')
        assert unhandled[0].event_type == "mystery"

    @pytest.mark.asyncio
    async def test_run_dispatches_until_closed(self):
        connection = FakeConnection([json.dumps(BOOK), "PONG", json.dumps(BOOK)])
        stream = WSStream(connection)
        books = []
        stream.on("book", books.append)
        await stream.run(ping_interval=60)
        assert len(books) == 2

    @pytest.mark.asyncio
    async def test_iterate(self):
        stream = WSStream(FakeConnection([json.dumps(BOOK), "PONG"]))
        messages = [message async for message in stream]
        assert len(messages) == 1

    @pytest.mark.asyncio
    async def test_ping_and_close(self):
        connection = FakeConnection()
        stream = WSStream(connection)
        await stream.ping()
        await stream.close()
        assert connection.sent == ["PING"]
        assert connection.closed


class TestClobWSClient:
    """Tests for channel URLs."""

    def test_channel_urls(self):
        client = ClobWSClient("wss://ws-subscriptions-clob.polymarket.com/")
        assert client.market_url == "wss://ws-subscriptions-clob.polymarket.com/ws/market"
        assert client.user_url == "wss://ws-subscriptions-clob.polymarket.com/ws/user"

    def test_https_converted(self):
        assert ClobWSClient("https://example.com").market_url == "wss://example.com/ws/market"

    @pytest.mark.asyncio
    async def test_unknown_channel(self):
        client = ClobWSClient()
        with pytest.raises(WebSocketError):
            async with client.connect("orders"):
                pass
