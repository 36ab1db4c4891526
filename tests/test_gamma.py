"""Tests for the Gamma client."""

import respx
from httpx import Response

from polymarket_client.gamma import GammaClient

GAMMA_HOST = "https://gamma-api.polymarket.com"


class TestGammaClient:
    """Tests for GammaClient."""

    @respx.mock
    def test_get_markets(self):
        route = respx.get(f"{GAMMA_HOST}/markets").mock(
            return_value=Response(200, json=[{"id": "1", "question": "Will it rain?"}])
        )
        with GammaClient(GAMMA_HOST) as client:
            markets = client.get_markets(limit=10, active=True, closed=False)

        assert markets[0]["question"] == "Will it rain?"
        params = route.calls.last.request.url.params
        assert params["limit"] == "10"
        assert params["active"] == "true"
        assert params["closed"] == "false"

    @respx.mock
    def test_get_event_by_slug(self):
        respx.get(f"{GAMMA_HOST}/events/slug/election").mock(
            return_value=Response(200, json={"slug": "election", "markets": []})
        )
        with GammaClient(GAMMA_HOST) as client:
            assert client.get_event_by_slug("election")["slug"] == "election"
