"""
Client for the Gamma market-metadata API.
"""

from typing import Any, Dict, List, Optional

from polymarket_client.constants import DEFAULT_GAMMA_HOST, DEFAULT_TIMEOUT, GAMMA_ENDPOINTS
from polymarket_client.http import HttpClient


def _params(limit: Optional[int], offset: Optional[int], filters: Dict[str, Any]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    if limit is not None:
        params["limit"] = limit
    if offset is not None:
        params["offset"] = offset
    for key, value in filters.items():
        if value is None:
            continue
        # httpx renders Python booleans as "True"/"False"
        params[key] = str(value).lower() if isinstance(value, bool) else value
    return params


class GammaClient:
    """Read-only client for markets and events."""

    def __init__(self, host: str = DEFAULT_GAMMA_HOST, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._http = HttpClient(host, timeout=timeout)

    def close(self) -> None:
        """Close the client and release resources."""
        self._http.close()

    def __enter__(self) -> "GammaClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def get_markets(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        **filters: Any,
    ) -> List[Dict[str, Any]]:
        """List markets.

        Args:
            limit: Page size.
            offset: Page offset.
            **filters: Extra query filters, e.g. active=True, closed=False.

        Returns:
            Market dictionaries as returned by the API.
        """
        return self._http.get(GAMMA_ENDPOINTS["markets"], params=_params(limit, offset, filters))

    def get_market(self, market_id: str) -> Dict[str, Any]:
        """Get one market by its Gamma ID."""
        return self._http.get(GAMMA_ENDPOINTS["market"].format(market_id=market_id))

    def get_events(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        **filters: Any,
    ) -> List[Dict[str, Any]]:
        """List events, each grouping one or more markets."""
        return self._http.get(GAMMA_ENDPOINTS["events"], params=_params(limit, offset, filters))

    def get_event_by_slug(self, slug: str) -> Dict[str, Any]:
        """Get an event by its URL slug."""
        return self._http.get(GAMMA_ENDPOINTS["event_by_slug"].format(slug=slug))
