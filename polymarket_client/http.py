"""
HTTP transport shared by the CLOB, relayer and gamma clients.
"""

import json
import logging
from typing import Any, Dict, Optional, Union

import httpx

from polymarket_client.constants import DEFAULT_TIMEOUT
from polymarket_client.exceptions import PolymarketApiError

logger = logging.getLogger(__name__)

Body = Union[str, Dict[str, Any], list, None]


def serialize_body(body: Body) -> Optional[str]:
    """Serialize a request body to the exact string that is sent and signed."""
    if body is None or isinstance(body, str):
        return body
    return json.dumps(body, separators=(",", ":"))


def parse_api_error(response: httpx.Response) -> PolymarketApiError:
    """Build a PolymarketApiError from a non-2xx response.

    The message is taken from the JSON "message" field, then "error", then the
    raw body.
    """
    raw = response.text
    message = raw
    code = None
    body: Any = raw
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        body = data
        message = data.get("message") or data.get("error") or raw
        if data.get("code") is not None:
            code = str(data["code"])
    if not isinstance(message, str):
        message = json.dumps(message)

    return PolymarketApiError(
        message or f"HTTP {response.status_code}",
        status_code=response.status_code,
        code=code,
        request_id=response.headers.get("X-Request-Id"),
        body=body,
    )


class HttpClient:
    """Thin wrapper around httpx.Client returning decoded JSON."""

    def __init__(self, host: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize the HTTP client.

        Args:
            host: Base URL every path is joined onto.
            timeout: Default request timeout in seconds.
        """
        self._host = host.rstrip("/")
        self._client = httpx.Client(
            base_url=self._host,
            timeout=timeout,
            headers={"Accept": "application/json", "User-Agent": "polymarket-client"},
        )

    @property
    def host(self) -> str:
        """Get the base URL."""
        return self._host

    def close(self) -> None:
        """Close the underlying connection pool."""
        self._client.close()

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        data: Body = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a request and decode the response.

        Args:
            method: HTTP method.
            path: Request path, starting with "/".
            params: Query parameters.
            data: Body; dicts and lists are serialized to compact JSON.
            headers: Extra headers, e.g. authentication headers.
            timeout: Per-call timeout overriding the client default.

        Returns:
            The decoded JSON body, or the raw text if it is not JSON.

        Raises:
            PolymarketApiError: On a non-2xx response.
            httpx.HTTPError: On transport failures.
        """
        content = serialize_body(data)
        request_headers = dict(headers or {})
        if content is not None:
            request_headers.setdefault("Content-Type", "application/json")

        kwargs: Dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        logger.debug("%s %s%s", method, self._host, path)
        response = self._client.request(
            method,
            path,
            params=params,
            content=content,
            headers=request_headers,
            **kwargs,
        )

        if not response.is_success:
            error = parse_api_error(response)
            logger.debug("%s %s failed: %s", method, path, error)
            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a GET request."""
        return self.request("GET", path, params=params, headers=headers, timeout=timeout)

    def post(
        self,
        path: str,
        data: Body = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a POST request."""
        return self.request(
            "POST", path, params=params, data=data, headers=headers, timeout=timeout
        )

    def delete(
        self,
        path: str,
        data: Body = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a DELETE request."""
        return self.request(
            "DELETE", path, params=params, data=data, headers=headers, timeout=timeout
        )
