"""
JSON-RPC transport for read-only Ethereum calls.

Thin async client over httpx supporting ``eth_call``, ``eth_blockNumber`` and
``eth_chainId``, with an optional minimum-interval throttle shared by every
call made through the same client instance.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import urlparse

import httpx

from ..errors import (
    HTTPStatusFailure,
    InvalidEndpointError,
    MalformedResponseError,
    RPCFailure,
    TransportFailure,
)

# Get logger for this module
logger = logging.getLogger(__name__)


class EthRpcClient:
    """
    Minimal JSON-RPC 2.0 client over HTTP POST.

    Failures are classified but never retried here; retry policy belongs to the
    caller. When rate limiting is enabled, outbound requests are spaced at
    least ``1 / requests_per_second`` seconds apart (a leaky bucket of one).
    """

    def __init__(
        self,
        rpc_url: str,
        request_timeout: float = 30.0,
        rate_limit_enabled: bool = False,
        requests_per_second: float = 5.0,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        """
        Initialize the RPC client.

        Args:
            rpc_url: HTTP(S) JSON-RPC endpoint
            request_timeout: Per-request timeout in seconds
            rate_limit_enabled: Whether to throttle outbound requests
            requests_per_second: Maximum request rate when throttling
            client: Pre-built httpx client (tests inject a MockTransport here)
            clock: Monotonic clock used by the throttle

        Raises:
            InvalidEndpointError: If the URL is empty or not http(s)
        """
        parsed = urlparse(rpc_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidEndpointError(f"Invalid RPC URL: {rpc_url!r}")
        if rate_limit_enabled and requests_per_second <= 0:
            raise ValueError(f"requests_per_second must be positive, got {requests_per_second}")

        self.rpc_url = rpc_url
        self.request_timeout = request_timeout
        self.rate_limit_enabled = rate_limit_enabled
        self.requests_per_second = requests_per_second

        self._client = client or httpx.AsyncClient(timeout=request_timeout)
        self._owns_client = client is None
        self._clock = clock
        self._request_id = 0

        # Throttle state; the lock makes check-wait-record a single step
        self._throttle_lock = asyncio.Lock()
        self._last_request_at: float | None = None

    async def __aenter__(self) -> "EthRpcClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    @property
    def min_interval(self) -> float:
        """Minimum spacing between requests in seconds (0 when unthrottled)."""
        if not self.rate_limit_enabled:
            return 0.0
        return 1.0 / self.requests_per_second

    async def _throttle(self) -> None:
        if not self.rate_limit_enabled:
            return

        async with self._throttle_lock:
            if self._last_request_at is not None:
                wait = self._last_request_at + self.min_interval - self._clock()
                if wait > 0:
                    logger.debug(f"Rate limit: waiting {wait:.3f}s before next request")
                    await asyncio.sleep(wait)
            self._last_request_at = self._clock()

    async def _request(self, method: str, params: list[Any]) -> Any:
        """
        Send one JSON-RPC request and return its ``result`` member.

        Raises:
            TransportFailure: On network errors, timeouts and redirect loops
            HTTPStatusFailure: On any non-200 status (subclass by category)
            RPCFailure: When the body carries a JSON-RPC ``error`` object
            MalformedResponseError: When the body is not a JSON-RPC result
        """
        await self._throttle()

        self._request_id += 1
        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }
        logger.debug(f"RPC -> {method} id={self._request_id} params={params}")

        try:
            response: httpx.Response = await self._client.post(
                self.rpc_url,
                json=payload,
                timeout=self.request_timeout
            )
        except httpx.DecodingError as e:
            raise MalformedResponseError(f"{method} body could not be decoded: {e}") from e
        except httpx.RequestError as e:
            raise TransportFailure(f"{method} request failed: {e!r}") from e

        if response.status_code != 200:
            raise HTTPStatusFailure.from_response(response.status_code, response.text)

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"body is not JSON: {response.text[:200]!r}") from e

        match body:
            case {"error": error} if error is not None:
                if isinstance(error, dict):
                    raise RPCFailure(
                        error.get("code"),
                        error.get("message", "Unknown error"),
                        error.get("data")
                    )
                raise RPCFailure(None, str(error))
            case {"result": result}:
                return result
            case dict():
                raise MalformedResponseError(f"{method} response has no result field")
            case _:
                raise MalformedResponseError(f"{method} response is not a JSON object")

    @staticmethod
    def _expect_hex(method: str, result: Any) -> str:
        if not isinstance(result, str) or not result.startswith("0x"):
            raise MalformedResponseError(f"{method} result is not a hex string: {result!r}")
        return result

    async def call(self, to: str, data: str) -> str:
        """
        Execute ``eth_call`` against the latest block.

        Args:
            to: Contract address
            data: ``0x``-prefixed call data

        Returns:
            Raw ``0x``-prefixed return data
        """
        result = await self._request("eth_call", [{"to": to, "data": data}, "latest"])
        return self._expect_hex("eth_call", result)

    async def _get_quantity(self, method: str) -> int:
        result = self._expect_hex(method, await self._request(method, []))
        try:
            return int(result, 16)
        except ValueError:
            raise MalformedResponseError(f"{method} result is not a quantity: {result!r}") from None

    async def get_block_number(self) -> int:
        """Return the latest block number (``eth_blockNumber``)."""
        return await self._get_quantity("eth_blockNumber")

    async def get_chain_id(self) -> int:
        """Return the chain ID (``eth_chainId``)."""
        return await self._get_quantity("eth_chainId")
