#!/usr/bin/env python3
"""Exception hierarchy for the governance monitor.

Transport failures are kept distinct so callers can tell a rate limit from a
reverted call or a broken endpoint. None of them are retried inside the core.
"""

from typing import Any

BODY_EXCERPT_LENGTH = 200


class MonitorError(Exception):
    """Base class for all errors raised by the monitor core."""


class ConfigurationError(MonitorError, ValueError):
    """Configuration is invalid; the cycle is skipped before any network call."""


class RPCClientError(MonitorError):
    """Base class for JSON-RPC transport failures."""


class InvalidEndpointError(RPCClientError):
    """The configured RPC endpoint is not a usable HTTP(S) URL."""


class TransportFailure(RPCClientError):
    """Network-level failure (connection refused, DNS, timeout...)."""


class HTTPStatusFailure(RPCClientError):
    """The endpoint answered with a non-200 status code."""

    kind = "http_status"

    def __init__(self, status_code: int, body_excerpt: str = "") -> None:
        self.status_code = status_code
        self.body_excerpt = body_excerpt[:BODY_EXCERPT_LENGTH]
        super().__init__(f"HTTP {status_code} from RPC endpoint: {self.body_excerpt}")

    @classmethod
    def from_response(cls, status_code: int, body: str) -> "HTTPStatusFailure":
        """Pick the subclass matching the status code."""
        match status_code:
            case 429:
                return RateLimitedFailure(status_code, body)
            case 401 | 403:
                return AuthenticationFailure(status_code, body)
            case code if 500 <= code < 600:
                return ServerFailure(status_code, body)
            case _:
                return cls(status_code, body)


class RateLimitedFailure(HTTPStatusFailure):
    kind = "rate_limited"


class AuthenticationFailure(HTTPStatusFailure):
    kind = "auth"


class ServerFailure(HTTPStatusFailure):
    kind = "server"


class RPCFailure(RPCClientError):
    """The endpoint returned a JSON-RPC ``error`` object."""

    def __init__(self, code: int | None, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"RPC error {code}: {message}")


class MalformedResponseError(RPCClientError):
    """The response body is not a well-formed JSON-RPC result."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Malformed RPC response: {detail}")


class CycleAbortedError(MonitorError):
    """A mandatory fetch failed, so no snapshot was produced for this cycle."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)
