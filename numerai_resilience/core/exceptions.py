"""
Error taxonomy for the resilience layer.

Every exception carries a closed ``ErrorKind`` tag. Transport adapters
produce these at the boundary so the classifier never inspects
library-specific exception types.

Exception hierarchy:
    ResilienceError (base)
    ├── TransientNetworkError
    │   ├── TransportTimeoutError
    │   └── ConnectionFailureError
    ├── ServerError
    ├── RateLimitedError
    ├── ClientError
    ├── ValidationError
    └── CircuitOpenError
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of error kinds understood by the classifier."""
    TIMEOUT = "timeout"
    CONNECTION_FAILURE = "connection_failure"
    SERVER_ERROR = "server_error"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    VALIDATION = "validation"
    CIRCUIT_OPEN = "circuit_open"
    UNKNOWN = "unknown"


DEFAULT_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset({
    ErrorKind.SERVER_ERROR,
    ErrorKind.RATE_LIMITED,
    ErrorKind.TIMEOUT,
    ErrorKind.CONNECTION_FAILURE,
})


class ResilienceError(Exception):
    """Base exception for all resilience layer errors."""

    default_message = "Resilience error occurred"
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.default_message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.append(f"[{self.code}]")
        if self.details:
            parts.append(f"Details: {self.details}")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r})"
        )


# Transport errors
class TransientNetworkError(ResilienceError):
    """Base exception for transient transport failures."""

    default_message = "Transient network error"
    kind = ErrorKind.CONNECTION_FAILURE


class TransportTimeoutError(TransientNetworkError):
    """The transport timed out waiting for the remote side."""

    default_message = "Request timed out"
    kind = ErrorKind.TIMEOUT


class ConnectionFailureError(TransientNetworkError):
    """Connection was refused or reset."""

    default_message = "Connection failed"
    kind = ErrorKind.CONNECTION_FAILURE


class _StatusError(ResilienceError):
    """Error derived from an upstream status code."""

    def __init__(
        self,
        message: str | None = None,
        status: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, details)
        self.status = status

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is not None:
            return f"{base} (status={self.status})"
        return base


class ServerError(_StatusError):
    """Upstream server failed (5xx-equivalent)."""

    default_message = "Upstream server error"
    kind = ErrorKind.SERVER_ERROR


class ClientError(_StatusError):
    """Request was rejected by the upstream (4xx-equivalent, not 429)."""

    default_message = "Client error"
    kind = ErrorKind.CLIENT_ERROR


class RateLimitedError(_StatusError):
    """Upstream asked the caller to slow down (429-equivalent)."""

    default_message = "Rate limit exceeded"
    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str | None = None,
        retry_after: float | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, status=429, code=code, details=details)
        self.retry_after = retry_after

    def __str__(self) -> str:
        base = super().__str__()
        if self.retry_after is not None:
            return f"{base} (retry after {self.retry_after}s)"
        return base


class ValidationError(ResilienceError):
    """Local validation failed (bad policy, bad arguments)."""

    default_message = "Validation failed"
    kind = ErrorKind.VALIDATION


class CircuitOpenError(ResilienceError):
    """Raised when a circuit breaker rejects a call without attempting it."""

    default_message = "Circuit breaker is open"
    kind = ErrorKind.CIRCUIT_OPEN

    def __init__(self, name: str, retry_after: float, context: str = ""):
        self.name = name
        self.context = context
        self.retry_after = retry_after
        target = f" for {context}" if context else ""
        super().__init__(
            f"Circuit breaker '{name}' is open{target}. "
            f"Retry after {retry_after:.1f}s"
        )
