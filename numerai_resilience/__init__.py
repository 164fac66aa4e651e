"""
Resilience layer for the Numerai tournament client.

Two entry points are offered to API clients, bulk downloaders and
submission uploaders:

- ``execute_with_retry(operation, policy, context)``
- ``execute_with_circuit_breaker(operation, breaker, context)``

Both take a zero-argument operation and re-raise its own error unchanged.
"""

import logging

from .core.exceptions import (
    DEFAULT_RETRYABLE_KINDS,
    ErrorKind,
    ResilienceError,
    TransientNetworkError,
    TransportTimeoutError,
    ConnectionFailureError,
    ServerError,
    ClientError,
    RateLimitedError,
    ValidationError,
    CircuitOpenError,
)
from .core.retry import (
    RetryPolicy,
    DEFAULT_RETRY_POLICY,
    GRAPHQL_RETRY_POLICY,
    DOWNLOAD_RETRY_POLICY,
    delay,
    error_kind,
    is_retryable,
    AttemptOutcome,
    execute_with_retry,
    execute_with_retry_async,
    execute_with_graphql_retry,
    execute_with_download_retry,
    with_retry,
    CircuitState,
    BreakerSnapshot,
    CircuitBreaker,
    CircuitBreakerRegistry,
    circuit_registry,
    execute_with_circuit_breaker,
    execute_with_circuit_breaker_async,
    with_circuit_breaker,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Errors
    "DEFAULT_RETRYABLE_KINDS",
    "ErrorKind",
    "ResilienceError",
    "TransientNetworkError",
    "TransportTimeoutError",
    "ConnectionFailureError",
    "ServerError",
    "ClientError",
    "RateLimitedError",
    "ValidationError",
    "CircuitOpenError",
    # Retry
    "RetryPolicy",
    "DEFAULT_RETRY_POLICY",
    "GRAPHQL_RETRY_POLICY",
    "DOWNLOAD_RETRY_POLICY",
    "delay",
    "error_kind",
    "is_retryable",
    "AttemptOutcome",
    "execute_with_retry",
    "execute_with_retry_async",
    "execute_with_graphql_retry",
    "execute_with_download_retry",
    "with_retry",
    # Circuit Breaker
    "CircuitState",
    "BreakerSnapshot",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "circuit_registry",
    "execute_with_circuit_breaker",
    "execute_with_circuit_breaker_async",
    "with_circuit_breaker",
]
