"""
Retry Module.

Provides retry with classified errors and exponential backoff, plus a
circuit breaker for protecting unhealthy downstream services.
"""

from .policy import (
    RetryPolicy,
    DEFAULT_RETRY_POLICY,
    GRAPHQL_RETRY_POLICY,
    DOWNLOAD_RETRY_POLICY,
)
from .backoff import RandomSource, delay
from .classifier import error_kind, is_retryable
from .retry import (
    AttemptOutcome,
    execute_with_retry,
    execute_with_retry_async,
    execute_with_graphql_retry,
    execute_with_download_retry,
    with_retry,
)
from .circuit_breaker import (
    CircuitState,
    BreakerSnapshot,
    CircuitBreaker,
    CircuitBreakerRegistry,
    circuit_registry,
    execute_with_circuit_breaker,
    execute_with_circuit_breaker_async,
    with_circuit_breaker,
)

__all__ = [
    # Policy
    "RetryPolicy",
    "DEFAULT_RETRY_POLICY",
    "GRAPHQL_RETRY_POLICY",
    "DOWNLOAD_RETRY_POLICY",
    # Backoff / classification
    "RandomSource",
    "delay",
    "error_kind",
    "is_retryable",
    # Retry
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
