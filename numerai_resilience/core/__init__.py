"""
Core module for the resilience layer.

Provides logging utilities and the error taxonomy.
"""

from .logger import setup_logger, get_logger
from .exceptions import (
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

__all__ = [
    # Logging
    "setup_logger",
    "get_logger",
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
]
