"""
Transport adapters.

Translate transport-layer conditions into the resilience error taxonomy.
"""

from .http import (
    check_response,
    error_for_status,
    parse_retry_after,
    raise_for_status,
    translate_exception,
    transport_errors,
)

__all__ = [
    "check_response",
    "error_for_status",
    "parse_retry_after",
    "raise_for_status",
    "translate_exception",
    "transport_errors",
]
