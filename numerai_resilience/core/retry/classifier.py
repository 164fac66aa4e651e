"""
Error Classifier.

Decides whether an error is worth another attempt under a policy.
"""

import asyncio

from numerai_resilience.core.exceptions import ErrorKind

from .policy import RetryPolicy

# Untagged standard-library errors, checked in order.
_BUILTIN_KINDS: tuple[tuple[type[BaseException], ErrorKind], ...] = (
    (TimeoutError, ErrorKind.TIMEOUT),
    (asyncio.TimeoutError, ErrorKind.TIMEOUT),
    (ConnectionError, ErrorKind.CONNECTION_FAILURE),
    (ValueError, ErrorKind.VALIDATION),
    (TypeError, ErrorKind.VALIDATION),
)


def error_kind(error: BaseException) -> ErrorKind:
    """
    Return the ErrorKind tag of an error.

    Taxonomy exceptions carry their own tag. Untagged standard-library
    errors are mapped through a small fixed table; anything else is UNKNOWN.
    """
    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind

    for error_type, mapped in _BUILTIN_KINDS:
        if isinstance(error, error_type):
            return mapped

    return ErrorKind.UNKNOWN


def is_retryable(error: BaseException, policy: RetryPolicy) -> bool:
    """
    Determine if the error should trigger a retry.

    Args:
        error: The exception that occurred
        policy: Policy whose ``retryable_kinds`` defines "retryable"

    Returns:
        True if should retry
    """
    return error_kind(error) in policy.retryable_kinds
