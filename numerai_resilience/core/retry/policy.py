"""
Retry Policy.

Immutable, declarative description of how an operation is retried.
"""

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from numerai_resilience.core.exceptions import DEFAULT_RETRYABLE_KINDS, ErrorKind


class RetryPolicy(BaseModel):
    """
    Configuration for retry behavior.

    A policy is frozen once constructed and can be shared by any number of
    concurrent executions.

    Attributes:
        max_attempts: Maximum number of attempts (including the first)
        initial_delay: Delay in seconds after the first failed attempt
        max_delay: Cap for the un-jittered delay in seconds
        exponential_base: Growth factor between consecutive delays
        jitter: Multiply each delay by a random factor in [1.0, 1.25]
        retryable_kinds: Error kinds that trigger another attempt

    Example:
        >>> policy = RetryPolicy(max_attempts=5, initial_delay=0.5, jitter=False)
        >>> policy.retryable_kinds == DEFAULT_RETRYABLE_KINDS
        True
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(
        default=3,
        ge=0,
        description="Maximum number of attempts, including the first",
    )
    initial_delay: float = Field(
        default=1.0,
        description="Delay in seconds after the first failure",
    )
    max_delay: float = Field(
        default=60.0,
        description="Cap for the un-jittered delay in seconds",
    )
    exponential_base: float = Field(
        default=2.0,
        gt=0,
        description="Growth factor between consecutive delays",
    )
    jitter: bool = Field(
        default=True,
        description="Apply multiplicative jitter in [1.0, 1.25]",
    )
    retryable_kinds: frozenset[ErrorKind] = Field(
        default=DEFAULT_RETRYABLE_KINDS,
        description="Error kinds that are retried",
    )

    @field_validator("retryable_kinds", mode="before")
    @classmethod
    def coerce_kinds(cls, value: Any) -> Any:
        """Accept any iterable of kinds or kind names."""
        if isinstance(value, (str, ErrorKind)):
            return frozenset({value})
        if isinstance(value, Iterable):
            return frozenset(value)
        return value

    def with_overrides(self, **changes: Any) -> "RetryPolicy":
        """
        Return a new validated policy with some fields replaced.

        Example:
            >>> strict = GRAPHQL_RETRY_POLICY.with_overrides(max_attempts=2)
        """
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)


# Chatty query endpoint: more attempts, gentler growth.
GRAPHQL_RETRY_POLICY = RetryPolicy(
    max_attempts=5,
    initial_delay=2.0,
    max_delay=30.0,
    exponential_base=1.5,
    jitter=True,
)

# Large-payload transfers.
DOWNLOAD_RETRY_POLICY = RetryPolicy(
    max_attempts=3,
    initial_delay=5.0,
    max_delay=60.0,
    exponential_base=2.0,
    jitter=True,
    retryable_kinds={
        ErrorKind.TIMEOUT,
        ErrorKind.CONNECTION_FAILURE,
        ErrorKind.SERVER_ERROR,
    },
)

DEFAULT_RETRY_POLICY = RetryPolicy()
