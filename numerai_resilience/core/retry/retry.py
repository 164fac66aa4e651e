"""
Retry Executor.

Drives the attempt loop for a zero-argument operation, consulting the
classifier and the backoff calculator between attempts.
"""

import asyncio
import functools
import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from numerai_resilience.core import get_logger
from numerai_resilience.core.exceptions import ValidationError

from .backoff import RandomSource, delay as backoff_delay
from .classifier import is_retryable
from .policy import (
    DEFAULT_RETRY_POLICY,
    DOWNLOAD_RETRY_POLICY,
    GRAPHQL_RETRY_POLICY,
    RetryPolicy,
)

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AttemptOutcome:
    """
    Result of a single attempt, reported to ``on_attempt`` observers.

    ``delay`` is the computed backoff that followed this attempt, or 0.0
    when no retry followed.
    """
    attempt: int
    result: Any = None
    error: Optional[BaseException] = None
    delay: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None


AttemptObserver = Callable[[AttemptOutcome], None]


def _validate(policy: RetryPolicy, context: str) -> None:
    if policy.max_attempts < 1:
        raise ValidationError(
            f"Retry policy for {context} allows no attempts "
            f"(max_attempts={policy.max_attempts})",
            details={"max_attempts": policy.max_attempts},
        )


def _notify(on_attempt: Optional[AttemptObserver], outcome: AttemptOutcome) -> None:
    if on_attempt is not None:
        on_attempt(outcome)


def _next_delay(
    error: BaseException,
    attempt: int,
    policy: RetryPolicy,
    context: str,
    rng: Optional[RandomSource],
) -> Optional[float]:
    """Return the delay before the next attempt, or None to give up."""
    if not is_retryable(error, policy):
        logger.error(
            f"Non-retryable error in {context} on attempt {attempt}: "
            f"{type(error).__name__}: {error}"
        )
        return None

    if attempt >= policy.max_attempts:
        logger.error(
            f"Max attempts ({policy.max_attempts}) reached for {context}. "
            f"Last error: {type(error).__name__}: {error}"
        )
        return None

    wait = backoff_delay(attempt, policy, rng)
    logger.warning(
        f"Attempt {attempt}/{policy.max_attempts} of {context} failed: "
        f"{type(error).__name__}: {error}. Retrying in {wait:.2f}s..."
    )
    return wait


def execute_with_retry(
    operation: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    context: str = "",
    *,
    sleep: Callable[[float], Any] = time.sleep,
    rng: Optional[RandomSource] = None,
    on_attempt: Optional[AttemptObserver] = None,
) -> T:
    """
    Execute an operation, retrying retryable failures with backoff.

    The error of the final failed attempt is re-raised unchanged.

    Args:
        operation: Zero-argument callable performing the work
        policy: Retry policy (defaults to ``RetryPolicy()``)
        context: Label used in log messages
        sleep: Called with the delay between attempts
        rng: Random source for jitter
        on_attempt: Observer receiving an AttemptOutcome per attempt

    Returns:
        The operation's result

    Raises:
        ValidationError: If the policy allows zero attempts
        Exception: The operation's own error once retries stop

    Example:
        >>> models = execute_with_retry(
        ...     lambda: client.get_models(round_id),
        ...     RetryPolicy(max_attempts=5),
        ...     context="list models",
        ... )
    """
    if policy is None:
        policy = DEFAULT_RETRY_POLICY
    context = context or "operation"
    _validate(policy, context)

    for attempt in range(1, policy.max_attempts + 1):
        logger.debug(f"Attempting {context} ({attempt}/{policy.max_attempts})")

        try:
            result = operation()
        except Exception as e:
            wait = _next_delay(e, attempt, policy, context, rng)
            outcome = AttemptOutcome(attempt, error=e, delay=0.0 if wait is None else wait)
            _notify(on_attempt, outcome)
            if wait is None:
                raise
            sleep(max(wait, 0.0))
            continue

        if attempt > 1:
            logger.info(f"{context} succeeded after {attempt} attempts")
        _notify(on_attempt, AttemptOutcome(attempt, result=result))
        return result

    # Unreachable: the final attempt either returns or re-raises.
    raise AssertionError("retry loop exited without a result")


async def execute_with_retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    context: str = "",
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    rng: Optional[RandomSource] = None,
    on_attempt: Optional[AttemptObserver] = None,
) -> T:
    """
    Execute a coroutine function with retry logic.

    Same algorithm as :func:`execute_with_retry`, suspending the task with
    ``asyncio.sleep`` between attempts.
    """
    if policy is None:
        policy = DEFAULT_RETRY_POLICY
    context = context or "operation"
    _validate(policy, context)

    for attempt in range(1, policy.max_attempts + 1):
        logger.debug(f"Attempting {context} ({attempt}/{policy.max_attempts})")

        try:
            result = await operation()
        except Exception as e:
            wait = _next_delay(e, attempt, policy, context, rng)
            outcome = AttemptOutcome(attempt, error=e, delay=0.0 if wait is None else wait)
            _notify(on_attempt, outcome)
            if wait is None:
                raise
            await sleep(max(wait, 0.0))
            continue

        if attempt > 1:
            logger.info(f"{context} succeeded after {attempt} attempts")
        _notify(on_attempt, AttemptOutcome(attempt, result=result))
        return result

    raise AssertionError("retry loop exited without a result")


def execute_with_graphql_retry(
    operation: Callable[[], T],
    context: str = "GraphQL query",
    **kwargs: Any,
) -> T:
    """Run ``operation`` under the GraphQL preset policy."""
    return execute_with_retry(operation, GRAPHQL_RETRY_POLICY, context, **kwargs)


def execute_with_download_retry(
    operation: Callable[[], T],
    context: str = "file download",
    **kwargs: Any,
) -> T:
    """Run ``operation`` under the download preset policy."""
    return execute_with_retry(operation, DOWNLOAD_RETRY_POLICY, context, **kwargs)


def with_retry(
    policy: Optional[RetryPolicy] = None,
    context: Optional[str] = None,
    **policy_kwargs: Any,
) -> Callable:
    """
    Decorator for adding retry logic to functions.

    Can be used with both sync and async functions.

    Args:
        policy: RetryPolicy instance
        context: Log label; defaults to the function's qualified name
        **policy_kwargs: Arguments to create a RetryPolicy, or overrides
            applied to ``policy`` when both are given

    Returns:
        Decorated function

    Example:
        >>> @with_retry(max_attempts=5, initial_delay=2.0)
        ... def fetch_current_round():
        ...     return api.get_current_round()
    """
    if policy is None:
        policy = RetryPolicy(**policy_kwargs)
    elif policy_kwargs:
        policy = policy.with_overrides(**policy_kwargs)

    def decorator(func: Callable) -> Callable:
        label = context or func.__qualname__

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                return await execute_with_retry_async(
                    lambda: func(*args, **kwargs), policy, label
                )
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            return execute_with_retry(lambda: func(*args, **kwargs), policy, label)
        return sync_wrapper

    return decorator
