"""
Backoff Calculator.

Maps an attempt number and a policy to the delay before the next attempt.
"""

import math
import random
from typing import Protocol

from numerai_resilience.core.exceptions import ValidationError

from .policy import RetryPolicy

# Upper bound of the multiplicative jitter factor.
MAX_JITTER = 0.25


class RandomSource(Protocol):
    """Anything with a ``random()`` method, e.g. ``random.Random(seed)``."""

    def random(self) -> float: ...


_default_rng = random.Random()


def delay(
    attempt: int,
    policy: RetryPolicy,
    rng: RandomSource | None = None,
) -> float:
    """
    Calculate delay for the given attempt number.

    ``min(initial_delay * exponential_base ** (attempt - 1), max_delay)``,
    multiplied by a factor in ``[1.0, 1.25]`` when jitter is enabled. A
    jittered delay may exceed ``max_delay`` by up to 25%. Non-positive
    ``initial_delay``/``max_delay`` values are returned as computed. Attempt
    numbers large enough to overflow the exponential still yield the cap.

    Args:
        attempt: Attempt that just failed (1-based)
        policy: Retry policy
        rng: Random source for jitter; a module-level generator when omitted

    Returns:
        Delay in seconds

    Raises:
        ValidationError: If attempt is less than 1
    """
    if attempt < 1:
        raise ValidationError(
            f"Attempt must be >= 1, got {attempt}",
            details={"attempt": attempt},
        )

    try:
        scaled = policy.initial_delay * policy.exponential_base ** (attempt - 1)
    except OverflowError:
        # Growth past the float range: only the sign of initial_delay matters.
        scaled = math.copysign(math.inf, policy.initial_delay) if policy.initial_delay else 0.0

    base = min(scaled, policy.max_delay)

    if policy.jitter:
        source = rng if rng is not None else _default_rng
        base *= 1.0 + source.random() * MAX_JITTER

    return base
