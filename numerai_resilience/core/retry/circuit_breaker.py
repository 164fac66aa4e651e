"""
Circuit Breaker Pattern.

Prevents cascading failures by failing fast while a downstream service is
unhealthy. A breaker is created once per protected resource and shared by
every call to it; all reads that may transition state and all writes happen
under the breaker's own lock.
"""

import functools
import inspect
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from numerai_resilience.core import get_logger
from numerai_resilience.core.exceptions import CircuitOpenError, ValidationError

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Normal operation, requests pass through
    OPEN = "open"            # Failing, requests are rejected
    HALF_OPEN = "half_open"  # One trial request decides the next state


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of a breaker, taken without changing it."""
    name: str
    state: CircuitState
    failure_count: int
    failure_threshold: int
    last_failure_time: Optional[float]
    retry_after: float


class CircuitBreaker:
    """
    Circuit Breaker implementation.

    States:
    - CLOSED: calls pass through; a success resets the failure count, and
      reaching ``failure_threshold`` failures opens the circuit
    - OPEN: calls are rejected with CircuitOpenError until
      ``recovery_timeout`` seconds have passed since the last failure
    - HALF_OPEN: a single trial call is let through; success closes the
      circuit, failure reopens it

    Example:
        >>> breaker = CircuitBreaker("graphql", failure_threshold=3)
        >>> try:
        ...     data = execute_with_circuit_breaker(fetch_round, breaker)
        ... except CircuitOpenError as e:
        ...     print(f"API unreachable, retry in {e.retry_after:.0f}s")
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Name of the protected resource
            failure_threshold: Failures in CLOSED state before opening
            recovery_timeout: Seconds after the last failure before a trial
            clock: Monotonic time source in seconds
        """
        if failure_threshold < 1:
            raise ValidationError(
                f"failure_threshold must be > 0, got {failure_threshold}",
                details={"failure_threshold": failure_threshold},
            )
        if recovery_timeout < 0:
            raise ValidationError(
                f"recovery_timeout must be >= 0, got {recovery_timeout}",
                details={"recovery_timeout": recovery_timeout},
            )

        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        """Stored state; does not apply the recovery timeout."""
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def last_failure_time(self) -> Optional[float]:
        with self._lock:
            return self._last_failure_time

    # Lock must be held by callers of the _locked helpers.

    def _change_state_locked(self, new_state: CircuitState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state

        message = (
            f"Circuit breaker '{self.name}' state change: "
            f"{old_state.value} -> {new_state.value}"
        )
        if new_state == CircuitState.OPEN:
            logger.warning(
                f"{message} (failures={self._failure_count}, "
                f"threshold={self.failure_threshold})"
            )
        else:
            logger.info(message)

    def _retry_after_locked(self) -> float:
        if self._last_failure_time is None:
            return 0.0
        elapsed = self._clock() - self._last_failure_time
        return max(0.0, self.recovery_timeout - elapsed)

    def _refresh_locked(self) -> CircuitState:
        """Move OPEN to HALF_OPEN once the recovery timeout has elapsed."""
        if self._state == CircuitState.OPEN and self._retry_after_locked() <= 0.0:
            self._change_state_locked(CircuitState.HALF_OPEN)
            self._trial_in_flight = False
        return self._state

    def is_open(self) -> bool:
        """
        Check whether calls are currently rejected.

        When the circuit is OPEN and the recovery timeout has elapsed, the
        breaker moves to HALF_OPEN as part of this check and returns False.
        """
        with self._lock:
            return self._refresh_locked() == CircuitState.OPEN

    def status(self) -> BreakerSnapshot:
        """Return a snapshot without triggering any transition."""
        with self._lock:
            return BreakerSnapshot(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                failure_threshold=self.failure_threshold,
                last_failure_time=self._last_failure_time,
                retry_after=(
                    self._retry_after_locked()
                    if self._state == CircuitState.OPEN
                    else 0.0
                ),
            )

    def _admit(self, context: str = "") -> None:
        """Reserve permission for one call or raise CircuitOpenError."""
        with self._lock:
            state = self._refresh_locked()

            if state == CircuitState.OPEN:
                raise CircuitOpenError(self.name, self._retry_after_locked(), context)

            if state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CircuitOpenError(self.name, self._retry_after_locked(), context)
                self._trial_in_flight = True

    def _release_trial(self) -> None:
        """Give back a trial slot for a call that ended without an outcome."""
        with self._lock:
            self._trial_in_flight = False

    def record_success(self) -> None:
        """Record a successful call."""
        with self._lock:
            self._trial_in_flight = False

            if self._state == CircuitState.HALF_OPEN:
                self._failure_count = 0
                self._change_state_locked(CircuitState.CLOSED)
                logger.info(
                    f"Circuit breaker '{self.name}' closed after successful recovery"
                )
            elif self._state == CircuitState.CLOSED:
                self._failure_count = 0

    def record_failure(self) -> None:
        """Record a failed call."""
        with self._lock:
            self._trial_in_flight = False
            self._failure_count += 1
            self._last_failure_time = self._clock()

            if self._state == CircuitState.HALF_OPEN:
                self._change_state_locked(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                self._change_state_locked(CircuitState.OPEN)

    def reset(self) -> None:
        """Manually reset the circuit breaker to closed state."""
        with self._lock:
            self._change_state_locked(CircuitState.CLOSED)
            self._failure_count = 0
            self._last_failure_time = None
            self._trial_in_flight = False
        logger.info(f"Circuit breaker '{self.name}' manually reset")

    def force_open(self) -> None:
        """Manually force the circuit to open state."""
        with self._lock:
            self._failure_count = max(self._failure_count, self.failure_threshold)
            self._last_failure_time = self._clock()
            self._trial_in_flight = False
            self._change_state_locked(CircuitState.OPEN)
        logger.warning(f"Circuit breaker '{self.name}' manually forced open")

    def get_status(self) -> Dict[str, Any]:
        """Get circuit breaker status as a plain dictionary."""
        snapshot = self.status()
        return {
            "name": snapshot.name,
            "state": snapshot.state.value,
            "failure_count": snapshot.failure_count,
            "failure_threshold": snapshot.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
            "retry_after": snapshot.retry_after,
        }

    def __repr__(self) -> str:
        snapshot = self.status()
        return (
            f"CircuitBreaker(name={self.name!r}, state={snapshot.state.value}, "
            f"failures={snapshot.failure_count}/{self.failure_threshold})"
        )


def execute_with_circuit_breaker(
    operation: Callable[[], T],
    breaker: CircuitBreaker,
    context: str = "",
) -> T:
    """
    Execute an operation through the circuit breaker.

    Args:
        operation: Zero-argument callable performing the work
        breaker: Breaker guarding the resource
        context: Label included in CircuitOpenError

    Returns:
        The operation's result

    Raises:
        CircuitOpenError: If the circuit is open (operation not invoked)
        Exception: The operation's own error, unchanged
    """
    breaker._admit(context)

    try:
        result = operation()
    except Exception:
        breaker.record_failure()
        raise
    except BaseException:
        breaker._release_trial()
        raise

    breaker.record_success()
    return result


async def execute_with_circuit_breaker_async(
    operation: Callable[[], Awaitable[T]],
    breaker: CircuitBreaker,
    context: str = "",
) -> T:
    """Async variant of :func:`execute_with_circuit_breaker`."""
    breaker._admit(context)

    try:
        result = await operation()
    except Exception:
        breaker.record_failure()
        raise
    except BaseException:
        breaker._release_trial()
        raise

    breaker.record_success()
    return result


class CircuitBreakerRegistry:
    """
    Registry holding one circuit breaker per protected endpoint.
    """

    def __init__(self):
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get_or_create(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
    ) -> CircuitBreaker:
        """
        Get existing or create new circuit breaker.

        Settings only apply when the breaker is created.
        """
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(name, failure_threshold, recovery_timeout)
                self._breakers[name] = breaker
            return breaker

    def register(self, breaker: CircuitBreaker) -> CircuitBreaker:
        """Add a pre-built breaker, replacing any breaker with the same name."""
        with self._lock:
            self._breakers[breaker.name] = breaker
        return breaker

    def get(self, name: str) -> Optional[CircuitBreaker]:
        """Get circuit breaker by name."""
        with self._lock:
            return self._breakers.get(name)

    def remove(self, name: str) -> None:
        """Remove circuit breaker."""
        with self._lock:
            self._breakers.pop(name, None)

    def _snapshot(self) -> List[CircuitBreaker]:
        with self._lock:
            return list(self._breakers.values())

    def reset_all(self) -> None:
        """Reset all circuit breakers."""
        for breaker in self._snapshot():
            breaker.reset()

    def get_all_status(self) -> Dict[str, Dict[str, Any]]:
        """Get status of all circuit breakers."""
        return {breaker.name: breaker.get_status() for breaker in self._snapshot()}

    def get_open_circuits(self) -> List[str]:
        """Get names of all circuits currently rejecting calls."""
        return [breaker.name for breaker in self._snapshot() if breaker.is_open()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._breakers)


# Global registry instance
circuit_registry = CircuitBreakerRegistry()


def with_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    recovery_timeout: float = 60.0,
    registry: Optional[CircuitBreakerRegistry] = None,
) -> Callable:
    """
    Decorator routing calls through a named circuit breaker.

    Example:
        >>> @with_circuit_breaker("numerai_graphql", failure_threshold=3)
        ... def fetch_current_round():
        ...     return api.get_current_round()
    """
    if registry is None:
        registry = circuit_registry
    breaker = registry.get_or_create(
        name, failure_threshold, recovery_timeout
    )

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                return await execute_with_circuit_breaker_async(
                    lambda: func(*args, **kwargs), breaker, func.__qualname__
                )
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            return execute_with_circuit_breaker(
                lambda: func(*args, **kwargs), breaker, func.__qualname__
            )
        return sync_wrapper

    return decorator
