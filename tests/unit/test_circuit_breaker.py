"""
Circuit Breaker Unit Tests.
"""

import asyncio
import threading
import time

import pytest

from numerai_resilience.core.exceptions import (
    CircuitOpenError,
    ClientError,
    ServerError,
    ValidationError,
)
from numerai_resilience.core.retry import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
    RetryPolicy,
    execute_with_circuit_breaker,
    execute_with_circuit_breaker_async,
    execute_with_retry,
    with_circuit_breaker,
)


def fail():
    raise ServerError("upstream down", status=503)


def succeed():
    return "ok"


def trip(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        with pytest.raises(ServerError):
            execute_with_circuit_breaker(fail, breaker)


class TestConstruction:
    """Test breaker construction."""

    def test_initial_state(self):
        """Test a new breaker is closed with no failures."""
        breaker = CircuitBreaker("api")

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.last_failure_time is None
        assert breaker.failure_threshold == 5
        assert breaker.recovery_timeout == 60.0

    def test_threshold_must_be_positive(self):
        """Test failure_threshold=0 is rejected."""
        with pytest.raises(ValidationError):
            CircuitBreaker("api", failure_threshold=0)

    def test_negative_timeout_rejected(self):
        """Test recovery_timeout < 0 is rejected."""
        with pytest.raises(ValidationError):
            CircuitBreaker("api", recovery_timeout=-1.0)


class TestClosedState:
    """Test behavior while closed."""

    def test_success_passes_through(self):
        """Test normal operation in closed state."""
        breaker = CircuitBreaker("api")

        assert execute_with_circuit_breaker(succeed, breaker) == "ok"
        assert breaker.state == CircuitState.CLOSED

    def test_failure_counts_and_reraises(self, fake_clock):
        """Test failures are counted and the original error surfaces."""
        breaker = CircuitBreaker("api", failure_threshold=3, clock=fake_clock)
        error = ClientError("bad request", status=400)

        def bad_request():
            raise error

        with pytest.raises(ClientError) as exc_info:
            execute_with_circuit_breaker(bad_request, breaker)

        assert exc_info.value is error
        assert breaker.failure_count == 1
        assert breaker.last_failure_time == fake_clock.now
        assert breaker.state == CircuitState.CLOSED

    def test_success_resets_count(self):
        """Test a success in closed state resets the failure count."""
        breaker = CircuitBreaker("api", failure_threshold=3)

        trip(breaker, 2)
        execute_with_circuit_breaker(succeed, breaker)

        assert breaker.failure_count == 0
        trip(breaker, 2)
        assert breaker.state == CircuitState.CLOSED

    def test_is_open_idempotent_when_closed(self):
        """Test repeated is_open checks do not mutate a closed breaker."""
        breaker = CircuitBreaker("api", failure_threshold=3)
        trip(breaker, 1)
        before = breaker.status()

        for _ in range(100):
            assert breaker.is_open() is False

        assert breaker.status() == before


class TestOpenState:
    """Test opening and rejection."""

    def test_opens_at_threshold(self):
        """Test two consecutive failures open a threshold-2 breaker."""
        breaker = CircuitBreaker("api", failure_threshold=2)

        trip(breaker, 2)

        assert breaker.state == CircuitState.OPEN
        assert breaker.is_open() is True

    def test_rejects_without_invoking(self):
        """Test open circuit rejects calls and does not count them."""
        breaker = CircuitBreaker("api", failure_threshold=2, recovery_timeout=60.0)
        trip(breaker, 2)
        calls = []

        with pytest.raises(CircuitOpenError) as exc_info:
            execute_with_circuit_breaker(lambda: calls.append(1), breaker, "get models")

        assert calls == []
        assert breaker.failure_count == 2
        assert exc_info.value.name == "api"
        assert exc_info.value.context == "get models"
        assert 0.0 < exc_info.value.retry_after <= 60.0

    def test_open_invariant(self):
        """Test open state always has failure_count >= threshold."""
        breaker = CircuitBreaker("api", failure_threshold=4)
        breaker.force_open()

        snapshot = breaker.status()
        assert snapshot.state == CircuitState.OPEN
        assert snapshot.failure_count >= snapshot.failure_threshold

    def test_status_does_not_transition(self, fake_clock):
        """Test status() is a pure read even after the timeout."""
        breaker = CircuitBreaker("api", failure_threshold=1, recovery_timeout=10.0, clock=fake_clock)
        trip(breaker, 1)
        fake_clock.advance(30.0)

        assert breaker.status().state == CircuitState.OPEN
        assert breaker.status().retry_after == 0.0
        assert breaker.state == CircuitState.OPEN

    def test_retry_after_counts_down(self, fake_clock):
        """Test retry_after reflects time since last failure."""
        breaker = CircuitBreaker("api", failure_threshold=1, recovery_timeout=10.0, clock=fake_clock)
        trip(breaker, 1)
        fake_clock.advance(4.0)

        assert breaker.status().retry_after == pytest.approx(6.0)


class TestHalfOpenState:
    """Test recovery through half-open."""

    def test_is_open_transitions_after_timeout(self, fake_clock):
        """Test the check moves OPEN to HALF_OPEN once the timeout elapsed."""
        breaker = CircuitBreaker("api", failure_threshold=2, recovery_timeout=5.0, clock=fake_clock)
        trip(breaker, 2)

        fake_clock.advance(4.9)
        assert breaker.is_open() is True
        assert breaker.state == CircuitState.OPEN

        fake_clock.advance(0.2)
        assert breaker.is_open() is False
        assert breaker.state == CircuitState.HALF_OPEN

    def test_trial_success_closes(self, fake_clock):
        """Test a successful trial closes the circuit and resets the count."""
        breaker = CircuitBreaker("api", failure_threshold=2, recovery_timeout=5.0, clock=fake_clock)
        trip(breaker, 2)
        fake_clock.advance(5.0)

        assert execute_with_circuit_breaker(succeed, breaker) == "ok"

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_trial_failure_reopens(self, fake_clock):
        """Test a single failed trial reopens the circuit."""
        breaker = CircuitBreaker("api", failure_threshold=2, recovery_timeout=5.0, clock=fake_clock)
        trip(breaker, 2)
        fake_clock.advance(5.0)

        trip(breaker, 1)

        assert breaker.state == CircuitState.OPEN
        assert breaker.failure_count == 3
        assert breaker.last_failure_time == fake_clock.now
        with pytest.raises(CircuitOpenError):
            execute_with_circuit_breaker(succeed, breaker)

    def test_trial_failure_reopens_below_threshold(self, fake_clock):
        """Test reopening does not depend on the threshold."""
        breaker = CircuitBreaker("api", failure_threshold=10, recovery_timeout=1.0, clock=fake_clock)
        breaker.force_open()
        fake_clock.advance(1.0)
        assert breaker.is_open() is False

        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN

    def test_real_recovery_timeout(self):
        """Test recovery with the wall clock and a 0.1s timeout."""
        breaker = CircuitBreaker("api", failure_threshold=2, recovery_timeout=0.1)
        trip(breaker, 2)
        assert breaker.state == CircuitState.OPEN

        time.sleep(0.15)

        assert execute_with_circuit_breaker(succeed, breaker) == "ok"
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_single_trial_in_flight(self, fake_clock):
        """Test a second caller is rejected while the trial runs."""
        breaker = CircuitBreaker("api", failure_threshold=1, recovery_timeout=1.0, clock=fake_clock)
        trip(breaker, 1)
        fake_clock.advance(1.0)
        inner_errors = []

        def trial():
            try:
                execute_with_circuit_breaker(succeed, breaker)
            except CircuitOpenError as e:
                inner_errors.append(e)
            return "trial done"

        assert execute_with_circuit_breaker(trial, breaker) == "trial done"
        assert len(inner_errors) == 1
        assert breaker.state == CircuitState.CLOSED

    def test_late_success_during_trial_closes(self, fake_clock):
        """Test a success admitted while CLOSED closes the circuit mid-trial."""
        breaker = CircuitBreaker("api", failure_threshold=1, recovery_timeout=1.0, clock=fake_clock)
        trip(breaker, 1)
        fake_clock.advance(1.0)
        observed = []

        def trial():
            breaker.record_success()
            observed.append(breaker.state)
            observed.append(execute_with_circuit_breaker(succeed, breaker))
            return "trial done"

        assert execute_with_circuit_breaker(trial, breaker) == "trial done"
        assert observed == [CircuitState.CLOSED, "ok"]
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_interrupted_trial_releases_slot(self, fake_clock):
        """Test a trial ending in a BaseException frees the slot."""
        breaker = CircuitBreaker("api", failure_threshold=1, recovery_timeout=1.0, clock=fake_clock)
        trip(breaker, 1)
        fake_clock.advance(1.0)

        def interrupted():
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            execute_with_circuit_breaker(interrupted, breaker)

        assert breaker.state == CircuitState.HALF_OPEN
        assert execute_with_circuit_breaker(succeed, breaker) == "ok"
        assert breaker.state == CircuitState.CLOSED


class TestManualControl:
    """Test manual reset and force open."""

    def test_manual_reset(self):
        """Test manual reset."""
        breaker = CircuitBreaker("api", failure_threshold=1)
        breaker.force_open()
        assert breaker.state == CircuitState.OPEN

        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.last_failure_time is None

    def test_get_status(self, fake_clock):
        """Test status dictionary."""
        breaker = CircuitBreaker("graphql", failure_threshold=2, recovery_timeout=30.0, clock=fake_clock)
        trip(breaker, 2)

        status = breaker.get_status()

        assert status["name"] == "graphql"
        assert status["state"] == "open"
        assert status["failure_count"] == 2
        assert status["retry_after"] == pytest.approx(30.0)


class TestConcurrency:
    """Test shared use across threads."""

    def test_no_lost_failure_updates(self):
        """Test concurrent failures are all counted."""
        breaker = CircuitBreaker("api", failure_threshold=10_000)
        workers = 8
        per_worker = 250
        barrier = threading.Barrier(workers)

        def hammer():
            barrier.wait()
            for _ in range(per_worker):
                breaker.record_failure()

        threads = [threading.Thread(target=hammer) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert breaker.failure_count == workers * per_worker

    def test_single_half_open_entry(self, fake_clock):
        """Test only one of many racing callers gets the trial."""
        breaker = CircuitBreaker("api", failure_threshold=1, recovery_timeout=1.0, clock=fake_clock)
        trip(breaker, 1)
        fake_clock.advance(1.0)

        workers = 16
        barrier = threading.Barrier(workers)
        release = threading.Event()
        admitted = []
        rejected = []
        lock = threading.Lock()

        def slow_trial():
            with lock:
                admitted.append(1)
            release.wait(timeout=5)
            return "ok"

        def caller():
            barrier.wait()
            try:
                execute_with_circuit_breaker(slow_trial, breaker)
            except CircuitOpenError:
                with lock:
                    rejected.append(1)

        threads = [threading.Thread(target=caller) for _ in range(workers)]
        for thread in threads:
            thread.start()
        deadline = time.monotonic() + 5
        while len(rejected) < workers - 1 and time.monotonic() < deadline:
            time.sleep(0.01)
        release.set()
        for thread in threads:
            thread.join()

        assert len(admitted) == 1
        assert len(rejected) == workers - 1
        assert breaker.state == CircuitState.CLOSED


class TestComposition:
    """Test retry and breaker used together."""

    def test_circuit_open_not_retried(self, recording_sleep):
        """Test retry stops at CircuitOpenError without sleeping."""
        breaker = CircuitBreaker("api", failure_threshold=2, recovery_timeout=60.0)
        policy = RetryPolicy(max_attempts=5, initial_delay=1.0, jitter=False)
        calls = []

        def flaky():
            calls.append(1)
            raise ServerError(status=500)

        with pytest.raises(CircuitOpenError):
            execute_with_retry(
                lambda: execute_with_circuit_breaker(flaky, breaker),
                policy,
                sleep=recording_sleep,
            )

        assert len(calls) == 2
        assert recording_sleep.calls == [1.0, 2.0]
        assert breaker.failure_count == 2


class TestAsyncBreaker:
    """Test the async entry point."""

    @pytest.mark.asyncio
    async def test_async_success_and_failure(self):
        """Test async calls update the breaker the same way."""
        breaker = CircuitBreaker("api", failure_threshold=1)

        async def ok():
            return "ok"

        async def boom():
            raise ServerError(status=500)

        assert await execute_with_circuit_breaker_async(ok, breaker) == "ok"
        with pytest.raises(ServerError):
            await execute_with_circuit_breaker_async(boom, breaker)
        with pytest.raises(CircuitOpenError):
            await execute_with_circuit_breaker_async(ok, breaker)

    @pytest.mark.asyncio
    async def test_cancelled_trial_releases_slot(self, fake_clock):
        """Test cancellation during a trial neither closes nor reopens."""
        breaker = CircuitBreaker("api", failure_threshold=1, recovery_timeout=1.0, clock=fake_clock)
        breaker.force_open()
        fake_clock.advance(1.0)
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.sleep(10)

        task = asyncio.create_task(execute_with_circuit_breaker_async(hang, breaker))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert breaker.state == CircuitState.HALF_OPEN

        async def ok():
            return "ok"

        assert await execute_with_circuit_breaker_async(ok, breaker) == "ok"
        assert breaker.state == CircuitState.CLOSED


class TestCircuitBreakerRegistry:
    """Test CircuitBreakerRegistry."""

    def test_get_or_create(self):
        """Test get_or_create returns the same breaker per name."""
        registry = CircuitBreakerRegistry()

        breaker1 = registry.get_or_create("graphql")
        breaker2 = registry.get_or_create("graphql", failure_threshold=99)

        assert breaker1 is breaker2
        assert breaker1.failure_threshold == 5

    def test_reset_all(self):
        """Test resetting all circuit breakers."""
        registry = CircuitBreakerRegistry()
        breaker1 = registry.get_or_create("graphql")
        breaker2 = registry.get_or_create("download")
        breaker1.force_open()
        breaker2.force_open()

        registry.reset_all()

        assert breaker1.state == CircuitState.CLOSED
        assert breaker2.state == CircuitState.CLOSED

    def test_open_circuits_and_status(self):
        """Test listing open circuits."""
        registry = CircuitBreakerRegistry()
        registry.get_or_create("graphql").force_open()
        registry.get_or_create("download")

        assert registry.get_open_circuits() == ["graphql"]
        assert set(registry.get_all_status()) == {"graphql", "download"}

    def test_remove(self):
        """Test removing a breaker."""
        registry = CircuitBreakerRegistry()
        registry.get_or_create("graphql")

        registry.remove("graphql")

        assert registry.get("graphql") is None
        assert len(registry) == 0


class TestWithCircuitBreakerDecorator:
    """Test with_circuit_breaker decorator."""

    def test_sync_decorator(self):
        """Test decorated function shares a registry breaker."""
        registry = CircuitBreakerRegistry()

        @with_circuit_breaker("submissions", failure_threshold=1, registry=registry)
        def upload():
            raise ServerError(status=502)

        with pytest.raises(ServerError):
            upload()
        with pytest.raises(CircuitOpenError):
            upload()

        assert registry.get("submissions").state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_async_decorator(self):
        """Test decorator with async function."""
        registry = CircuitBreakerRegistry()

        @with_circuit_breaker("graphql", registry=registry)
        async def fetch():
            return {"round": 512}

        assert await fetch() == {"round": 512}
        assert registry.get("graphql").failure_count == 0
