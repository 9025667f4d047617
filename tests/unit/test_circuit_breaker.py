"""Tests for the circuit breaker."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ruleflow.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitOpenError,
    CircuitState,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def fail():
    raise RuntimeError("boom")


async def succeed():
    return "ok"


async def trip(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        with pytest.raises(RuntimeError):
            await breaker.execute(fail)


class TestCircuitBreaker:
    """Tests for CircuitBreaker state transitions."""

    @pytest.mark.asyncio
    async def test_success_passes_through(self):
        """A closed breaker returns the operation's result."""
        breaker = CircuitBreaker("action:send_email")

        assert await breaker.execute(succeed) == "ok"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_opens_after_threshold_and_sixth_call_fails_fast(self):
        """Five failures open the circuit; the sixth call never runs the operation."""
        breaker = CircuitBreaker("action:webhook", clock=FakeClock())
        await trip(breaker, 5)

        assert breaker.state == CircuitState.OPEN
        assert breaker.failure_count == 5

        operation = AsyncMock(return_value="never")
        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.execute(operation)

        operation.assert_not_called()
        assert exc_info.value.name == "action:webhook"
        assert exc_info.value.state == CircuitState.OPEN
        assert breaker.metrics.rejected_calls == 1

    @pytest.mark.asyncio
    async def test_success_resets_consecutive_count(self):
        """The threshold counts consecutive failures only."""
        breaker = CircuitBreaker("action:send_sms")
        await trip(breaker, 4)
        await breaker.execute(succeed)
        await trip(breaker, 4)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 4

    @pytest.mark.asyncio
    async def test_stays_open_until_recovery_timeout_passes(self):
        """Calls are rejected until strictly more than recovery_timeout has elapsed."""
        clock = FakeClock()
        breaker = CircuitBreaker("action:x", CircuitBreakerConfig(failure_threshold=1), clock=clock)
        await trip(breaker, 1)

        clock.advance(60.0)
        with pytest.raises(CircuitOpenError):
            await breaker.execute(succeed)

        clock.advance(0.1)
        assert await breaker.execute(succeed) == "ok"

    @pytest.mark.asyncio
    async def test_half_open_trial_success_closes(self):
        """A successful trial closes the circuit with a zero count."""
        clock = FakeClock()
        breaker = CircuitBreaker("action:x", clock=clock)
        await trip(breaker, 5)

        clock.advance(61)
        assert await breaker.execute(succeed) == "ok"

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_half_open_trial_failure_reopens(self):
        """A failed trial reopens the circuit and refreshes the failure time."""
        clock = FakeClock()
        breaker = CircuitBreaker("action:x", clock=clock)
        await trip(breaker, 5)

        clock.advance(61)
        await trip(breaker, 1)

        assert breaker.state == CircuitState.OPEN
        assert breaker.last_failure_time == clock.now
        with pytest.raises(CircuitOpenError):
            await breaker.execute(succeed)

    @pytest.mark.asyncio
    async def test_half_open_admits_exactly_one_call(self):
        """Concurrent callers during the trial fail fast."""
        clock = FakeClock()
        breaker = CircuitBreaker("action:x", clock=clock)
        await trip(breaker, 5)
        clock.advance(61)

        release = asyncio.Event()
        calls = 0

        async def slow():
            nonlocal calls
            calls += 1
            await release.wait()
            return "trial"

        trial = asyncio.create_task(breaker.execute(slow))
        await asyncio.sleep(0)
        assert breaker.state == CircuitState.HALF_OPEN

        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.execute(slow)
        assert exc_info.value.state == CircuitState.HALF_OPEN

        release.set()
        assert await trial == "trial"
        assert calls == 1
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_on_open_hook_called_once_per_opening(self):
        """The hook fires on entering open, not on each rejected call."""
        hook = AsyncMock()
        breaker = CircuitBreaker("action:x", clock=FakeClock(), on_open=hook)
        await trip(breaker, 5)
        with pytest.raises(CircuitOpenError):
            await breaker.execute(succeed)

        hook.assert_awaited_once_with(breaker)

    @pytest.mark.asyncio
    async def test_on_open_hook_failure_does_not_propagate(self):
        """A broken hook never replaces the operation's error."""
        hook = MagicMock(side_effect=RuntimeError("hook broke"))
        breaker = CircuitBreaker("action:x", CircuitBreakerConfig(failure_threshold=1), on_open=hook)

        with pytest.raises(RuntimeError, match="boom"):
            await breaker.execute(fail)

        hook.assert_called_once()
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_reset(self):
        """Manual reset closes the circuit."""
        breaker = CircuitBreaker("action:x", CircuitBreakerConfig(failure_threshold=1))
        await trip(breaker, 1)
        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert await breaker.execute(succeed) == "ok"


class TestCircuitBreakerRegistry:
    """Tests for CircuitBreakerRegistry."""

    def test_get_for_action_reuses_breaker(self):
        """One breaker exists per action key."""
        registry = CircuitBreakerRegistry()

        first = registry.get_for_action("send_email")
        second = registry.get_for_action("send_email")

        assert first is second
        assert first.name == "action:send_email"
        assert registry.get_for_action("webhook") is not first

    @pytest.mark.asyncio
    async def test_is_open_and_reset(self):
        """Registry reports and resets breaker state by name."""
        registry = CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=1))
        breaker = registry.get_for_action("webhook")
        await trip(breaker, 1)

        assert registry.is_open("action:webhook") is True
        assert registry.is_open("action:unknown") is False

        registry.reset("action:webhook")
        assert registry.is_open("action:webhook") is False

    @pytest.mark.asyncio
    async def test_hook_wired_after_construction(self):
        """The registry hook is looked up when a breaker opens."""
        registry = CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=1))
        breaker = registry.get_for_action("webhook")
        hook = AsyncMock()
        registry.on_open = hook

        await trip(breaker, 1)

        hook.assert_awaited_once_with(breaker)

    def test_get_all(self):
        """Snapshots are keyed by breaker name."""
        registry = CircuitBreakerRegistry()
        registry.get_for_action("send_email")

        snapshots = registry.get_all()

        assert snapshots["action:send_email"]["state"] == "closed"
        assert snapshots["action:send_email"]["config"]["failure_threshold"] == 5
