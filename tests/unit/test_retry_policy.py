"""Tests for the retry executor."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from ruleflow.execution.retry_policy import RetryConfig, RetryPolicy, with_retry


def failing(times: int, result: str = "done"):
    """Operation that fails ``times`` times, then succeeds."""
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] <= times:
            raise RuntimeError(f"failure {calls['count']}")
        return result

    operation.calls = calls
    return operation


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_delay_schedule(self):
        """Delays double from the base delay."""
        config = RetryConfig()

        assert [config.delay_for(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_custom_multiplier(self):
        """Delays follow base * multiplier ** attempt."""
        config = RetryConfig(base_delay=0.5, backoff_multiplier=3.0)

        assert config.delay_for(2) == 4.5


class TestWithRetry:
    """Tests for with_retry."""

    @pytest.mark.asyncio
    async def test_first_success_returned_without_sleeping(self, fake_sleep, sleeps):
        """A successful first attempt is returned verbatim."""
        result = await with_retry(failing(0), sleep=fake_sleep)

        assert result == "done"
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_backoff_schedule_before_exhaustion(self, fake_sleep, sleeps):
        """Default config waits 1s, 2s, 4s and makes four attempts."""
        operation = failing(10)

        with pytest.raises(RuntimeError, match="failure 4"):
            await with_retry(operation, RetryConfig(), sleep=fake_sleep)

        assert operation.calls["count"] == 4
        assert sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_recovers_mid_way(self, fake_sleep, sleeps):
        """A later success ends the loop."""
        operation = failing(2)

        assert await with_retry(operation, sleep=fake_sleep) == "done"
        assert operation.calls["count"] == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_retry_condition_false_raises_immediately(self, fake_sleep, sleeps):
        """A refused error is re-raised without waiting."""
        operation = failing(10)

        with pytest.raises(RuntimeError, match="failure 1"):
            await with_retry(
                operation,
                retry_condition=lambda e: False,
                sleep=fake_sleep,
            )

        assert operation.calls["count"] == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_zero_retries(self, fake_sleep):
        """max_retries=0 makes exactly one attempt."""
        operation = failing(1)

        with pytest.raises(RuntimeError):
            await with_retry(operation, RetryConfig(max_retries=0), sleep=fake_sleep)

        assert operation.calls["count"] == 1

    @pytest.mark.asyncio
    async def test_on_retry_receives_error_and_retry_number(self, fake_sleep):
        """on_retry is called before each wait with a 1-based retry number."""
        observer = MagicMock()

        with pytest.raises(RuntimeError):
            await with_retry(
                failing(10),
                RetryConfig(max_retries=2),
                on_retry=observer,
                sleep=fake_sleep,
            )

        assert [c.args[1] for c in observer.call_args_list] == [1, 2]
        assert str(observer.call_args_list[0].args[0]) == "failure 1"

    @pytest.mark.asyncio
    async def test_async_on_retry_is_awaited(self, fake_sleep):
        """An async observer is awaited."""
        observer = AsyncMock()

        await with_retry(failing(1), on_retry=observer, sleep=fake_sleep)

        observer.assert_awaited_once()


class TestRetryPolicy:
    """Tests for RetryPolicy metrics."""

    @pytest.mark.asyncio
    async def test_metrics(self, fake_sleep):
        """Counters accumulate across calls."""
        policy = RetryPolicy(RetryConfig(max_retries=1), sleep=fake_sleep)

        await policy.execute(failing(1))
        with pytest.raises(RuntimeError):
            await policy.execute(failing(5))

        metrics = policy.get_metrics()
        assert metrics["total_attempts"] == 4
        assert metrics["successful_operations"] == 1
        assert metrics["failed_operations"] == 1
        assert metrics["retries"] == 2
        assert metrics["total_delay_seconds"] == 2.0
        assert metrics["success_rate"] == 0.5
