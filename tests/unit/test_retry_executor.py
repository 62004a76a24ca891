"""Tests for retry executor."""

import asyncio
from typing import Sequence

import pytest
from pydantic import ValidationError

from batchwise.retry.executor import RetryExecutor
from batchwise.retry.policy import RetryPolicy
from tests.conftest import RecordingSleep


class FlakyOperation:
    """Operation that fails a fixed number of times before succeeding."""

    def __init__(self, failures: int, result: str = "ok") -> None:
        self.failures = failures
        self.result = result
        self.calls = 0
        self.errors: list[Exception] = []

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            error = ConnectionError(f"attempt {self.calls} failed")
            self.errors.append(error)
            raise error
        return self.result


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_defaults(self) -> None:
        """Test default multiplier and ceiling."""
        policy = RetryPolicy(max_attempts=3, initial_delay_ms=100)
        assert policy.backoff_multiplier == 2
        assert policy.max_delay_ms == 30000

    def test_delays_grow_and_cap(self) -> None:
        """Test capped exponential delay sequence."""
        policy = RetryPolicy(
            max_attempts=8,
            initial_delay_ms=100,
            backoff_multiplier=2,
            max_delay_ms=1000,
        )

        assert list(policy.delays()) == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.0, 1.0, 1.0])

    def test_single_attempt_has_no_delays(self) -> None:
        """Test that one attempt never sleeps."""
        policy = RetryPolicy(max_attempts=1, initial_delay_ms=100)
        assert list(policy.delays()) == []

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0, "initial_delay_ms": 10},
            {"max_attempts": 2, "initial_delay_ms": -1},
            {"max_attempts": 2, "initial_delay_ms": 10, "backoff_multiplier": 0.5},
            {"max_attempts": 2, "initial_delay_ms": 10, "max_delay_ms": -5},
        ],
    )
    def test_invalid_policy_rejected(self, kwargs: dict[str, float]) -> None:
        """Test field constraints."""
        with pytest.raises(ValidationError):
            RetryPolicy(**kwargs)

    def test_policy_is_immutable(self) -> None:
        """Test that a policy cannot change after creation."""
        policy = RetryPolicy(max_attempts=2, initial_delay_ms=10)
        with pytest.raises(ValidationError):
            policy.max_attempts = 5  # type: ignore[misc]


class TestRetryExecutor:
    """Tests for RetryExecutor."""

    @pytest.fixture
    def policy(self) -> RetryPolicy:
        """Create a five-attempt policy."""
        return RetryPolicy(max_attempts=5, initial_delay_ms=100, max_delay_ms=1000)

    @pytest.fixture
    def executor(self, policy: RetryPolicy, sleep: RecordingSleep) -> RetryExecutor:
        """Create executor with recording sleep."""
        return RetryExecutor(policy=policy, sleep=sleep)

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, executor: RetryExecutor, sleep: RecordingSleep) -> None:
        """Test that a healthy operation runs once."""
        operation = FlakyOperation(failures=0)

        assert await executor.with_retry(operation) == "ok"
        assert operation.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failures", [1, 2, 4])
    async def test_succeeds_after_failures(
        self, executor: RetryExecutor, sleep: RecordingSleep, failures: int
    ) -> None:
        """Test that k failures then success takes k+1 calls."""
        operation = FlakyOperation(failures=failures)

        assert await executor.with_retry(operation) == "ok"
        assert operation.calls == failures + 1
        assert len(sleep.delays) == failures

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error(
        self, executor: RetryExecutor, sleep: RecordingSleep
    ) -> None:
        """Test that exhaustion re-raises the final error unchanged."""
        operation = FlakyOperation(failures=100)

        with pytest.raises(ConnectionError, match="attempt 5 failed") as exc_info:
            await executor.with_retry(operation)

        assert operation.calls == 5
        assert exc_info.value is operation.errors[-1]
        assert "gave up after 5 attempt(s)" in exc_info.value.__notes__
        assert len(sleep.delays) == 4

    @pytest.mark.asyncio
    async def test_shared_error_noted_once(self, executor: RetryExecutor) -> None:
        """Test that re-exhausting the same error instance does not repeat the note."""
        shared = ConnectionError("backend down")

        async def failing() -> None:
            raise shared

        for _ in range(3):
            with pytest.raises(ConnectionError):
                await executor.with_retry(failing)

        assert shared.__notes__ == ["gave up after 5 attempt(s)"]

    @pytest.mark.asyncio
    async def test_backoff_growth(self, sleep: RecordingSleep) -> None:
        """Test observed delays double and then hold at the ceiling."""
        executor = RetryExecutor(sleep=sleep)
        policy = RetryPolicy(
            max_attempts=7,
            initial_delay_ms=100,
            backoff_multiplier=2,
            max_delay_ms=1000,
        )

        with pytest.raises(ConnectionError):
            await executor.with_retry(FlakyOperation(failures=100), policy)

        assert sleep.delays == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.0, 1.0])

    @pytest.mark.asyncio
    async def test_zero_initial_delay(self, sleep: RecordingSleep) -> None:
        """Test that a zero initial delay stays zero."""
        executor = RetryExecutor(RetryPolicy(max_attempts=3, initial_delay_ms=0), sleep=sleep)

        await executor.with_retry(FlakyOperation(failures=2))

        assert sleep.delays == [0.0, 0.0]

    @pytest.mark.asyncio
    async def test_call_policy_overrides_default(
        self, executor: RetryExecutor, sleep: RecordingSleep
    ) -> None:
        """Test that a per-call policy wins over the executor default."""
        operation = FlakyOperation(failures=100)

        with pytest.raises(ConnectionError):
            await executor.with_retry(operation, RetryPolicy(max_attempts=2, initial_delay_ms=5))

        assert operation.calls == 2
        assert sleep.delays == [0.005]

    @pytest.mark.asyncio
    async def test_no_policy_raises(self) -> None:
        """Test that a missing policy is reported before any attempt."""
        operation = FlakyOperation(failures=0)

        with pytest.raises(ValueError, match="No retry policy"):
            await RetryExecutor().with_retry(operation)

        assert operation.calls == 0

    @pytest.mark.asyncio
    async def test_should_retry_short_circuits(self, policy: RetryPolicy, sleep: RecordingSleep) -> None:
        """Test that a rejected error is raised without further attempts."""
        executor = RetryExecutor(
            policy=policy,
            sleep=sleep,
            should_retry=lambda e: not isinstance(e, ValueError),
        )
        calls = 0

        async def invalid() -> None:
            nonlocal calls
            calls += 1
            raise ValueError("bad input")

        with pytest.raises(ValueError, match="bad input"):
            await executor.with_retry(invalid)

        assert calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_cancellation_is_not_retried(self, executor: RetryExecutor) -> None:
        """Test that cancelling the caller stops the sequence."""
        calls = 0

        async def slow() -> None:
            nonlocal calls
            calls += 1
            await asyncio.sleep(10)

        task = asyncio.create_task(executor.with_retry(slow))
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert calls == 1

    @pytest.mark.asyncio
    async def test_real_sleep_between_attempts(self) -> None:
        """Test that the default sleep actually waits."""
        executor = RetryExecutor(RetryPolicy(max_attempts=2, initial_delay_ms=20))
        loop = asyncio.get_running_loop()

        start = loop.time()
        await executor.with_retry(FlakyOperation(failures=1))

        assert loop.time() - start >= 0.015

    @pytest.mark.asyncio
    async def test_wrap_batch_executor(self, executor: RetryExecutor) -> None:
        """Test that a wrapped batch executor retries the whole batch."""
        calls = 0

        async def flaky_batch(payloads: list[int]) -> Sequence[int]:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise TimeoutError("slow backend")
            return [p * 2 for p in payloads]

        wrapped = executor.wrap(flaky_batch)

        assert await wrapped([1, 2, 3]) == [2, 4, 6]
        assert calls == 3

    @pytest.mark.asyncio
    async def test_stats(self, executor: RetryExecutor) -> None:
        """Test stats reporting."""
        await executor.with_retry(FlakyOperation(failures=2))
        with pytest.raises(ConnectionError):
            await executor.with_retry(FlakyOperation(failures=100))

        stats = executor.get_stats()
        assert stats["total_calls"] == 2
        assert stats["total_attempts"] == 8
        assert stats["total_retries"] == 6
        assert stats["total_exhausted"] == 1
