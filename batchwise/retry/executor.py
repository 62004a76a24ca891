"""Exponential backoff retry executor."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence, TypeVar

import structlog

from batchwise.batch.protocol import BatchExecutor
from batchwise.retry.policy import RetryPolicy

logger = structlog.get_logger(component="retry_executor")

T = TypeVar("T")
P = TypeVar("P")
R = TypeVar("R")

SleepFn = Callable[[float], Awaitable[Any]]
RetryPredicate = Callable[[Exception], bool]


def _always_retry(_: Exception) -> bool:
    return True


@dataclass
class RetryStats:
    """Statistics for the retry executor."""

    total_calls: int = 0
    total_attempts: int = 0
    total_retries: int = 0
    total_exhausted: int = 0


class RetryExecutor:
    """
    Runs asynchronous operations with bounded exponential backoff.

    Every failure is retried until the policy's attempt budget is spent,
    unless a should_retry predicate says otherwise. The last failure is
    re-raised unchanged, with a note recording how many attempts were made.

    There is no way to abort a sequence once started: it ends in success,
    a non-retryable failure, or exhaustion.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: SleepFn = asyncio.sleep,
        should_retry: RetryPredicate | None = None,
    ) -> None:
        self._policy = policy
        self._sleep = sleep
        self._should_retry = should_retry or _always_retry
        self._stats = RetryStats()

    @property
    def policy(self) -> RetryPolicy | None:
        return self._policy

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy | None = None,
    ) -> T:
        """
        Await operation(), retrying on failure.

        Args:
            operation: Zero-argument callable returning a fresh awaitable
                       on every call
            policy: Overrides the executor's default policy for this call

        Returns:
            The first successful result
        """
        policy = policy or self._policy
        if policy is None:
            raise ValueError("No retry policy given and no default configured")

        self._stats.total_calls += 1
        delays = policy.delays()
        attempt = 1

        while True:
            self._stats.total_attempts += 1
            try:
                return await operation()
            except Exception as e:
                if attempt == policy.max_attempts:
                    self._stats.total_exhausted += 1
                    note = f"gave up after {attempt} attempt(s)"
                    if note not in getattr(e, "__notes__", ()):
                        e.add_note(note)
                    logger.warning(
                        "retry_exhausted",
                        attempts=attempt,
                        error=str(e),
                    )
                    raise

                if not self._should_retry(e):
                    logger.info(
                        "retry_skipped",
                        attempt=attempt,
                        error_type=type(e).__name__,
                    )
                    raise

                delay = next(delays)
                self._stats.total_retries += 1
                logger.debug(
                    "retry_scheduled",
                    attempt=attempt,
                    delay_ms=round(delay * 1000, 2),
                    error=str(e),
                )
                await self._sleep(delay)
                attempt += 1

    def wrap(
        self,
        executor: BatchExecutor[P, R],
        policy: RetryPolicy | None = None,
    ) -> BatchExecutor[P, R]:
        """Return a batch executor that retries each batch call."""

        async def run(payloads: list[P]) -> Sequence[R]:
            return await self.with_retry(lambda: executor(payloads), policy)

        return run

    def get_stats(self) -> dict[str, Any]:
        """Get current retry statistics."""
        return {
            "total_calls": self._stats.total_calls,
            "total_attempts": self._stats.total_attempts,
            "total_retries": self._stats.total_retries,
            "total_exhausted": self._stats.total_exhausted,
        }
