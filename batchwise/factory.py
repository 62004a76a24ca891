"""Build queues and retry executors from settings."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, TypeVar

import structlog

from batchwise.batch.protocol import BatchExecutor
from batchwise.batch.queue import BatchQueue, identity_executor
from batchwise.config.settings import Settings, get_settings
from batchwise.retry.executor import RetryExecutor, RetryPredicate

logger = structlog.get_logger(component="factory")

P = TypeVar("P")
R = TypeVar("R")


def create_retry_executor(
    settings: Settings | None = None,
    should_retry: RetryPredicate | None = None,
) -> RetryExecutor:
    """Create a retry executor using the configured default policy."""
    settings = settings or get_settings()
    return RetryExecutor(
        policy=settings.app.retry.to_policy(),
        should_retry=should_retry,
    )


def create_batch_queue(
    executor: BatchExecutor[P, R] | None = None,
    settings: Settings | None = None,
    retry_executor: RetryExecutor | None = None,
) -> BatchQueue[P, R]:
    """
    Create a batch queue from settings.

    When retry_batches is enabled every batch call goes through a retry
    executor, either the one given or a fresh one built from settings.
    """
    settings = settings or get_settings()
    batch_executor: BatchExecutor[P, R] = executor or identity_executor

    if settings.app.retry_batches:
        retry_executor = retry_executor or create_retry_executor(settings)
        batch_executor = retry_executor.wrap(batch_executor)

    window = settings.app.batching.to_window()
    logger.info(
        "batch_queue_created",
        batch_size=window.batch_size,
        inter_batch_delay_ms=window.inter_batch_delay_ms,
        retry_batches=settings.app.retry_batches,
    )
    return BatchQueue.from_window(window, executor=batch_executor)


@asynccontextmanager
async def batch_queue_lifespan(
    executor: BatchExecutor[P, R] | None = None,
    settings: Settings | None = None,
) -> AsyncIterator[BatchQueue[P, R]]:
    """
    Queue lifespan manager.

    Yields a queue built from settings and waits for it to drain on exit.
    """
    queue = create_batch_queue(executor, settings=settings)
    try:
        yield queue
    finally:
        await queue.wait_idle()
        logger.info("batch_queue_drained", stats=queue.get_stats())
