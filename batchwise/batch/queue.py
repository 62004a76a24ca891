"""Batch queue with a delay-gated drain loop."""

import asyncio
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field

from batchwise.batch.protocol import BatchExecutor, TaskQueue
from batchwise.errors import BatchExecutionError

logger = structlog.get_logger(component="batch_queue")

P = TypeVar("P")
R = TypeVar("R")

SleepFn = Callable[[float], Awaitable[Any]]


async def identity_executor(payloads: list[Any]) -> Sequence[Any]:
    """Default executor: every payload is its own result."""
    return payloads


class DrainState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"


class BatchWindow(BaseModel):
    """Batch sizing and pacing for one queue."""

    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(default=10, ge=1)
    inter_batch_delay_ms: int = Field(default=100, ge=0)


@dataclass
class PendingTask(Generic[P, R]):
    """A payload waiting in the queue."""

    payload: P
    future: asyncio.Future[R]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    submitted_at: float = field(default_factory=time.time)


@dataclass
class QueueStats:
    """Statistics for the batch queue."""

    total_submitted: int = 0
    total_processed: int = 0
    total_batches: int = 0
    total_errors: int = 0

    @property
    def avg_batch_size(self) -> float:
        """Average number of tasks per batch."""
        if self.total_batches == 0:
            return 0.0
        return self.total_processed / self.total_batches


class BatchQueue(TaskQueue[P, R]):
    """
    In-memory FIFO queue that coalesces submissions into batches.

    Payloads are grouped in submission order into batches of at most
    batch_size and handed to the executor one batch at a time. Between
    batches the drain loop pauses for inter_batch_delay_ms. The loop starts
    on the first submission after idling and stops once the queue is empty.

    A failing batch rejects all of its tasks with the same exception; the
    queue itself keeps running. An executor that raises CancelledError
    cancels its own batch only. Cancelling the drain task cancels every
    task still queued, and the next submission starts a fresh loop.

    Not thread-safe: submit from the event loop that owns the queue.
    """

    def __init__(
        self,
        executor: BatchExecutor[P, R] | None = None,
        batch_size: int = 10,
        inter_batch_delay_ms: int = 100,
        sleep: SleepFn = asyncio.sleep,
        name: str | None = None,
    ) -> None:
        self._window = BatchWindow(
            batch_size=batch_size,
            inter_batch_delay_ms=inter_batch_delay_ms,
        )
        self._executor: BatchExecutor[P, R] = executor or identity_executor
        self._sleep = sleep

        self._queue: deque[PendingTask[P, R]] = deque()
        self._state = DrainState.IDLE
        self._drain_task: asyncio.Task[None] | None = None
        self._stats = QueueStats()
        self._name = name or uuid.uuid4().hex[:8]
        self._log = logger.bind(queue=self._name)

    @classmethod
    def from_window(
        cls,
        window: BatchWindow,
        executor: BatchExecutor[P, R] | None = None,
        sleep: SleepFn = asyncio.sleep,
        name: str | None = None,
    ) -> "BatchQueue[P, R]":
        return cls(
            executor=executor,
            batch_size=window.batch_size,
            inter_batch_delay_ms=window.inter_batch_delay_ms,
            sleep=sleep,
            name=name,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def window(self) -> BatchWindow:
        return self._window

    @property
    def state(self) -> DrainState:
        return self._state

    @property
    def pending(self) -> int:
        """Number of tasks not yet taken into a batch."""
        return len(self._queue)

    def submit(self, payload: P) -> asyncio.Future[R]:
        """
        Enqueue a payload and return the future for its result.

        Enqueuing never fails. Must be called while an event loop is running.
        """
        loop = asyncio.get_running_loop()
        task: PendingTask[P, R] = PendingTask(payload=payload, future=loop.create_future())
        self._queue.append(task)
        self._stats.total_submitted += 1

        if self._state is DrainState.IDLE:
            self._state = DrainState.DRAINING
            self._drain_task = loop.create_task(self._drain())

        self._log.debug("task_queued", task_id=task.id, queue_size=len(self._queue))
        return task.future

    async def wait_idle(self) -> None:
        """Wait for the drain loop to empty the queue."""
        while self._drain_task is not None:
            await asyncio.wait({self._drain_task})

    def get_stats(self) -> dict[str, Any]:
        """Get current queue statistics."""
        return {
            "queue_size": len(self._queue),
            "state": self._state.value,
            "total_submitted": self._stats.total_submitted,
            "total_processed": self._stats.total_processed,
            "total_batches": self._stats.total_batches,
            "total_errors": self._stats.total_errors,
            "avg_batch_size": round(self._stats.avg_batch_size, 2),
        }

    async def _drain(self) -> None:
        """Drain loop - runs batches until the queue is empty."""
        self._log.debug("drain_started", queue_size=len(self._queue))
        delay = self._window.inter_batch_delay_ms / 1000.0

        try:
            while self._queue:
                size = min(self._window.batch_size, len(self._queue))
                batch = [self._queue.popleft() for _ in range(size)]
                await self._run_batch(batch)

                if self._queue:
                    await self._sleep(delay)
        finally:
            self._state = DrainState.IDLE
            self._drain_task = None

            # Tasks are only left behind when the drain task itself was torn down
            abandoned = 0
            while self._queue:
                self._queue.popleft().future.cancel()
                abandoned += 1
            if abandoned:
                self._log.warning("drain_aborted", abandoned=abandoned)

        self._log.debug("drain_finished", stats=self.get_stats())

    async def _run_batch(self, batch: list[PendingTask[P, R]]) -> None:
        """Run one batch through the executor and settle its futures."""
        start_time = time.time()
        self._stats.total_batches += 1
        self._stats.total_processed += len(batch)

        self._log.info("batch_processing_start", batch_size=len(batch))

        try:
            results = list(await self._executor([task.payload for task in batch]))
            if len(results) != len(batch):
                raise BatchExecutionError(expected=len(batch), received=len(results))
        except Exception as e:
            for task in batch:
                if not task.future.done():
                    task.future.set_exception(e)

            self._stats.total_errors += 1
            self._log.error("batch_processing_failed", batch_size=len(batch), error=str(e))
            return
        except asyncio.CancelledError:
            self._cancel_batch(batch)

            # Only a cancel aimed at the drain task stops the loop
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                self._log.warning("drain_cancelled", batch_size=len(batch))
                raise

            self._log.error("batch_processing_cancelled", batch_size=len(batch))
            return
        except BaseException:
            self._cancel_batch(batch)
            raise

        # Callers that stopped waiting leave a cancelled future behind
        for task, result in zip(batch, results):
            if not task.future.done():
                task.future.set_result(result)

        duration_ms = (time.time() - start_time) * 1000
        self._log.info(
            "batch_processing_complete",
            batch_size=len(batch),
            duration_ms=round(duration_ms, 2),
        )

    def _cancel_batch(self, batch: list[PendingTask[P, R]]) -> None:
        for task in batch:
            task.future.cancel()
        self._stats.total_errors += 1
