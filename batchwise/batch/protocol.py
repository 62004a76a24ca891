"""Abstract protocol for task queues and the batch executor capability.

A batch executor is any coroutine function taking the ordered payloads of
one batch and returning one result per payload, in the same order.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

P = TypeVar("P")
R = TypeVar("R")

BatchExecutor = Callable[[list[P]], Awaitable[Sequence[R]]]


class TaskQueue(ABC, Generic[P, R]):
    """
    Abstract base for task queues.

    Implementations accept payloads one at a time and complete each
    submission's future once the payload has been processed.
    """

    @abstractmethod
    def submit(self, payload: P) -> asyncio.Future[R]:
        """
        Enqueue a payload for processing.

        Args:
            payload: Any value the configured executor accepts

        Returns:
            Future that settles with this payload's result or failure
        """
        ...

    @abstractmethod
    async def wait_idle(self) -> None:
        """Wait until every submitted payload has settled."""
        ...

    @abstractmethod
    def get_stats(self) -> dict[str, Any]:
        """
        Get current queue statistics.

        Returns:
            Dict with keys like: queue_size, total_batches, avg_batch_size
        """
        ...
