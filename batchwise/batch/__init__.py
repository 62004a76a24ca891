"""Batch queue module."""

from batchwise.batch.protocol import BatchExecutor, TaskQueue
from batchwise.batch.queue import BatchQueue, BatchWindow, DrainState

__all__ = ["BatchExecutor", "TaskQueue", "BatchQueue", "BatchWindow", "DrainState"]
