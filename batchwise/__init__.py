"""Asynchronous batching and retry primitives."""

from batchwise.batch import BatchQueue, DrainState
from batchwise.errors import BatchExecutionError, BatchwiseError
from batchwise.retry import RetryExecutor, RetryPolicy

__all__ = [
    "BatchQueue",
    "DrainState",
    "RetryExecutor",
    "RetryPolicy",
    "BatchwiseError",
    "BatchExecutionError",
]
