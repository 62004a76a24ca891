"""Retry module."""

from batchwise.retry.executor import RetryExecutor
from batchwise.retry.policy import RetryPolicy

__all__ = ["RetryExecutor", "RetryPolicy"]
