"""Retry policy model."""

from typing import Iterator

from pydantic import BaseModel, ConfigDict, Field


class RetryPolicy(BaseModel):
    """
    Bounded exponential backoff.

    Delays start at initial_delay_ms, grow by backoff_multiplier after every
    failed attempt, and each single sleep is capped at max_delay_ms.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(..., ge=1)
    initial_delay_ms: float = Field(..., ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    max_delay_ms: float = Field(default=30000.0, ge=0)

    def delays(self) -> Iterator[float]:
        """
        Yield the sleep before each retry, in seconds.

        Yields max_attempts - 1 values. The uncapped delay keeps growing
        so the sequence never decreases.
        """
        current = self.initial_delay_ms
        for _ in range(self.max_attempts - 1):
            yield min(current, self.max_delay_ms) / 1000.0
            current *= self.backoff_multiplier
