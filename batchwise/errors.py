"""Package exceptions."""


class BatchwiseError(Exception):
    """Base for errors raised by batchwise itself."""


class BatchExecutionError(BatchwiseError):
    """Raised when a batch executor returns a malformed result."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            f"Batch executor returned {received} results for {expected} payloads"
        )
