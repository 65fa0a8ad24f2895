class AwsTestHelpersError(Exception):
    """Base class for errors raised by aws_test_helpers."""


class ValidationError(AwsTestHelpersError, ValueError):
    """Invalid input, raised before any call to AWS."""


class QueueNotFoundError(AwsTestHelpersError):
    """The queue name could not be resolved to a URL."""

    def __init__(self, queue_name: str):
        super().__init__(f"Queue does not exist: {queue_name}")
        self.queue_name = queue_name


class QueueConflictError(AwsTestHelpersError):
    """An existing queue has attributes different from the requested ones."""

    def __init__(self, queue_url: str, expected: dict, actual: dict):
        super().__init__(
            f"Queue {queue_url} already exists with different attributes: "
            f"expected {expected}, actual {actual}"
        )
        self.queue_url = queue_url
        self.expected = expected
        self.actual = actual


class CancelledError(AwsTestHelpersError):
    """The operation observed a triggered abort event."""
