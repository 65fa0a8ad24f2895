from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..common.errors import ValidationError

# https://docs.aws.amazon.com/AWSSimpleQueueService/latest/APIReference/API_CreateQueue.html
DEFAULT_QUEUE_ATTRIBUTES: Dict[str, str] = {
    "DelaySeconds": "0",
    "MaximumMessageSize": "262144",
    "MessageRetentionPeriod": "345600",
    "ReceiveMessageWaitTimeSeconds": "0",
    "VisibilityTimeout": "30",
}

# attributes compared when reconciling an existing queue
RECOGNIZED_QUEUE_ATTRIBUTES = (
    "DelaySeconds",
    "MaximumMessageSize",
    "MessageRetentionPeriod",
    "Policy",
    "ReceiveMessageWaitTimeSeconds",
    "VisibilityTimeout",
)


@dataclass(frozen=True)
class QueueReference:
    """An SQS queue given either by name or by URL, never both."""

    name: Optional[str] = None
    url: Optional[str] = None

    def __post_init__(self):
        if bool(self.name) == bool(self.url):
            raise ValidationError("Exactly one of queue name or queue URL must be given.")

    @property
    def display_name(self) -> str:
        # the queue name is the last path segment of its URL
        return self.name or self.url.rstrip("/").rsplit("/", 1)[-1]


@dataclass(frozen=True)
class InvocationSuccess:
    result: Any = None
    success: bool = field(default=True, init=False)


@dataclass(frozen=True)
class InvocationFailure:
    error: Any = None
    timed_out: bool = False
    success: bool = field(default=False, init=False)


InvocationResult = InvocationSuccess | InvocationFailure
