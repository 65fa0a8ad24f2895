"""
SQS helpers for tests: batched receive, queue cleanup and queue upsert.

Clients come from ``common.aws.sqs_client`` and are shared per endpoint.
"""

import json
import threading
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from ..common.aws import sqs_client
from ..common.errors import CancelledError, QueueConflictError, QueueNotFoundError, ValidationError
from ..common.logging import logger
from ..common.logging_utils import shorten_body
from ..domain.models import DEFAULT_QUEUE_ATTRIBUTES, RECOGNIZED_QUEUE_ATTRIBUTES, QueueReference

# https://docs.aws.amazon.com/AWSSimpleQueueService/latest/APIReference/API_ReceiveMessage.html
MAX_MESSAGES_PER_RECEIVE = 10
# https://docs.aws.amazon.com/AWSSimpleQueueService/latest/SQSDeveloperGuide/sqs-short-and-long-polling.html
MAX_WAIT_TIME_SECONDS = 20

# how often an in-flight call checks its abort event
ABORT_POLL_INTERVAL = 0.05

_MISSING_QUEUE_CODES = {"AWS.SimpleQueueService.NonExistentQueue", "QueueDoesNotExist"}


def _is_missing_queue(err: ClientError) -> bool:
    return err.response.get("Error", {}).get("Code") in _MISSING_QUEUE_CODES


def _call(fn, abort_event: Optional[threading.Event] = None, **params):
    """
    Calls ``fn(**params)``; with an ``abort_event`` the call runs on a
    background thread and a set event raises ``CancelledError``.

    An aborted call is not interrupted, its result is dropped.
    """
    if abort_event is None:
        return fn(**params)
    if abort_event.is_set():
        raise CancelledError("SQS request aborted before it started")

    outcome: Dict[str, Any] = {}
    done = threading.Event()

    def target():
        try:
            outcome["value"] = fn(**params)
        except Exception as e:
            outcome["error"] = e
        finally:
            done.set()

    threading.Thread(target=target, name="sqs-request", daemon=True).start()
    while not done.wait(ABORT_POLL_INTERVAL):
        if abort_event.is_set():
            raise CancelledError("SQS request aborted")

    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


def _delete_batch(client, queue_url: str, messages: List[dict], abort_event=None):
    res = _call(
        client.delete_message_batch,
        abort_event,
        QueueUrl=queue_url,
        Entries=[{"Id": m["MessageId"], "ReceiptHandle": m["ReceiptHandle"]} for m in messages],
    )
    failed = res.get("Failed") or []
    if failed:
        logger.warning({"sqs": "delete_failed", "queue_url": queue_url, "failed": failed})


def _receive(client, queue_url: str, max_messages: int, wait_seconds: int, keep: bool, abort_event=None):
    res = _call(
        client.receive_message,
        abort_event,
        QueueUrl=queue_url,
        MaxNumberOfMessages=max_messages,
        # received messages are immediately visible again
        VisibilityTimeout=0,
        WaitTimeSeconds=wait_seconds,
        AttributeNames=["All"],
        MessageAttributeNames=["All"],
    )
    messages = res.get("Messages") or []
    logger.debug(
        {
            "sqs": "received",
            "queue_url": queue_url,
            "count": len(messages),
            "bodies": [shorten_body(m.get("Body")) for m in messages],
        }
    )

    # read-then-delete: a failure in between hands the messages out again
    if messages and not keep:
        _delete_batch(client, queue_url, messages, abort_event)
    return messages


def get_messages(
    queue_url: str,
    batch_size: Optional[int] = None,
    keep: bool = False,
    abort_event: Optional[threading.Event] = None,
    endpoint: Optional[str] = None,
) -> List[dict]:
    """
    Receives messages from an SQS queue.

    With ``batch_size`` the call long-polls until that many messages were
    received; without it a single short-poll receive is made. Messages are
    deleted after each receive unless ``keep`` is set.

    Raises:
        ValidationError: ``batch_size`` is not an integer >= 1.
        CancelledError: ``abort_event`` was set before or during a request.
    """
    if batch_size is not None and (
        isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1
    ):
        raise ValidationError("Batch size must be equal or greater than 1.")

    client = sqs_client(endpoint)
    wait_seconds = MAX_WAIT_TIME_SECONDS if batch_size else 0

    messages: List[dict] = []
    while True:
        if batch_size is None:
            max_messages = MAX_MESSAGES_PER_RECEIVE
        else:
            max_messages = min(MAX_MESSAGES_PER_RECEIVE, batch_size - len(messages))

        messages.extend(_receive(client, queue_url, max_messages, wait_seconds, keep, abort_event))

        if batch_size is None or len(messages) >= batch_size:
            return messages


def get_json_messages(
    queue_url: str,
    batch_size: Optional[int] = None,
    keep: bool = False,
    abort_event: Optional[threading.Event] = None,
    endpoint: Optional[str] = None,
) -> List[dict]:
    """Same as ``get_messages``; each message gets its parsed body under ``Object``."""
    messages = get_messages(queue_url, batch_size, keep, abort_event, endpoint)
    return [{**m, "Object": json.loads(m["Body"])} for m in messages]


def clear_queue(queue_url: str, purge: bool = False, endpoint: Optional[str] = None) -> None:
    client = sqs_client(endpoint)

    if purge:
        client.purge_queue(QueueUrl=queue_url)
        logger.info({"sqs": "purged", "queue_url": queue_url})
        return

    # short polling may miss messages; good enough for test cleanup
    removed = 0
    while True:
        res = client.receive_message(
            QueueUrl=queue_url,
            MaxNumberOfMessages=MAX_MESSAGES_PER_RECEIVE,
            WaitTimeSeconds=0,
        )
        messages = res.get("Messages") or []
        if not messages:
            break
        _delete_batch(client, queue_url, messages)
        removed += len(messages)

    logger.info({"sqs": "cleared", "queue_url": queue_url, "removed": removed})


def _get_queue_url(client, queue_name: str) -> str:
    try:
        return client.get_queue_url(QueueName=queue_name)["QueueUrl"]
    except ClientError as e:
        if _is_missing_queue(e):
            raise QueueNotFoundError(queue_name) from e
        raise


def _create_queue(client, queue_name: str, attributes: Dict[str, str], tags: Optional[Dict[str, str]]) -> str:
    params: Dict[str, Any] = {"QueueName": queue_name}
    if attributes:
        params["Attributes"] = attributes
    if tags:
        params["tags"] = tags
    return client.create_queue(**params)["QueueUrl"]


def _attribute_value(value) -> str:
    # SQS spells booleans "true"/"false"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _recognized(attributes: Dict[str, str]) -> Dict[str, str]:
    # an unset Policy may come back as ""
    return {k: v for k, v in attributes.items() if k in RECOGNIZED_QUEUE_ATTRIBUTES and v not in (None, "")}


def resolve_queue_url(queue: QueueReference, endpoint: Optional[str] = None) -> str:
    if queue.url:
        return queue.url
    return _get_queue_url(sqs_client(endpoint), queue.name)


def upsert_queue(
    queue_name: str,
    attributes: Optional[Dict[str, str]] = None,
    tags: Optional[Dict[str, str]] = None,
    force: bool = False,
    endpoint: Optional[str] = None,
) -> str:
    """
    Creates the queue, or checks that the existing one has the requested
    attributes (missing ones count as SQS defaults).

    With different attributes the call raises ``QueueConflictError``, or with
    ``force`` deletes and re-creates the queue. Returns the queue URL.
    """
    client = sqs_client(endpoint)
    requested = {k: _attribute_value(v) for k, v in (attributes or {}).items()}

    try:
        queue_url = _get_queue_url(client, queue_name)
    except QueueNotFoundError:
        queue_url = _create_queue(client, queue_name, requested, tags)
        logger.info({"sqs": "queue_created", "queue_url": queue_url})
        return queue_url

    res = client.get_queue_attributes(
        QueueUrl=queue_url, AttributeNames=list(RECOGNIZED_QUEUE_ATTRIBUTES)
    )
    actual = _recognized(res.get("Attributes") or {})
    expected = _recognized({**DEFAULT_QUEUE_ATTRIBUTES, **requested})

    if actual == expected:
        logger.debug({"sqs": "queue_exists", "queue_url": queue_url})
        return queue_url

    if not force:
        raise QueueConflictError(queue_url, expected, actual)

    client.delete_queue(QueueUrl=queue_url)
    queue_url = _create_queue(client, queue_name, requested, tags)
    logger.info({"sqs": "queue_recreated", "queue_url": queue_url})
    return queue_url


def send(operation: str, endpoint: Optional[str] = None, **params):
    """Calls any SQS client operation, e.g. ``send("send_message", QueueUrl=..., MessageBody=...)``."""
    return getattr(sqs_client(endpoint), operation)(**params)
