"""
Simulates the SQS event source mapping: poll a queue, turn each batch into
an SQS event and invoke a Lambda handler with it, until aborted.
"""

import threading
from typing import Callable, Optional

from ..adapters.sqs_event import to_sqs_event
from ..common.errors import CancelledError
from ..common.logging import logger as default_logger
from ..common.logging_utils import describe_error
from ..domain.models import QueueReference
from . import sqs_service
from .lambda_service import invoke_lambda


def _report(logger, level: str, msg: dict):
    # a broken logger must not stop the poller
    try:
        getattr(logger, level)(msg)
    except Exception as e:
        default_logger.warning({"runner": "logger_failed", "err": describe_error(e)})


def run_sqs_lambda(
    queue: QueueReference,
    handler: Callable,
    batch_size: int,
    timeout: float,
    endpoint: Optional[str] = None,
    logger=None,
    abort_event: Optional[threading.Event] = None,
) -> None:
    """
    Polls ``queue`` and invokes ``handler`` with every batch.

    Returns once ``abort_event`` is set. Receive errors other than the
    cancellation propagate; handler failures and timeouts are only logged.
    """
    logger = logger or default_logger

    queue_url = sqs_service.resolve_queue_url(queue, endpoint)
    queue_name = queue.display_name

    while abort_event is None or not abort_event.is_set():
        _report(logger, "info", {"runner": "polling", "queue_url": queue_url, "batch_size": batch_size})
        try:
            messages = sqs_service.get_messages(
                queue_url,
                batch_size=batch_size,
                abort_event=abort_event,
                endpoint=endpoint,
            )
        except CancelledError:
            break

        _report(logger, "info", {"runner": "invoking", "messages": len(messages)})
        output = invoke_lambda(
            event=to_sqs_event(messages, queue_name=queue_name),
            handler=handler,
            timeout=timeout,
        )
        if output.success:
            _report(logger, "info", {"runner": "invoked", "result": output.result})
        else:
            _report(
                logger,
                "error",
                {
                    "runner": "invoke_failed",
                    "error": describe_error(output.error),
                    "timed_out": output.timed_out,
                },
            )

    _report(logger, "info", {"runner": "stopped", "queue_url": queue_url})
