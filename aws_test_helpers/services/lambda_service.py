"""
Simulated Lambda invocation.

A handler may finish in any of the ways the Lambda runtime accepts:

* returning a value, or an awaitable that is then awaited,
* calling ``callback(error, result)`` (handlers declaring a third parameter),
* calling ``context.succeed(result)``, ``context.fail(error)`` or
  ``context.done(error, result)``.

The first of these signals wins; everything after it is ignored. If none
arrives within the timeout the invocation fails with ``timed_out=True``.
"""

import asyncio
import inspect
import threading
import time
import uuid
from typing import Any, Callable, Mapping, Optional

from ..common.errors import ValidationError
from ..common.logging import logger
from ..domain.models import InvocationFailure, InvocationResult, InvocationSuccess

PLACEHOLDER = "placeholder"

CONTEXT_FIELDS = (
    "aws_request_id",
    "client_context",
    "function_name",
    "function_version",
    "identity",
    "invoked_function_arn",
    "log_group_name",
    "log_stream_name",
    "memory_limit_in_mb",
)


class _Settlement:
    """Single-assignment cell: the first ``settle`` wins."""

    def __init__(self):
        self._lock = threading.Lock()
        self._settled = threading.Event()
        self.outcome: Optional[InvocationResult] = None

    def settle(self, outcome: InvocationResult) -> bool:
        with self._lock:
            if self._settled.is_set():
                return False
            self.outcome = outcome
            self._settled.set()
            return True

    def wait(self, timeout: float) -> bool:
        return self._settled.wait(timeout)


class LambdaContext:
    """Stand-in for the context object the Lambda runtime passes to handlers."""

    def __init__(
        self,
        timeout: float,
        callback: Callable[..., None],
        started: float,
        overrides: Optional[Mapping[str, Any]] = None,
    ):
        overrides = dict(overrides or {})
        unknown = sorted(set(overrides) - set(CONTEXT_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown context fields: {', '.join(unknown)}")

        self.aws_request_id = overrides.get("aws_request_id") or str(uuid.uuid4())
        self.client_context = overrides.get("client_context")
        self.identity = overrides.get("identity")
        self.function_name = overrides.get("function_name", PLACEHOLDER)
        self.function_version = overrides.get("function_version", PLACEHOLDER)
        self.invoked_function_arn = overrides.get("invoked_function_arn", PLACEHOLDER)
        self.log_group_name = overrides.get("log_group_name", PLACEHOLDER)
        self.log_stream_name = overrides.get("log_stream_name", PLACEHOLDER)
        self.memory_limit_in_mb = overrides.get("memory_limit_in_mb", PLACEHOLDER)
        self.callback_waits_for_empty_event_loop = True

        self._timeout_ms = timeout * 1000
        self._started = started
        self._callback = callback

    def get_remaining_time_in_millis(self) -> int:
        elapsed_ms = (time.monotonic() - self._started) * 1000
        return int(self._timeout_ms - elapsed_ms)

    # legacy completion methods
    def succeed(self, result=None):
        self._callback(None, result)

    def fail(self, error):
        self._callback(error)

    def done(self, error=None, result=None):
        self._callback(error, result)


def _takes_callback(handler: Callable) -> bool:
    try:
        params = inspect.signature(handler).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = [
        p for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    # a defaulted third parameter is an ordinary argument, not the callback
    return len(positional) >= 3 and positional[2].default is inspect.Parameter.empty


async def _await(awaitable):
    return await awaitable


def _run_handler(handler, event, context, callback, takes_callback, settlement: _Settlement):
    try:
        args = (event, context, callback) if takes_callback else (event, context)
        result = handler(*args)
        if inspect.isawaitable(result):
            result = asyncio.run(_await(result))
        elif result is None and takes_callback:
            # callback-style handler: wait for callback/context
            return
        settlement.settle(InvocationSuccess(result=result))
    except BaseException as e:
        # SystemExit and asyncio.CancelledError end the invocation too
        settlement.settle(InvocationFailure(error=e, timed_out=False))


def invoke_lambda(
    event: Any,
    handler: Callable,
    timeout: float,
    context: Optional[Mapping[str, Any]] = None,
) -> InvocationResult:
    """
    Invokes ``handler`` with ``event`` the way the Lambda runtime would.

    ``timeout`` is in seconds; ``context`` overrides fields of the simulated
    context (see ``CONTEXT_FIELDS``). Handler errors and timeouts never
    raise: they come back as ``InvocationFailure``.
    """
    settlement = _Settlement()
    started = time.monotonic()

    def callback(error=None, result=None):
        if error:
            settlement.settle(InvocationFailure(error=error, timed_out=False))
        else:
            settlement.settle(InvocationSuccess(result=result))

    lambda_context = LambdaContext(timeout, callback, started, context)
    takes_callback = _takes_callback(handler)

    logger.debug(
        {
            "lambda": "invoke",
            "handler": getattr(handler, "__name__", repr(handler)),
            "aws_request_id": lambda_context.aws_request_id,
            "timeout": timeout,
        }
    )

    worker = threading.Thread(
        target=_run_handler,
        args=(handler, event, lambda_context, callback, takes_callback, settlement),
        name=f"lambda-{lambda_context.aws_request_id}",
        daemon=True,
    )
    worker.start()

    if not settlement.wait(timeout):
        # a handler signal racing the timeout may still win here
        settlement.settle(InvocationFailure(error=None, timed_out=True))

    outcome = settlement.outcome
    logger.debug(
        {
            "lambda": "settled",
            "aws_request_id": lambda_context.aws_request_id,
            "success": outcome.success,
            "elapsed_ms": int((time.monotonic() - started) * 1000),
        }
    )
    return outcome
