# aws_test_helpers/common/aws.py
import threading

import boto3
from botocore.config import Config

from .config import Settings
from .logging import logger

# endpoint URL (None = real AWS) -> SQS client, lives for the whole process
_clients: dict = {}
_clients_lock = threading.Lock()


def _region() -> str:
    return Settings().aws_region


def _cfg() -> Config:
    return Config(
        retries={"max_attempts": Settings().aws_max_attempts, "mode": "standard"}
    )


def sqs_client(endpoint: str | None = None):
    """
    Returns the SQS client for ``endpoint``, creating it on first use.

    Without an explicit endpoint ``Settings.sqs_endpoint`` decides.
    Concurrent first calls for the same endpoint share a single client.
    """
    ep = endpoint or Settings().sqs_endpoint

    client = _clients.get(ep)
    if client is not None:
        return client

    with _clients_lock:
        client = _clients.get(ep)
        if client is None:
            kwargs = {"region_name": _region(), "config": _cfg()}
            if ep:
                kwargs["endpoint_url"] = ep
            client = boto3.client("sqs", **kwargs)
            _clients[ep] = client
            logger.debug({"aws": "sqs_client_created", "endpoint": ep or "aws"})
    return client
