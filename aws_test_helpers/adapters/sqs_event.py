"""
Converts SQS messages (as returned by boto3 ``receive_message``) into the
event the Lambda service passes to an SQS-triggered handler.
"""

import base64
from typing import Any, Dict, Iterable, List, Optional

from ..common.config import Settings

DEFAULT_QUEUE_NAME = "queue"


def _b64(value) -> str:
    if isinstance(value, str):
        value = value.encode("utf-8")
    return base64.b64encode(value).decode("ascii")


def _message_attribute(attr: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "dataType": attr.get("DataType"),
        "stringListValues": list(attr.get("StringListValues") or []),
        "binaryListValues": [_b64(v) for v in attr.get("BinaryListValues") or []],
    }
    if attr.get("StringValue") is not None:
        out["stringValue"] = attr["StringValue"]
    if attr.get("BinaryValue") is not None:
        out["binaryValue"] = _b64(attr["BinaryValue"])
    return out


def _record(message: Dict[str, Any], region: str, arn: str) -> Dict[str, Any]:
    return {
        "messageId": message.get("MessageId"),
        "receiptHandle": message.get("ReceiptHandle"),
        "body": message.get("Body"),
        "attributes": dict(message.get("Attributes") or {}),
        "messageAttributes": {
            name: _message_attribute(attr)
            for name, attr in (message.get("MessageAttributes") or {}).items()
        },
        "md5OfBody": message.get("MD5OfBody"),
        "eventSource": "aws:sqs",
        "eventSourceARN": arn,
        "awsRegion": region,
    }


def queue_arn(region: str, account: str, queue_name: str) -> str:
    return f"arn:aws:sqs:{region}:{account}:{queue_name}"


def to_sqs_event(
    messages: Iterable[Dict[str, Any]],
    account: Optional[str] = None,
    queue_name: Optional[str] = None,
    region: Optional[str] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Builds an SQS Lambda event from ``messages``.

    ``account``, ``queue_name`` and ``region`` only feed ``eventSourceARN`` and
    ``awsRegion``; account and region default to the environment (see
    ``Settings``).
    Binary attribute values are base64-encoded. The input is not modified.
    """
    settings = Settings()
    region = region or settings.aws_region
    arn = queue_arn(region, account or settings.aws_account_id, queue_name or DEFAULT_QUEUE_NAME)
    return {"Records": [_record(m, region, arn) for m in messages]}
