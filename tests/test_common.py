import json
import logging
import threading
import unittest.mock as mock

import pytest
from aws_lambda_powertools import Logger

from aws_test_helpers.adapters.loggers import ConsoleLogger, NoLogger, PowertoolsLogger, is_logger
from aws_test_helpers.common import aws
from aws_test_helpers.common.config import Settings
from aws_test_helpers.common.errors import ValidationError
from aws_test_helpers.common.logging_utils import describe_error, shorten_body
from aws_test_helpers.domain.models import QueueReference


# ============================
#  SQS client cache
# ============================

def test_sqs_client_is_cached_per_endpoint():
    first = aws.sqs_client("http://localhost:4566")

    assert aws.sqs_client("http://localhost:4566") is first
    assert aws.sqs_client("http://localhost:4567") is not first
    assert first.meta.endpoint_url == "http://localhost:4566"
    assert first.meta.region_name == "eu-central-1"


def test_sqs_client_concurrent_first_use_creates_one_client(monkeypatch):
    created = []
    real_client = aws.boto3.client

    def counting_client(*args, **kwargs):
        created.append(kwargs.get("endpoint_url"))
        return real_client(*args, **kwargs)

    monkeypatch.setattr(aws.boto3, "client", counting_client)
    barrier = threading.Barrier(16)
    clients = []

    def worker():
        barrier.wait()
        clients.append(aws.sqs_client("http://localhost:4566"))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert created == ["http://localhost:4566"]
    assert all(c is clients[0] for c in clients)


def test_sqs_client_endpoint_from_env(monkeypatch):
    monkeypatch.setenv("SQS_ENDPOINT", "http://sqs.local:4566")

    assert aws.sqs_client().meta.endpoint_url == "http://sqs.local:4566"


def test_sqs_client_localstack_hostname(monkeypatch):
    monkeypatch.setenv("LOCALSTACK_HOSTNAME", "localstack")

    assert aws.sqs_client().meta.endpoint_url == "http://localstack:4566"


def test_settings_sqs_endpoint_precedence(monkeypatch):
    assert Settings().sqs_endpoint is None

    monkeypatch.setenv("LOCALSTACK_HOSTNAME", "localstack")
    assert Settings().sqs_endpoint == "http://localstack:4566"

    monkeypatch.setenv("AWS_ENDPOINT_URL", "http://global:4566")
    assert Settings().sqs_endpoint == "http://global:4566"

    monkeypatch.setenv("LOCALSTACK_ENDPOINT", "http://localstack-endpoint:4566")
    assert Settings().sqs_endpoint == "http://localstack-endpoint:4566"

    monkeypatch.setenv("SQS_ENDPOINT", "http://sqs:4566")
    assert Settings().sqs_endpoint == "http://sqs:4566"


def test_sqs_client_explicit_endpoint_beats_settings(monkeypatch):
    monkeypatch.setenv("SQS_ENDPOINT", "http://sqs.local:4566")

    assert aws.sqs_client("http://explicit:4566").meta.endpoint_url == "http://explicit:4566"


# ============================
#  models
# ============================

@pytest.mark.parametrize("kwargs", [{}, {"name": "q", "url": "http://q"}])
def test_queue_reference_needs_exactly_one(kwargs):
    with pytest.raises(ValidationError):
        QueueReference(**kwargs)


def test_queue_reference_display_name():
    assert QueueReference(name="orders").display_name == "orders"
    assert QueueReference(url="http://localhost:4566/000000000000/orders").display_name == "orders"


# ============================
#  loggers
# ============================

def test_is_logger():
    assert is_logger(logging.getLogger("any"))
    assert is_logger(ConsoleLogger())
    assert is_logger(NoLogger())
    assert not is_logger(object())
    assert not is_logger(print)


def test_console_logger_renders_dicts(caplog):
    logger = ConsoleLogger(name="console-test")
    logger._logger.propagate = True

    with caplog.at_level(logging.INFO, logger="console-test"):
        logger.info({"runner": "invoked", "result": 1})
        logger.debug("hidden")

    assert [r.getMessage() for r in caplog.records] == ['{"runner": "invoked", "result": 1}']


def test_powertools_logger_forwards_messages():
    inner = mock.MagicMock(spec=Logger)
    logger = PowertoolsLogger(inner)
    error = ValueError("boom")

    for level in ("debug", "info", "warning", "error", "critical"):
        log = getattr(logger, level)
        log(None)
        log(1)
        log("message only")
        log({"object": "only"})
        log(error)

        assert getattr(inner, level).call_args_list == [
            mock.call(""),
            mock.call("1"),
            mock.call("message only"),
            mock.call({"object": "only"}),
            mock.call("boom"),
        ]


def test_powertools_logger_writes_structured_json(capsys):
    logger = PowertoolsLogger(service="powertools-logger-test")

    assert is_logger(logger)
    logger.info({"runner": "invoked", "result": 1})

    line = capsys.readouterr().out.strip().splitlines()[-1]
    record = json.loads(line)
    assert record["level"] == "INFO"
    assert record["service"] == "powertools-logger-test"
    assert record["message"] == {"runner": "invoked", "result": 1}


def test_no_logger_discards():
    logger = NoLogger()
    for level in ("debug", "info", "warning", "error", "critical"):
        assert getattr(logger, level)({"x": 1}) is None


# ============================
#  logging utils
# ============================

def test_shorten_body():
    assert shorten_body(None) is None
    assert shorten_body("short") == "short"
    assert shorten_body("x" * 50, max_len=10) == "x" * 10 + "..."


def test_describe_error():
    assert describe_error(None) is None
    assert describe_error(ValueError("bad")) == "ValueError: bad"
    assert describe_error("plain") == "plain"
