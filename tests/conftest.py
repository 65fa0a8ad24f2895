import pytest
from moto import mock_aws

from aws_test_helpers.common import aws
from aws_test_helpers.domain.models import DEFAULT_QUEUE_ATTRIBUTES


# ============================
#  ENV (AWS)
# ============================

@pytest.fixture(autouse=True)
def env_setup(monkeypatch):
    # AWS fake env
    monkeypatch.setenv("AWS_REGION", "eu-central-1")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-central-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    monkeypatch.delenv("AWS_ACCOUNT_ID", raising=False)


@pytest.fixture(autouse=True)
def disable_custom_aws_endpoints(monkeypatch):
    """
    Tests never talk to LocalStack: custom endpoints are cleared and every
    test starts with an empty client cache.
    """
    for var in (
        "AWS_ENDPOINT_URL",
        "AWS_ENDPOINT_URL_SQS",
        "SQS_ENDPOINT",
        "LOCALSTACK_HOST",
        "LOCALSTACK_HOSTNAME",
        "LOCALSTACK_ENDPOINT",
    ):
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setattr(aws, "_clients", {})


# ============================
#  AWS STACK (Moto: SQS)
# ============================

@pytest.fixture()
def aws_stack():
    with mock_aws():
        yield


@pytest.fixture()
def sqs(aws_stack):
    return aws.sqs_client()


@pytest.fixture()
def queue_url(sqs):
    return sqs.create_queue(QueueName="test-queue", Attributes=DEFAULT_QUEUE_ATTRIBUTES)["QueueUrl"]
