"""
Configuration read from environment variables.
Exposes the Settings dataclass as the single source of truth.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv, find_dotenv

# Load variables from .env (if the file exists).
load_dotenv(find_dotenv(usecwd=True))


def _env(*names: str, default: str | None = None) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


def _sqs_endpoint() -> str | None:
    # per-service override, then global override
    endpoint = _env("SQS_ENDPOINT", "LOCALSTACK_ENDPOINT", "AWS_ENDPOINT_URL")
    if endpoint:
        return endpoint
    # SAM/LocalStack inject LOCALSTACK_HOSTNAME into containers
    host = _env("LOCALSTACK_HOSTNAME")
    return f"http://{host}:4566" if host else None


@dataclass
class Settings:
    """
    Settings read from environment variables.

    Fields are resolved when the instance is created, so a fresh
    ``Settings()`` picks up variables set after import (tests rely on this).
    """

    # AWS
    aws_region: str = field(
        default_factory=lambda: _env("AWS_REGION", "AWS_DEFAULT_REGION", default="us-east-1")
    )
    aws_account_id: str = field(default_factory=lambda: _env("AWS_ACCOUNT_ID", default="123456789012"))
    aws_max_attempts: int = field(default_factory=lambda: int(_env("AWS_MAX_ATTEMPTS", default="3")))

    # SQS endpoint override (LocalStack etc.), None means real AWS
    sqs_endpoint: str | None = field(default_factory=_sqs_endpoint)

    # logging
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", default="INFO"))

