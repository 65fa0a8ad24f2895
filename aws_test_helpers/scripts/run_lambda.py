#!/usr/bin/env python3
"""
run-lambda: invokes a Lambda handler locally.

    run-lambda sqs -e http://localhost:4566 -q my-queue -m handler.py -t 30 -b 10

Any option value prefixed with ``env:`` is read from that environment
variable (.env files are loaded), e.g. ``-q env:QUEUE_NAME``.
"""

import argparse
import importlib
import importlib.util
import json
import os
import signal
import sys
import threading
from typing import Optional

import pydantic
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, PositiveInt, TypeAdapter, ValidationInfo, field_validator

from ..adapters.loggers import ConsoleLogger, is_logger
from ..common.errors import ValidationError
from ..domain.models import QueueReference
from ..services.sqs_lambda_service import run_sqs_lambda

CONFIG_OPTION = "-c/--config-file"
ENDPOINT_OPTION = "-e/--endpoint"
HANDLER_MODULE_OPTION = "-m/--handler-module"
LOGGER_MODULE_OPTION = "-l/--logger-module"
TIMEOUT_OPTION = "-t/--timeout"
BATCH_SIZE_OPTION = "-b/--batch-size"
QUEUE_NAME_OPTION = "-q/--queue-name"

# option name -> flags, for error messages
SQS_OPTIONS = {
    "endpoint": ENDPOINT_OPTION,
    "handler_module": HANDLER_MODULE_OPTION,
    "logger_module": LOGGER_MODULE_OPTION,
    "timeout": TIMEOUT_OPTION,
    "batch_size": BATCH_SIZE_OPTION,
    "queue_name": QUEUE_NAME_OPTION,
}
_HTTP_URL = TypeAdapter(AnyHttpUrl)


class OptionError(Exception):
    pass


def resolve_option_value(option: str, raw_value):
    """Resolves ``env:NAME`` values from the environment; others pass through."""
    if not isinstance(raw_value, str) or not raw_value.startswith("env:"):
        return raw_value

    var_name = raw_value[len("env:"):]
    result = os.getenv(var_name)
    if not result:
        raise OptionError(
            f"option '{option}' argument '{raw_value}' is invalid. "
            f"No environment variable found with name '{var_name}'."
        )
    return result


class SqsOptions(BaseModel):
    """Options of the ``sqs`` command, from the arguments or a config file."""

    model_config = ConfigDict(extra="forbid")

    endpoint: str
    handler_module: str = Field(min_length=1)
    logger_module: Optional[str] = None
    timeout: PositiveInt
    batch_size: PositiveInt
    queue_name: str = Field(min_length=1)

    @field_validator("*", mode="before")
    @classmethod
    def _resolve_env(cls, value, info: ValidationInfo):
        value = resolve_option_value(SQS_OPTIONS[info.field_name], value)
        if isinstance(value, bool) and info.field_name in ("timeout", "batch_size"):
            raise ValueError("must be an integer greater or equal to 1")
        return value

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, value: str) -> str:
        try:
            _HTTP_URL.validate_python(value)
        except pydantic.ValidationError:
            raise ValueError("must be an http(s) URL")
        return value


def _option_error(e: pydantic.ValidationError, source: str) -> OptionError:
    errors = e.errors()
    unknown = [str(err["loc"][0]) for err in errors if err["type"] == "extra_forbidden"]
    if unknown:
        return OptionError(f"invalid {source}. Unknown keys: {', '.join(unknown)}.")

    missing = [SQS_OPTIONS[err["loc"][0]] for err in errors if err["type"] == "missing"]
    if missing:
        return OptionError(f"you must specify {CONFIG_OPTION} or all the required options ({', '.join(missing)}).")

    problems = "; ".join(f"{SQS_OPTIONS[err['loc'][0]]}: {err['msg']}" for err in errors)
    return OptionError(f"invalid {source}. {problems}.")


def validate_options(raw: dict, source: str = "option value") -> dict:
    """Resolves ``env:`` values and checks every SQS option."""
    try:
        options = SqsOptions.model_validate({k: v for k, v in raw.items() if v is not None})
    except pydantic.ValidationError as e:
        raise _option_error(e, source)
    return options.model_dump()


def load_config_file(path: str) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            config = json.load(f)
    except (OSError, ValueError) as e:
        raise OptionError(f"option '{CONFIG_OPTION}' argument '{path}' is invalid. {e}")

    if not isinstance(config, dict):
        raise OptionError(f"option '{CONFIG_OPTION}' argument '{path}' is invalid. Expected a JSON object.")
    return config


def parse_options(args: argparse.Namespace) -> dict:
    given = {name: getattr(args, name, None) for name in SQS_OPTIONS}

    if args.config_file:
        conflicts = [SQS_OPTIONS[name] for name, value in given.items() if value is not None]
        if conflicts:
            raise OptionError(f"option '{CONFIG_OPTION}' cannot be used with {', '.join(conflicts)}.")
        config_path = resolve_option_value(CONFIG_OPTION, args.config_file)
        return validate_options(load_config_file(config_path), f"option '{CONFIG_OPTION}' argument '{config_path}'")

    return validate_options(given)


def load_module(option: str, module_path: str):
    """Loads ``path/to/file.py`` or a dotted module name."""
    try:
        if module_path.endswith(".py") or os.sep in module_path:
            resolved = os.path.abspath(module_path)
            # the handler's siblings must be importable, as under the Lambda runtime
            module_dir = os.path.dirname(resolved)
            if module_dir not in sys.path:
                sys.path.insert(0, module_dir)
            name = os.path.splitext(os.path.basename(resolved))[0]
            spec = importlib.util.spec_from_file_location(name, resolved)
            if spec is None or spec.loader is None:
                raise ImportError(f"cannot load {resolved}")
            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)
            return module
        return importlib.import_module(module_path)
    except Exception as e:
        raise OptionError(f"option '{option}' argument '{module_path}' is invalid. {e}")


def _load_attr(option: str, value: str, default_attr: str):
    module_path, _, attr = value.rpartition(":") if ":" in value else (value, "", default_attr)
    module = load_module(option, module_path)
    if not hasattr(module, attr):
        raise OptionError(
            f"option '{option}' argument '{value}' is invalid. The module has no attribute named '{attr}'."
        )
    return getattr(module, attr)


def load_modules(options: dict):
    """Loads the Lambda handler and, if given, the logger."""
    handler = _load_attr(HANDLER_MODULE_OPTION, options["handler_module"], "handler")
    if not callable(handler):
        raise OptionError(
            f"option '{HANDLER_MODULE_OPTION}' argument '{options['handler_module']}' is invalid. "
            "The handler is not callable."
        )

    logger = ConsoleLogger()
    if options.get("logger_module"):
        logger = _load_attr(LOGGER_MODULE_OPTION, options["logger_module"], "logger")
        if not is_logger(logger):
            raise OptionError(
                f"option '{LOGGER_MODULE_OPTION}' argument '{options['logger_module']}' is invalid. "
                "The object is not a logger."
            )
    return handler, logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="run-lambda",
        description="Invokes a Lambda function handler.",
        epilog='Add "env:" prefix to any option value to read it from an environment variable '
        "(.env files are supported). For example -q env:QUEUE_NAME",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    sqs = commands.add_parser("sqs", help="Polls an SQS queue and invokes a Lambda handler.")
    sqs.add_argument("-e", "--endpoint", help="The AWS HTTP endpoint.")
    sqs.add_argument(
        "-m",
        "--handler-module",
        help="Path or dotted name of the module with the Lambda handler "
        "(function 'handler' unless given as 'module:function').",
    )
    sqs.add_argument(
        "-l",
        "--logger-module",
        help="Path or dotted name of the module with a logger (object 'logger' unless given as 'module:name').",
    )
    sqs.add_argument("-t", "--timeout", help="The Lambda function timeout in seconds.")
    sqs.add_argument("-b", "--batch-size", help="The SQS message batch size.")
    sqs.add_argument("-q", "--queue-name", help="The SQS queue name.")
    sqs.add_argument("-c", "--config-file", help="A JSON configuration file with the option values.")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = parse_options(args)
        handler, logger = load_modules(options)
        queue = QueueReference(name=options["queue_name"])
    except (OptionError, ValidationError) as e:
        parser.error(str(e))

    logger.info(
        {"run_lambda": "Polling SQS queue and invoking Lambda handler with the following options.", "options": options}
    )

    abort_event = threading.Event()

    def _stop(signum, frame):
        logger.info("Stopping...")
        abort_event.set()

    previous = signal.signal(signal.SIGINT, _stop)
    try:
        run_sqs_lambda(
            queue=queue,
            handler=handler,
            batch_size=options["batch_size"],
            timeout=options["timeout"],
            endpoint=options["endpoint"],
            logger=logger,
            abort_event=abort_event,
        )
    finally:
        signal.signal(signal.SIGINT, previous)

    logger.info("Finished polling SQS queue.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
