"""
Loggers that the SQS poller and the run-lambda CLI report to.

Any object with the methods in ``LOG_LEVELS`` works, a plain
``logging.Logger`` included.
"""

import json
import logging

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def is_logger(value) -> bool:
    return all(callable(getattr(value, level, None)) for level in LOG_LEVELS)


class ConsoleLogger:
    """Writes plain-text lines to the console through a stdlib logger."""

    def __init__(self, name: str = "run-lambda", level: int = logging.INFO):
        self._logger = logging.getLogger(name)
        if not self._logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
            self._logger.addHandler(handler)
            self._logger.propagate = False
        self._logger.setLevel(level)

    def _log(self, level: int, msg):
        if isinstance(msg, dict):
            msg = json.dumps(msg, ensure_ascii=False, default=str)
        self._logger.log(level, msg)

    def debug(self, msg):
        self._log(logging.DEBUG, msg)

    def info(self, msg):
        self._log(logging.INFO, msg)

    def warning(self, msg):
        self._log(logging.WARNING, msg)

    def error(self, msg):
        self._log(logging.ERROR, msg)

    def critical(self, msg):
        self._log(logging.CRITICAL, msg)


class NoLogger:
    """Discards everything."""

    def debug(self, msg):
        pass

    def info(self, msg):
        pass

    def warning(self, msg):
        pass

    def error(self, msg):
        pass

    def critical(self, msg):
        pass


class PowertoolsLogger:
    """
    Reports through an ``aws_lambda_powertools.Logger``.

    Dict messages are passed through as structured messages, which
    Powertools renders as JSON objects; anything else becomes a string.
    Needs the ``powertools`` extra.
    """

    def __init__(self, logger=None, service: str = "run-lambda"):
        if logger is None:
            from aws_lambda_powertools import Logger

            logger = Logger(service=service)
        self._logger = logger

    def _log(self, level: str, msg):
        if not isinstance(msg, (str, dict)):
            msg = "" if msg is None else str(msg)
        getattr(self._logger, level)(msg)

    def debug(self, msg):
        self._log("debug", msg)

    def info(self, msg):
        self._log("info", msg)

    def warning(self, msg):
        self._log("warning", msg)

    def error(self, msg):
        self._log("error", msg)

    def critical(self, msg):
        self._log("critical", msg)
