import json
import logging
import sys

from .config import Settings


class _JsonFormatter(logging.Formatter):
    """One JSON line per record; dict messages are merged into the line."""

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "level": record.levelname,
            "logger": record.name,
        }
        if isinstance(record.msg, dict):
            line.update(record.msg)
        else:
            line["message"] = record.getMessage()
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)


def _build_logger() -> logging.Logger:
    log = logging.getLogger("aws_test_helpers")
    if not log.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_JsonFormatter())
        log.addHandler(handler)
    log.setLevel(Settings().log_level.upper())
    return log


logger = _build_logger()
