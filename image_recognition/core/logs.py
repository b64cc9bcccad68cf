# image_recognition/core/logs.py
"""
Logging setup for the recognition service.

All loggers live under the `image_recognition` namespace. `configure_logging`
is called once by the application context; library modules only call
`get_logger(__name__)`.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterable
from logging.handlers import RotatingFileHandler

ROOT_LOGGER = "image_recognition"

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_DATEFMT = "%d-%m-%Y %H:%M:%S"


def get_logger(name: str | None = None) -> logging.Logger:
    if not name or name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    if name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


class RedactingFilter(logging.Filter):
    """Replace known secret values in rendered log messages with [REDACTED]."""

    def __init__(self, secrets: Iterable[str | None] = ()) -> None:
        super().__init__()
        self._secrets = sorted({s for s in secrets if s and len(s) >= 4}, key=len, reverse=True)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        msg = record.getMessage()
        redacted = msg
        for s in self._secrets:
            redacted = redacted.replace(s, "[REDACTED]")
        if redacted != msg:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(
    level: str | int = "INFO",
    *,
    log_file: str | None = None,
    secrets: Iterable[str | None] = (),
) -> logging.Logger:
    """
    Install a console handler and, when `log_file` is set, a rotating file
    handler on the package logger. Safe to call more than once: previously
    installed handlers are replaced.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level if isinstance(level, int) else str(level).upper())
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    redactor = RedactingFilter(secrets)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(redactor)
    logger.addHandler(console)

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        handler.setFormatter(formatter)
        handler.addFilter(redactor)
        logger.addHandler(handler)

    return logger
