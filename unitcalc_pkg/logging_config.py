"""Logging for Unitcalc.

All loggers live under the ``unitcalc`` namespace. Engine errors that end up
as user-facing output (an ``Error:`` line in the REPL, ``ok=False`` from the
API) are logged at debug level through ``log_calc_error`` with their error
code attached, so a ``--log-level DEBUG`` run shows which code each failed
line produced.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Optional

from . import config
from .types import CalcError

ROOT_LOGGER = "unitcalc"


class StructuredFormatter(logging.Formatter):
    """``<iso time> [LEVEL] unitcalc.<module>: message [code=...]``"""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).isoformat()
        message = f"{timestamp} [{record.levelname}] {record.name}: {record.getMessage()}"
        code = getattr(record, "error_code", None)
        if code:
            message = f"{message} [code={code}]"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logging(
    level: Optional[str] = None, log_file: Optional[str] = None
) -> logging.Logger:
    """Configure the ``unitcalc`` logger.

    Args:
        level: Logging level name; defaults to UNITCALC_LOG_LEVEL
        log_file: Extra file to log to; defaults to UNITCALC_LOG_FILE

    Returns:
        The configured package logger
    """
    level = (level or config.LOG_LEVEL).upper()
    log_file = log_file or config.LOG_FILE
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level, logging.WARNING))

    # Reconfiguring (tests, repeated main_entry calls) replaces the handlers
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for one package module, e.g. ``get_logger("solver")``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def log_calc_error(logger: logging.Logger, error: CalcError, source: str) -> None:
    """Record an engine error that is being reported to the user."""
    logger.debug(
        "%s for %r: %s", type(error).__name__, source, error,
        extra={"error_code": error.code},
    )


def safe_log(
    module_name: str, level: str, message: str, *args, exc_info: bool = False
) -> None:
    """Log from the interactive loop; a failing handler only prints a note.

    A log file on a vanished volume must not end the session.
    """
    logger = get_logger(module_name)
    log_func = getattr(logger, level.lower(), logger.info)
    try:
        log_func(message, *args, exc_info=exc_info)
    except (OSError, ValueError) as e:
        sys.stderr.write(f"logging failed: {e}\n")
