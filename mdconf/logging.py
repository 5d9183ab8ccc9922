"""Logging utilities for mdconf runs."""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "mdconf"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the mdconf hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the mdconf logger with console output and optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI runs more than once.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[mdconf] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


def log_failure(logger: logging.Logger, message: str, exc: BaseException, source: str | None = None) -> None:
    """Log a recovered failure, attaching the offending source when known."""
    if source is not None:
        message = f"{message}\nSource:\n{source}"
    if logger.isEnabledFor(logging.DEBUG):
        logger.error("%s\nError: %s", message, exc, exc_info=exc)
    else:
        logger.error("%s\nError: %s", message, exc)


__all__ = ["configure_logging", "get_logger", "log_failure"]
