"""Logging helpers shared by the library and the command-line entry point."""

from __future__ import annotations

import logging
from typing import Optional

_ROOT_LOGGER_NAME = "siteloc"
_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the package logger, or a child of it when *name* is given."""

    if not name:
        return logging.getLogger(_ROOT_LOGGER_NAME)
    if name == _ROOT_LOGGER_NAME or name.startswith(f"{_ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")


def configure_logging(verbose: bool = False) -> None:
    """Attach a stderr handler to the package logger.

    A handler installed by an earlier call is replaced, so invoking the CLI
    several times from one interpreter neither duplicates output nor keeps
    writing to a stale stream.
    """

    logger = get_logger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(logger.handlers):
        if getattr(handler, "_siteloc_handler", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._siteloc_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)


__all__ = ["configure_logging", "get_logger"]
