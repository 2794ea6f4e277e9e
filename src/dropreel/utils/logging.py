"""Logging helpers shared across Dropreel modules."""

from __future__ import annotations

import logging
from typing import Optional

ROOT_LOGGER_NAME = "dropreel"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the package logger, or a child of it when *name* is given."""

    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(level: int = logging.INFO, handler: Optional[logging.Handler] = None) -> logging.Logger:
    """Attach *handler* to the package logger and set its level.

    Calling this twice does not stack handlers; the previous handler installed
    by this function is replaced.
    """

    logger = get_logger()
    for existing in list(logger.handlers):
        if getattr(existing, "_dropreel_handler", False):
            logger.removeHandler(existing)
    if handler is None:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    handler._dropreel_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
