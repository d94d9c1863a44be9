"""Logging bootstrap for the ``ctxservice`` logger hierarchy.

Library modules only ever call ``logging.getLogger(__name__)``; nothing is
attached until an application (or a test) calls :func:`configure_logging`.
"""

from __future__ import annotations

import logging

from . import settings

__all__ = ["configure_logging", "ROOT_LOGGER_NAME"]

ROOT_LOGGER_NAME = "ctxservice"

_HANDLER_ATTR = "_ctxservice_handler"


def configure_logging(level: int | str | None = None) -> logging.Logger:
    """Attach a single stream handler to the package logger.

    Repeated calls only adjust the level.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    resolved = level if level is not None else settings.LOG_LEVEL
    if isinstance(resolved, str):
        resolved = logging.getLevelName(resolved.upper())
        if not isinstance(resolved, int):
            resolved = logging.WARNING
    if not getattr(logger, _HANDLER_ATTR, None):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
        logger.addHandler(handler)
        setattr(logger, _HANDLER_ATTR, handler)
    logger.setLevel(resolved)
    return logger
