"""Configuración centralizada de logging para el motor de reglas académicas."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROOT_LOGGER = "gestion_academica"


def configure_logging(level: str | None = None) -> logging.Logger:
    """Install a single console handler on the package logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR). Defaults to
               ``settings.log_level``.

    Returns:
        The package root logger.
    """
    if level is None:
        from .config import settings

        level = settings.log_level
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(log_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

    # Evitar que los mensajes se dupliquen en el logger raíz
    logger.propagate = False
    return logger
