from __future__ import annotations

import sys

from loguru import logger

from stockres.app.core.config import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level:<8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan> - {message}"
)


def configure_logging(level: str | None = None, log_file: str | None = None) -> None:
    """
    Installe les sinks loguru de l'application.

    - stderr au niveau LOG_LEVEL
    - fichier optionnel (rotation quotidienne, 30 jours, zip)
    """
    logger.remove()
    logger.add(sys.stderr, level=level or settings.log_level, format=LOG_FORMAT)

    path = log_file or settings.log_file
    if path:
        logger.add(
            path,
            level=level or settings.log_level,
            format=LOG_FORMAT,
            rotation="1 day",
            retention="30 days",
            compression="zip",
            enqueue=True,
        )
