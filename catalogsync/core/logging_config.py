# File: catalogsync/core/logging_config.py
"""
Logging setup for CatalogSync workers.
"""

import logging
from typing import Optional

from catalogsync.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger and return the package logger.

    Args:
        level: Log level name; defaults to settings.LOG_LEVEL

    Returns:
        The "catalogsync" logger
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    logger = logging.getLogger("catalogsync")
    logger.setLevel(log_level)

    logger.info(
        f"Configured logger ('{logger.name}') effective level: "
        f"{logging.getLevelName(logger.getEffectiveLevel())}"
    )
    return logger
