"""
Logging configuration
"""

import logging
import sys
from typing import Optional
from core.config import settings

# Third-party loggers kept at WARNING so page progress stays readable
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "sqlalchemy.pool")


def setup_logging(level: Optional[str] = None):
    """
    Configure application logging.

    Args:
        level: Level name overriding ``settings.LOG_LEVEL`` (e.g. from a CLI flag)
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
        force=True
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {level_name} level")
