"""
Logging setup shared by the API and the scripts.
"""

import sys

from loguru import logger


def configure_logging(level: str = "INFO", serialize: bool = False) -> None:
    """
    Replace loguru's default sink with a single stderr sink.

    Args:
        level: Minimum level to emit
        serialize: Emit JSON records instead of formatted text
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), serialize=serialize)
