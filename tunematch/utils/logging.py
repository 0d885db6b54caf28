import logging
import os
from typing import Optional

LOG_FORMAT = (
    '%(asctime)s | %(levelname)-8s | '
    '%(name)s:%(funcName)s:%(lineno)d | '
    '%(message)s'
)

def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``tunematch`` logger hierarchy.

    Args:
        level: Optional logging level override

    Returns:
        The package root logger
    """
    logger = logging.getLogger("tunematch")

    # Set level from argument, environment, or default to INFO
    log_level = (
        level or
        os.getenv('LOG_LEVEL', 'INFO')
    ).upper()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    # Add the handler only once, setup may run per app instance
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger

def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """Hide all but the last few characters of a token for log output."""
    if not value:
        return "<none>"
    if len(value) <= visible:
        return '*' * len(value)
    return '*' * 10 + value[-visible:]
