"""
Logging setup for the service.
"""

import logging

from app.core.settings import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging() -> None:
    """
    Configure the root logger with a single console handler.

    Safe to call more than once; only the first call installs the handler.
    """
    global _configured
    if _configured:
        return

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Remove any existing handlers to avoid duplicates under reloaders
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    _configured = True
    logging.info("Logging configured at level %s", settings.LOG_LEVEL.upper())
