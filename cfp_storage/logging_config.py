"""
Application logging configuration.

Every module of the storage service logs through the ``cfp_storage``
logger. Detailed errors (including storage paths and stack traces) go to
the log; HTTP clients only ever see the safe messages built by the routes.
"""
import logging
import sys

from cfp_storage.config import settings

LOGGER_NAME = "cfp_storage"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> logging.Logger:
    """
    Configure and return the application logger.

    Output goes to stdout as ``timestamp - logger name - level - message``
    at the level named by ``LOG_LEVEL`` (INFO unless configured). Safe to
    call from every module: the handler is only attached once.

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
