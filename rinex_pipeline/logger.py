"""Logging configuration for rinex_pipeline"""

import logging
import sys
from typing import Optional

from rinex_pipeline.config import LOG_DATE_FORMAT, LOG_FORMAT

PACKAGE_LOGGER = "rinex_pipeline"


def setup_logger(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    name: str = PACKAGE_LOGGER,
) -> logging.Logger:
    """
    Setup the package logger.

    Parameters
    ----------
    level : str
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_file : str, optional
        Also write records to this file
    console : bool
        Write records to stderr
    name : str
        Logger name, defaults to the package logger

    Returns
    -------
    logging.Logger
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove handlers installed by a previous call
    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger of the package logger."""
    if not name.startswith(PACKAGE_LOGGER):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
