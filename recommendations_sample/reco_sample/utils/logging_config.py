"""
Logging configuration for the recommendations sample app.
"""

import logging
import os
import sys
from datetime import datetime

from .constants import LOGS_DIR


def setup_logging(name=None, level=logging.INFO, log_to_file=True):
    """
    Set up logging configuration.

    Args:
        name: Logger name (defaults to root logger if None)
        level: Logging level
        log_to_file: Whether to also write a dated log file in LOGS_DIR

    Returns:
        Configured logger
    """
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    logger.addHandler(console_handler)

    if log_to_file:
        log_filename = f"{datetime.now().strftime('%Y%m%d')}.log"
        try:
            os.makedirs(LOGS_DIR, exist_ok=True)
            file_handler = logging.FileHandler(LOGS_DIR / log_filename)
        except OSError as e:
            logger.warning(f"Cannot write log file in {LOGS_DIR}, logging to console only: {str(e)}")
            return logger
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger
