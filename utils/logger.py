# utils/logger.py - one console handler per named logger, level from LOG_LEVEL
import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def get_logger(name: str = "rest-client", level=None):
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        level = level or os.environ.get("LOG_LEVEL", "INFO").upper()
        logger.setLevel(level)
    return logger
