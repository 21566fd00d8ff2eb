"""
Shared logger utility for the logistics workflow service.
Gives demos and the API process one console format for every module logger.
"""

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str | None = None, level: int = logging.INFO) -> logging.Logger:
    """
    Return a logger with a console handler in the shared format.
    Handlers are attached once; repeated calls only adjust the level.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger
