import logging
import sys
from typing import Optional, Union

PACKAGE_LOGGER = "resume_pipeline"


def get_logger(name: str, level: Optional[Union[int, str]] = None) -> logging.Logger:
    """
    Get a logger inside the package hierarchy.

    The single stream handler lives on the package logger; module loggers
    propagate to it and inherit its level unless `level` is given.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s: %(message)s"))
        package_logger.addHandler(handler)
        package_logger.propagate = False
        package_logger.setLevel(logging.INFO)

    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger
