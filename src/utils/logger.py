import logging
import sys
from typing import Optional
from core.config import settings

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str,
    level: Optional[int] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Set up a named logger writing to stdout and, when LOG_FILE is set, to a file.

    Args:
        name: Logger name, upper-case by convention ("MDT_SERVICE")
        level: Logging level (default: settings.LOG_LEVEL)
        format_string: Custom format string for log messages

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Handlers are attached once per name
    if logger.handlers:
        return logger

    if level is None:
        level = logging.getLevelName(settings.LOG_LEVEL.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    formatter = logging.Formatter(format_string or LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        file_handler = logging.FileHandler(settings.LOG_FILE)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def quiet_third_party_loggers() -> None:
    """Turn down server chatter so application logs stay readable"""
    for name in ["watchfiles", "uvicorn.error", "uvicorn.asgi"]:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").propagate = True
    logging.getLogger("watchfiles").setLevel(logging.CRITICAL)
