"""
Logging configuration

Every module gets its own stdout logger at LOG_LEVEL. The HTTP client
libraries log each helpdesk and OpenAI request at INFO, so they are held
at WARNING unless the service itself runs at DEBUG.
"""
import logging
import sys
from ticket_assistant.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def _resolve_level(level_name: str) -> int:
    level = logging.getLevelName(level_name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logger(name: str) -> logging.Logger:
    """
    Setup logger with standard format

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    level = _resolve_level(get_settings().log_level)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Console handler (only once per logger)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    if level > logging.DEBUG:
        for noisy in NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger with the standard handler attached"""
    return setup_logger(name)
