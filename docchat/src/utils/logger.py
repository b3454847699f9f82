"""
DocChat - Logging
==================
Pre-configured logger factory so every module logs in the same format.

Verbosity for ``docchat.*`` loggers:
  • ``settings.LOG_LEVEL`` when set
  • otherwise from ``settings.ENV``: ``"dev"`` → DEBUG, ``"prod"`` → WARNING

The HTTP client, Gemini SDK, LanceDB and uvicorn loggers are chatty at
DEBUG (one line per embedding request); ``quiet_library_loggers`` pins
them to ``settings.LIBRARY_LOG_LEVEL`` and is called once by each entry
point (API lifespan, setup CLI).

Usage:
    from docchat.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Something happened")
"""

import logging
import sys

from docchat.config.settings import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}

LIBRARY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "google_genai",
    "langchain_google_genai",
    "lancedb",
    "pymongo",
    "uvicorn.access",
)


def resolve_level(env: str, override: str | None = None) -> int:
    """Explicit *override* name wins; otherwise map *env*, falling back to INFO."""
    if override:
        return logging.getLevelName(override.upper())
    return _ENV_LEVEL_MAP.get(env, logging.INFO)


_DEFAULT_LEVEL = resolve_level(settings.ENV, settings.LOG_LEVEL)


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Create and return a named logger with a standardised formatter.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit logging level override.
               If *None*, the level comes from ``LOG_LEVEL`` / ``ENV``.
    """
    resolved_level = level if level is not None else _DEFAULT_LEVEL
    logger = logging.getLogger(name)

    # One handler per named logger
    if not logger.handlers:
        logger.setLevel(resolved_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(resolved_level)
        console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(console_handler)
        logger.propagate = False

    return logger


def quiet_library_loggers(level: str | int | None = None) -> None:
    """Pin third-party loggers to *level* (default ``settings.LIBRARY_LOG_LEVEL``)."""
    target = level if level is not None else settings.LIBRARY_LOG_LEVEL
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(target)
