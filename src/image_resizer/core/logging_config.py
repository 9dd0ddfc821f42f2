"""Logging setup for the resizer and the server it runs under."""

import os
import sys
import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import ResizerConfig

LOGGER_NAME = "image-resizer"
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

HANDLER_NAME = "image-resizer.stdout"

LOG_FORMATS = {
    "structured": (
        "%(asctime)s | %(name)s | %(levelname)-8s | "
        "%(filename)s:%(lineno)d | %(message)s"
    ),
    "simple": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}


def resolve_level(level: Optional[str] = None, debug: bool = False) -> int:
    """
    Pick the effective log level.

    Debug mode wins, then an explicit level name, then LOG_LEVEL. Unknown
    names fall back to INFO.
    """
    if debug:
        return logging.DEBUG
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _stdout_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    format_name = os.getenv("LOG_FORMAT", "structured").lower()
    handler.setFormatter(
        logging.Formatter(
            LOG_FORMATS.get(format_name, LOG_FORMATS["structured"]),
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def setup_logger(
    name: str = LOGGER_NAME, level: Optional[str] = None, debug: bool = False
) -> logging.Logger:
    """
    Configure a top-level logger writing to stdout.

    The stdout handler is attached once per logger; calling again only
    updates the level. LOG_FORMAT selects "structured" or "simple" output.
    """
    logger = logging.getLogger(name)
    logger.setLevel(resolve_level(level, debug))

    if not any(h.get_name() == HANDLER_NAME for h in logger.handlers):
        logger.addHandler(_stdout_handler())

    logger.propagate = False
    return logger


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """
    Return the resizer logger or one of its component children.

    Children such as "image-resizer.engine" carry no handlers of their own
    and log through the configured parent.
    """
    if component is None:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{component}")


def configure_logging(config: "ResizerConfig") -> logging.Logger:
    """
    Apply the configuration's log level to the resizer and uvicorn loggers.

    Call once at startup, before the server is created.
    """
    logger = setup_logger(LOGGER_NAME, debug=config.debug)
    for name in SERVER_LOGGERS:
        logging.getLogger(name).setLevel(logger.level)
    return logger


logger = setup_logger()
