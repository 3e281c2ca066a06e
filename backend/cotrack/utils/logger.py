"""Logging configuration for the application."""
import logging
import sys
from cotrack.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level() -> int:
    """Explicit LOG_LEVEL wins, otherwise DEBUG only in development."""
    if settings.log_level:
        return logging.getLevelName(settings.log_level.upper())
    return logging.DEBUG if settings.environment == "development" else logging.INFO


level = _resolve_level()

logger = logging.getLogger("cotrack")
logger.setLevel(level)

handler = logging.StreamHandler(sys.stdout)
handler.setLevel(level)
handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

if not logger.handlers:
    logger.addHandler(handler)

# The worker and uvicorn install their own root handlers
logger.propagate = False

__all__ = ["logger"]
