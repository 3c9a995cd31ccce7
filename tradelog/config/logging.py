import logging
import sys
import time
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
# same clock and suffix as the timestamps written to the trades table
DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def configured_level() -> str:
    # settings may fail to load (missing env vars); fall back to INFO
    try:
        from tradelog.config.settings import settings
    except Exception:
        return "INFO"
    return settings.LOG_LEVEL.upper() if settings else "INFO"


def resolve_level(level) -> int:
    """Accepts 10, "debug" or "DEBUG"; anything unknown becomes INFO."""
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def setup_logging(name: str = "tradelog", level: Optional[str] = None) -> logging.Logger:
    """
    One stdout handler per logger name, UTC timestamps.
    Calling again only changes the level.
    """
    logger = logging.getLogger(name)
    resolved = resolve_level(level or configured_level())
    logger.setLevel(resolved)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(resolved)
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    formatter.converter = time.gmtime
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    return logger


logger = setup_logging()
