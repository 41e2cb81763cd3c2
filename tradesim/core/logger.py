"""
Logging Configuration

Console logging for the simulator. Two formats:
- "colored": level-colored lines with a short module tag
- "simple": plain lines, suitable for log collectors

Usage:
    from tradesim.core.logger import get_logger
    logger = get_logger(__name__)

    # Once, when the app is created:
    setup_logging(level="INFO", format_type="colored")
"""

import logging
import sys
from datetime import datetime, timezone

PACKAGE_PREFIX = "tradesim."

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"

NOISY_LOGGERS = ("httpx", "aiohttp", "asyncio", "uvicorn.access")

SIMPLE_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s:%(lineno)d] %(message)s"


def short_module_name(name: str) -> str:
    """tradesim.services.trading_engine -> services.trading_engine"""
    return name[len(PACKAGE_PREFIX):] if name.startswith(PACKAGE_PREFIX) else name


class ColoredFormatter(logging.Formatter):
    """One colored line per record, traceback appended when present."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelname, RESET)
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S")

        line = (
            f"{color}{timestamp} {record.levelname:<8} "
            f"{short_module_name(record.name):<32} {record.getMessage()}{RESET}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", format_type: str = "colored") -> None:
    """
    Route all logging to stdout at the given level.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (unknown -> INFO)
        format_type: "colored" or "simple"
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    if format_type == "colored":
        handler.setFormatter(ColoredFormatter())
    else:
        handler.setFormatter(logging.Formatter(SIMPLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(numeric_level)
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # uvicorn installs its own handlers; send it through ours instead
    uvicorn_logger = logging.getLogger("uvicorn")
    uvicorn_logger.handlers = [handler]
    uvicorn_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Module logger, usually get_logger(__name__)."""
    return logging.getLogger(name)
