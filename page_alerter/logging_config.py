"""Logging setup for page_alerter.

Logs go to stderr and to a daily-rotated file under the configured log
directory.
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from page_alerter.config import ServerConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(correlation_id)s] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("page_alerter")


class _CorrelationDefaultFilter(logging.Filter):
    """Give records logged without an adapter an empty correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


def setup_logging(config: ServerConfig) -> logging.Logger:
    """Configure the page_alerter logger hierarchy.

    Safe to call more than once; existing handlers are replaced.

    Args:
        config: Server configuration (log_level, log_dir)

    Returns:
        The package root logger
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # stdout is reserved for the STDIO transport
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(_CorrelationDefaultFilter())
    logger.addHandler(console)

    if config.log_dir:
        log_dir = Path(config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            log_dir / "page_alerter.log",
            when="midnight",
            backupCount=30,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(_CorrelationDefaultFilter())
        logger.addHandler(file_handler)

    logger.setLevel(level)
    logger.propagate = False
    return logger
