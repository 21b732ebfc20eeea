"""Logger factory used throughout page_alerter."""

import logging
from typing import Any, MutableMapping, Tuple

from page_alerter.config import ServerConfig
from page_alerter.log_system.correlation import get_correlation_id
from page_alerter.logging_config import setup_logging


class CorrelationAdapter(logging.LoggerAdapter):
    """Stamps every record with the active correlation id."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("correlation_id", get_correlation_id() or "-")
        kwargs["extra"] = extra
        return msg, kwargs


class UnifiedLogger:
    """Entry point for obtaining loggers and initializing handlers."""

    _initialized = False

    @classmethod
    def initialize_default(cls, config: ServerConfig) -> None:
        """Configure handlers from the server configuration."""
        setup_logging(config)
        cls._initialized = True

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized

    @staticmethod
    def get_logger(name: str) -> CorrelationAdapter:
        """Get a correlation-aware logger for a module."""
        return CorrelationAdapter(logging.getLogger(name), {})
