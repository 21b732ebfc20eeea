"""Logs each tool call under its own correlation id."""

import functools
import time
from typing import Any, Awaitable, Callable, Dict

from page_alerter.log_system.correlation import correlation_scope, generate_correlation_id
from page_alerter.log_system.unified_logger import UnifiedLogger


def tool_logger(func: Callable[..., Awaitable[Dict[str, Any]]]) -> Callable[..., Awaitable[Dict[str, Any]]]:
    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
        logger = UnifiedLogger.get_logger(func.__module__)
        arguments = {k: v for k, v in kwargs.items() if k != "ctx"}

        with correlation_scope(generate_correlation_id()):
            logger.info(f"{func.__name__} called: {arguments}")
            started = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - started) * 1000
                logger.info(f"{func.__name__} finished in {elapsed_ms:.1f} ms")

    return wrapper
