"""Maps core errors to tool results.

A PageAlerterError becomes a ``success: False`` payload carrying its kind and
context fields. Anything else is logged and re-raised, so the MCP layer
reports it as a tool error.
"""

import functools
from typing import Any, Awaitable, Callable, Dict

from page_alerter.errors import PageAlerterError
from page_alerter.log_system.unified_logger import UnifiedLogger


def exception_handler(func: Callable[..., Awaitable[Dict[str, Any]]]) -> Callable[..., Awaitable[Dict[str, Any]]]:
    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
        logger = UnifiedLogger.get_logger(func.__module__)
        try:
            return await func(*args, **kwargs)
        except PageAlerterError as e:
            logger.warning(f"{func.__name__} failed: {e} ({e.kind.value})")
            return e.to_dict()
        except Exception:
            logger.exception(f"{func.__name__} raised an unexpected error")
            raise

    return wrapper
