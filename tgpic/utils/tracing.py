"""Logging helpers shared by the server and the client.

Every module asks for a named logger through :func:`get_logger` and passes
structured context with ``extra={...}``. :func:`trace` wraps request handlers
so entry, exit and failures show up at debug/error level without each handler
repeating the boilerplate.
"""

import asyncio
import functools
import logging
import os
from typing import Any, Callable, Optional

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root handler once per process."""
    global _configured
    if _configured:
        return
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=_DEFAULT_FORMAT)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"tgpic.{name}")


def trace(name: Optional[str] = None) -> Callable:
    """Log entry/exit of the decorated function; works for sync and async callables."""

    def decorator(func: Callable) -> Callable:
        logger = get_logger(name or func.__module__.rsplit(".", 1)[-1])
        label = func.__qualname__

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                logger.debug("enter %s", label)
                try:
                    result = await func(*args, **kwargs)
                except Exception:
                    logger.debug("error in %s", label, exc_info=True)
                    raise
                logger.debug("exit %s", label)
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            logger.debug("enter %s", label)
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.debug("error in %s", label, exc_info=True)
                raise
            logger.debug("exit %s", label)
            return result

        return wrapper

    return decorator
