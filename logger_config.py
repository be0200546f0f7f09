"""Centralized logging configuration."""

from functools import wraps
from inspect import iscoroutinefunction
import sys
from typing import Any

from loguru import logger as loguru_logger
from pydantic import BaseModel


DESTINATION = "destination"
SENSITIVE_KEYWORDS = ("password", "secret", "token", "authorization")

log_format = " | ".join(
    (
        "<lk>{time:YYYY-MM-DD HH:mm:ss.SSS}</>",
        "<lvl>{level:<8}</>",
        f"<c>{{file}}::{{function}}:{{line}}</>=><y>{{extra[{DESTINATION}]}}</>",
        "{message}",
    )
)

custom_logger = loguru_logger.bind(**{DESTINATION: ""})


def setup_logging(level: str = "INFO", log_dir: str = "") -> None:
    # Remove default handler to avoid duplicate output and use custom format
    loguru_logger.remove()
    custom_logger.add(sys.stdout, format=log_format, level=level)
    if log_dir:
        custom_logger.add(
            f"{log_dir}/{{time:YYYY-MM-DD}}.log",
            format=log_format,
            level=level,
            rotation="1 day",
            retention="30 days",
            compression="zip",
            enqueue=True,
        )


def mask_sensitive(data: Any) -> Any:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    if isinstance(data, dict):
        return {
            key: "***"
            if isinstance(key, str) and any(word in key.lower() for word in SENSITIVE_KEYWORDS)
            else mask_sensitive(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return type(data)(mask_sensitive(item) for item in data)
    return data


class Logger:
    base = custom_logger

    @staticmethod
    def io(func):
        """Log arguments and return value at DEBUG, errors at ERROR, then re-raise."""
        destination = f"{func.__module__}.{func.__qualname__}"
        log = custom_logger.bind(**{DESTINATION: destination})

        if iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                log.opt(depth=1).debug(f"args: {mask_sensitive(args)}, kwargs: {mask_sensitive(kwargs)}")
                try:
                    return_value = await func(*args, **kwargs)
                except Exception as e:
                    log.opt(depth=1).error(f"Error: {e!r}")
                    raise
                log.opt(depth=1).debug(f"return: {mask_sensitive(return_value)}")
                return return_value

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            log.opt(depth=1).debug(f"args: {mask_sensitive(args)}, kwargs: {mask_sensitive(kwargs)}")
            try:
                return_value = func(*args, **kwargs)
            except Exception as e:
                log.opt(depth=1).error(f"Error: {e!r}")
                raise
            log.opt(depth=1).debug(f"return: {mask_sensitive(return_value)}")
            return return_value

        return sync_wrapper
