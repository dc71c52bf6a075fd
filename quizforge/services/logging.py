"""
Structured logging configuration
"""
import functools
import inspect
import logging
import sys
from datetime import datetime

import structlog

from quizforge.config import LOG_LEVEL


def configure_logging(level: str = LOG_LEVEL):
    """Configure structured logging"""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    # redis-py is chatty about reconnects
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("reportlab").setLevel(logging.WARNING)


def get_logger(name: str = None):
    """Get a structured logger"""
    return structlog.get_logger(name)


def _log_outcome(func_name: str, start_time: datetime, error: Exception = None):
    logger = get_logger("performance")
    duration = (datetime.now() - start_time).total_seconds()
    if error is None:
        logger.info(
            "function_completed",
            function=func_name,
            duration_seconds=duration,
            status="success"
        )
    else:
        logger.error(
            "function_failed",
            function=func_name,
            duration_seconds=duration,
            error=str(error),
            status="error"
        )


def log_performance(func_name: str):
    """Decorator to log function performance, for plain and async functions"""
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = datetime.now()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _log_outcome(func_name, start_time, e)
                    raise
                _log_outcome(func_name, start_time)
                return result
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = datetime.now()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_outcome(func_name, start_time, e)
                raise
            _log_outcome(func_name, start_time)
            return result
        return wrapper
    return decorator
