"""
structlog setup for the question service.

Everything is rendered as one JSON object per line on stdout. Service code
logs events by name (``generation_attempt``, ``patterns_stored``, ...) with
keyword context rather than formatted messages.
"""
import functools
import logging
import sys
import time

import structlog

from studybuddy import config

performance_logger = structlog.get_logger("performance")
api_logger = structlog.get_logger("api")

# The openai client logs every HTTP call at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def configure_logging(level: str = None):
    """Configure structured logging"""
    level_name = (level or config.LOG_LEVEL).upper()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
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
        level=getattr(logging, level_name, logging.INFO),
    )

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_performance(operation: str):
    """Log how long ``operation`` took, and whether it raised"""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                performance_logger.error(
                    "operation_failed",
                    operation=operation,
                    duration_seconds=round(time.perf_counter() - started, 3),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
            performance_logger.info(
                "operation_completed",
                operation=operation,
                duration_seconds=round(time.perf_counter() - started, 3),
            )
            return result
        return wrapper
    return decorator


def log_api_request(request, response=None, duration: float = None):
    """Log an incoming request, or its completion once ``response`` is known"""
    # path only; query strings can carry study material
    log_data = {
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else "unknown",
    }
    if response is None:
        api_logger.info("api_request_started", **log_data)
        return
    api_logger.info(
        "api_request_completed",
        status_code=response.status_code,
        duration_seconds=round(duration, 3) if duration is not None else None,
        **log_data,
    )
