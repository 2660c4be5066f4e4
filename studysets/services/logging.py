"""
Structured logging: structlog over stdlib logging, with a per-request context
(request id, path) merged into every event logged while the request is handled.
"""
import functools
import logging
import sys
import time
import uuid

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

from studysets import config

REQUEST_ID_HEADER = "X-Request-ID"

QUIET_LOGGERS = {
    "sqlalchemy": logging.WARNING,
    "openai": logging.WARNING,
    "httpx": logging.WARNING,
    "multipart": logging.WARNING,
}


def configure_logging(level: str = config.LOG_LEVEL, json_logs: bool = config.LOG_JSON):
    """Configure structured logging"""
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level, logging.INFO))
    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str = None):
    """Get a structured logger"""
    return structlog.get_logger(name)


def bind_request_context(request) -> str:
    """Start a fresh log context for this request; returns the request id echoed to the client."""
    clear_contextvars()
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)
    return request_id


def log_request(request, status_code: int, duration_seconds: float):
    logger = get_logger("api")
    event = "api_request_failed" if status_code >= 500 else "api_request_completed"
    log = logger.error if status_code >= 500 else logger.info
    log(
        event,
        status_code=status_code,
        duration_ms=round(duration_seconds * 1000, 1),
        client_ip=request.client.host if request.client else "unknown",
        user_agent=request.headers.get("user-agent", "unknown"),
    )


def log_performance(operation: str):
    """
    Decorator logging how long `operation` took. When the result carries a
    `state` (a generation outcome, for instance) it is added to the event.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger("performance")
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    "operation_failed",
                    operation=operation,
                    duration_ms=round((time.perf_counter() - started) * 1000, 1),
                    error=str(e),
                )
                raise
            state = getattr(result, "state", None)
            logger.info(
                "operation_completed",
                operation=operation,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                outcome=getattr(state, "value", state),
            )
            return result
        return wrapper
    return decorator
