"""Structured logging configuration with structlog.

Provides JSON-formatted logging with request ID propagation, timing of
load operations and HTTP requests, and a thread-safe in-memory counter
store used for permission check diagnostics.
"""

from __future__ import annotations

import contextvars
import logging
import sys
import threading
import time
from functools import wraps
from typing import Any, Callable, Optional, TypeVar
from uuid import uuid4

import structlog
from structlog.types import Processor

from app.config import get_settings

# Context variable for request ID propagation
request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)


def get_request_id() -> Optional[str]:
    """Get current request ID from context."""
    return request_id_var.get()


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context, generating one if not provided."""
    if request_id is None:
        request_id = str(uuid4())
    request_id_var.set(request_id)
    return request_id


def add_request_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add request ID to log event."""
    request_id = get_request_id()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_app_context(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add application context to log event."""
    # Settings are read per event so tests can swap them through the cache
    settings = get_settings()
    event_dict["app"] = settings.app_name
    event_dict["env"] = settings.app_env
    return event_dict


def setup_logging() -> None:
    """Configure structured logging for the application."""
    settings = get_settings()

    # Determine if we should use JSON or console output
    use_json = settings.app_env != "development" or not sys.stdout.isatty()

    # Configure processors
    shared_processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_request_id,
        add_app_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if use_json:
        # JSON output for production
        shared_processors.append(
            structlog.processors.format_exc_info,
        )
        renderer = structlog.processors.JSONRenderer()
    else:
        # Pretty console output for development
        shared_processors.append(
            structlog.dev.set_exc_info,
        )
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))

    # Suppress noisy loggers; LoggingMiddleware already logs every request
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger by name."""
    return structlog.get_logger(name)


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., Any])


def log_execution_time(operation: str) -> Callable[[F], F]:
    """Decorator to log and record function execution time.

    Successful calls are recorded in ``metrics`` under ``operation``;
    failures are logged as ``<operation>_failed`` and re-raised untimed.
    Only synchronous callables are supported since region and distributor
    loading happen on plain file reads.

    Args:
        operation: Name of the operation being timed

    Usage:
        @log_execution_time("region_catalog_load")
        def load(path):
            ...
    """

    def decorator(func: F) -> F:
        logger = get_logger(func.__module__)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    f"{operation}_failed",
                    operation=operation,
                    duration_ms=round(elapsed_ms, 2),
                    error=str(e),
                )
                raise
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            metrics.record_timing(operation, elapsed_ms)
            logger.info(
                f"{operation}_completed",
                operation=operation,
                duration_ms=round(elapsed_ms, 2),
            )
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


def _timing_stats(values: list[float]) -> Optional[dict[str, float]]:
    if not values:
        return None
    return {
        "count": len(values),
        "min_ms": round(min(values), 2),
        "max_ms": round(max(values), 2),
        "avg_ms": round(sum(values) / len(values), 2),
    }


# Metrics tracking (in-memory; counters reset on restart)
class MetricsTracker:
    """In-memory counters and timing windows shared across request threads.

    Permission checks run in FastAPI's threadpool, so every read and write
    goes through one lock. Reads copy under the lock and summarize outside
    it.
    """

    def __init__(self, max_timings: int = 1000):
        """Initialize metrics storage.

        Args:
            max_timings: Number of most recent samples kept per timing metric
        """
        self._counters: dict[str, int] = {}
        self._timings: dict[str, list[float]] = {}
        self._max_timings = max_timings
        self._lock = threading.Lock()

    def increment(self, metric: str, value: int = 1) -> None:
        """Increment a counter metric."""
        with self._lock:
            self._counters[metric] = self._counters.get(metric, 0) + value

    def record_timing(self, metric: str, value_ms: float) -> None:
        """Record a timing metric in milliseconds."""
        with self._lock:
            values = self._timings.setdefault(metric, [])
            values.append(value_ms)
            # Keep only the most recent window
            if len(values) > self._max_timings:
                del values[: len(values) - self._max_timings]

    def get_counter(self, metric: str) -> int:
        """Get counter value."""
        with self._lock:
            return self._counters.get(metric, 0)

    def get_timing_stats(self, metric: str) -> Optional[dict[str, float]]:
        """Get timing statistics."""
        with self._lock:
            values = list(self._timings.get(metric, ()))
        return _timing_stats(values)

    def get_all_metrics(self) -> dict[str, Any]:
        """Get all metrics."""
        with self._lock:
            counters = dict(self._counters)
            timings = {metric: list(values) for metric, values in self._timings.items()}
        return {
            "counters": counters,
            "timings": {metric: _timing_stats(values) for metric, values in timings.items()},
        }


# Global metrics instance
metrics = MetricsTracker()


class LoggingMiddleware:
    """ASGI middleware for request logging and timing.

    Besides the ``http_request`` event, every response is counted under
    ``http.status.<code>`` and timed under ``http.request`` so ``/metrics``
    reports traffic next to the permission check counters.
    """

    def __init__(self, app, tracker: Optional[MetricsTracker] = None):
        """Initialize middleware.

        Args:
            app: ASGI application
            tracker: Metrics store, defaults to the module-level ``metrics``
        """
        self.app = app
        self.logger = get_logger("http")
        self.tracker = tracker if tracker is not None else metrics

    async def __call__(self, scope, receive, send):
        """Process request and log metrics."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Extract request info
        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "/")
        query_string = scope.get("query_string", b"").decode()

        # Set request ID from header or generate new one
        headers = dict(scope.get("headers", []))
        request_id = headers.get(b"x-request-id", b"").decode() or None
        request_id = set_request_id(request_id)

        # Start timing
        start_time = time.perf_counter()

        # Track response status
        status_code = 500

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                # Add request ID to response headers
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            self.tracker.increment(f"http.status.{status_code}")
            self.tracker.record_timing("http.request", elapsed_ms)

            # Log request
            self.logger.info(
                "http_request",
                method=method,
                path=path,
                query=query_string if query_string else None,
                status=status_code,
                duration_ms=round(elapsed_ms, 2),
            )
