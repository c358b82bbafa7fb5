"""Observability setup for s3-tools.

Logs are JSON lines from structlog and traces are OpenTelemetry spans.
Both are written to stderr, leaving stdout free for object bytes, listings
and NDJSON records.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from .config import settings

PACKAGE_LOGGER = "s3_tools"

_handler: Optional[logging.Handler] = None


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level


def setup_tracing() -> None:
    """Install a console span exporter when tracing is enabled."""
    if not settings.otel_enabled:
        return

    provider = TracerProvider(
        resource=Resource.create({"service.name": settings.otel_service_name})
    )
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))
    trace.set_tracer_provider(provider)


def setup_logging(level: Optional[str] = None) -> None:
    """Route the package's structlog output to stderr as JSON lines.

    Only the ``s3_tools`` logger hierarchy is configured; the root logger
    and the loggers of boto3/botocore are left to the host application.
    """
    global _handler

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(logging.Formatter("%(message)s"))
        package_logger.addHandler(_handler)
        package_logger.propagate = False
    package_logger.setLevel(_level(level or settings.log_level))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def set_log_level(level: str) -> None:
    """Change the package log level after setup, e.g. for ``--verbose``."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(_level(level))


def get_logger(name: str) -> Any:
    """Get a logger instance."""
    return structlog.get_logger(name)


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


setup_logging()
setup_tracing()
