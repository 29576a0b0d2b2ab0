"""
Structured logging utilities for kubewebhook.

This module provides correlation ID tracking (the admission request uid),
structured log formatting and the Logger collaborator used by webhooks,
chains and the HTTP gateway.
"""

import json
import logging
from collections.abc import Mapping
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from kubewebhook.context import ReviewContext

# Context variable for tracking the admission request being served
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Paths that should be filtered from access logs (health probes)
HEALTH_PROBE_PATHS = frozenset({"/healthz", "/health", "/ready", "/metrics"})

# Attribute of the log record carrying the structured key/values
VALUES_ATTR = "kv"


class HealthProbeFilter(logging.Filter):
    """
    Logging filter that suppresses health probe and metrics endpoint logs.

    These endpoints are hit frequently by Kubernetes probes and monitoring
    systems, generating excessive noise in logs during debugging.
    """

    def __init__(self, suppress_health_logs: bool = True):
        super().__init__()
        self.suppress_health_logs = suppress_health_logs

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.suppress_health_logs:
            return True

        message = record.getMessage()
        return all(path not in message for path in HEALTH_PROBE_PATHS)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds the current admission request uid to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get()
        return True


class StructuredFormatter(logging.Formatter):
    """
    Structured JSON formatter for logs with correlation ID support.

    The key/values attached through WebhookLogger are flattened into the
    top level of the JSON document.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the log record as structured JSON.

        Args:
            record: The log record to format

        Returns:
            JSON-formatted log message
        """
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        values = getattr(record, VALUES_ATTR, None)
        if values:
            for key, value in values.items():
                log_data.setdefault(key, value)

        return json.dumps(log_data, default=str)


class KeyValueFormatter(logging.Formatter):
    """Plain text formatter that appends the structured key/values as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        values = getattr(record, VALUES_ATTR, None)
        if not values:
            return line
        pairs = " ".join(f"{k}={v}" for k, v in values.items())
        return f"{line} [{pairs}]"


def set_correlation_id(corr_id: str) -> str:
    """
    Set the correlation ID for the current context.

    Args:
        corr_id: Correlation ID to set

    Returns:
        The correlation ID that was set
    """
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str:
    """Get the current correlation ID, or empty string if none set."""
    return correlation_id.get("")


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
    log_health_probes: bool = False,
) -> None:
    """
    Set up structured logging for the webhook server.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json_formatting: Whether to use JSON formatting
        correlation_id_enabled: Whether to enable correlation ID tracking
        log_health_probes: Whether to log health probe requests (default: False)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()

    formatter: logging.Formatter
    if enable_json_formatting:
        formatter = StructuredFormatter()
    elif correlation_id_enabled:
        formatter = KeyValueFormatter(
            "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = KeyValueFormatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)

    if correlation_id_enabled:
        handler.addFilter(CorrelationIDFilter())

    if not log_health_probes:
        handler.addFilter(HealthProbeFilter(suppress_health_logs=True))

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    logging.getLogger("kubernetes").setLevel(logging.WARNING)

    # Suppress aiohttp access logs which spam with probe requests
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.server").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.web").setLevel(logging.WARNING)


class WebhookLogger(logging.LoggerAdapter):
    """
    Logger collaborator for webhooks, chains and the HTTP gateway.

    Wraps a standard library logger and carries a set of structured
    key/values that are attached to every record it emits. Child loggers
    created with with_values() or with_ctx_values() inherit and extend them.
    """

    def __init__(
        self,
        logger: logging.Logger | str = "kubewebhook",
        values: Mapping[str, Any] | None = None,
    ):
        if isinstance(logger, str):
            logger = logging.getLogger(logger)
        super().__init__(logger, dict(values or {}))

    @property
    def values(self) -> dict[str, Any]:
        return dict(self.extra or {})

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(kwargs.get("extra") or {})
        values = dict(self.extra or {})
        values.update(extra.pop(VALUES_ATTR, {}))
        extra[VALUES_ATTR] = values
        kwargs["extra"] = extra
        return msg, kwargs

    def with_values(self, **values: Any) -> "WebhookLogger":
        """Child logger with extra key/values."""
        merged = self.values
        merged.update(values)
        return type(self)(self.logger, merged)

    def with_ctx_values(self, ctx: "ReviewContext | None") -> "WebhookLogger":
        """Child logger with the key/values accumulated in the review context."""
        if ctx is None or not ctx.log_values:
            return self
        return self.with_values(**ctx.log_values)


class NoopLogger(WebhookLogger):
    """Logger that discards everything."""

    def __init__(
        self,
        logger: logging.Logger | str = "kubewebhook.noop",
        values: Mapping[str, Any] | None = None,
    ):
        super().__init__(logger, values)

    def isEnabledFor(self, level: int) -> bool:
        return False

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        return None

    def with_values(self, **values: Any) -> "WebhookLogger":
        return self

    def with_ctx_values(self, ctx: "ReviewContext | None") -> "WebhookLogger":
        return self


NOOP_LOGGER = NoopLogger()
