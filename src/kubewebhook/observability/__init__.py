"""
Observability for kubewebhook.

This module provides structured logging, OpenTelemetry tracing and
Prometheus metrics for the webhook server.
"""

from .logging import NOOP_LOGGER, WebhookLogger, setup_structured_logging
from .metrics import MetricsServer, PrometheusRecorder
from .tracing import NOOP_TRACER, OtelTracer, Tracer, setup_tracing, shutdown_tracing

__all__ = [
    "MetricsServer",
    "NOOP_LOGGER",
    "NOOP_TRACER",
    "OtelTracer",
    "PrometheusRecorder",
    "Tracer",
    "WebhookLogger",
    "setup_structured_logging",
    "setup_tracing",
    "shutdown_tracing",
]
