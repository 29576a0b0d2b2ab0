"""
Process bootstrap for webhook servers.

Wires settings, logging, tracing and metrics around a set of webhooks:

    from kubewebhook.app import main

    main({"/mutate-pods": pod_mutating_webhook, "/validate": deploy_validator})
"""

import asyncio
import logging
import sys
from collections.abc import Mapping

from kubewebhook.http import HandlerConfig, WebhookServer, create_ssl_context, handler_for
from kubewebhook.observability.logging import WebhookLogger, setup_structured_logging
from kubewebhook.observability.metrics import MetricsServer, PrometheusRecorder
from kubewebhook.observability.tracing import (
    NOOP_TRACER,
    OtelTracer,
    Tracer,
    setup_tracing,
    shutdown_tracing,
)
from kubewebhook.settings import Settings
from kubewebhook.settings import settings as default_settings
from kubewebhook.webhook import (
    NOOP_METRICS_RECORDER,
    MeasuredWebhook,
    MetricsRecorder,
    TracedWebhook,
    Webhook,
)

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure structured logging based on settings."""
    setup_structured_logging(
        log_level=settings.log_level.upper(),
        enable_json_formatting=settings.json_logs,
        correlation_id_enabled=settings.correlation_ids,
        log_health_probes=settings.log_health_probes,
    )


def build_server(
    webhooks: Mapping[str, Webhook],
    settings: Settings | None = None,
    *,
    recorder: MetricsRecorder | None = None,
    tracer: Tracer | None = None,
    webhook_logger: WebhookLogger | None = None,
) -> WebhookServer:
    """
    Build the webhook server for a set of webhooks.

    Every webhook is decorated with tracing and metrics and mounted on its
    path.

    Args:
        webhooks: HTTP path -> webhook
        settings: Settings, the process settings when missing
        recorder: Metrics recorder; a PrometheusRecorder on the default
            registry when metrics are enabled and none is given
        tracer: Tracer, no-op when missing
        webhook_logger: Logger used by the HTTP handlers

    Returns:
        WebhookServer ready to be started
    """
    settings = settings or default_settings
    tracer = tracer if tracer is not None else NOOP_TRACER
    if recorder is None:
        recorder = PrometheusRecorder() if settings.metrics_enabled else NOOP_METRICS_RECORDER
    webhook_logger = webhook_logger or WebhookLogger("kubewebhook.http")

    handlers = {}
    for path, webhook in webhooks.items():
        instrumented = TracedWebhook(tracer, MeasuredWebhook(recorder, webhook))
        handlers[path] = handler_for(
            HandlerConfig(
                webhook=instrumented,
                logger=webhook_logger,
                tracer=tracer,
                timeout_seconds=settings.review_timeout_seconds,
            )
        )
        logger.info(
            f"Webhook {webhook.id} ({webhook.kind.value}) registered on {path}"
        )

    ssl_context = None
    if settings.tls_enabled:
        ssl_context = create_ssl_context(settings.tls_cert_file, settings.tls_key_file)
    else:
        logger.warning("TLS certificate not configured, serving plain HTTP")

    return WebhookServer(
        handlers,
        port=settings.webhook_port,
        host=settings.webhook_host,
        ssl_context=ssl_context,
    )


async def run(webhooks: Mapping[str, Webhook], settings: Settings | None = None) -> None:
    """Run the webhook server (and metrics server) until cancelled."""
    settings = settings or default_settings

    provider = setup_tracing(
        enabled=settings.tracing_enabled,
        endpoint=settings.tracing_endpoint,
        service_name=settings.tracing_service_name,
        sample_rate=settings.tracing_sample_rate,
        insecure=settings.tracing_insecure,
    )
    tracer: Tracer = OtelTracer(provider) if provider is not None else NOOP_TRACER

    server = build_server(webhooks, settings, tracer=tracer)
    metrics_server = None
    if settings.metrics_enabled:
        metrics_server = MetricsServer(
            port=settings.metrics_port, host=settings.metrics_host
        )

    try:
        if metrics_server is not None:
            await metrics_server.start()
        await server.start()
        await asyncio.Event().wait()
    finally:
        await server.stop()
        if metrics_server is not None:
            await metrics_server.stop()
        shutdown_tracing()


def main(webhooks: Mapping[str, Webhook], settings: Settings | None = None) -> None:
    """Blocking entry point for webhook server processes."""
    settings = settings or default_settings
    configure_logging(settings)

    try:
        asyncio.run(run(webhooks, settings))
    except KeyboardInterrupt:
        logging.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Webhook server failed with error: {e}")
        sys.exit(1)
