"""
Prometheus metrics for kubewebhook.

This module provides the Prometheus MetricsRecorder used by MeasuredWebhook
and an HTTP server exposing the registry for scraping.
"""

import logging
from collections.abc import Sequence

from aiohttp.web import (
    Application,
    AppRunner,
    Request,
    Response,
    TCPSite,
)
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from kubewebhook.constants import METRICS_PREFIX
from kubewebhook.context import ReviewContext
from kubewebhook.webhook.metrics import (
    MeasureOpCommonData,
    MeasureMutatingOpData,
    MeasureValidatingOpData,
)

logger = logging.getLogger(__name__)

_COMMON_LABELS = [
    "webhook_id",
    "webhook_version",
    "resource_namespace",
    "resource_kind",
    "operation",
    "dry_run",
    "success",
]


def _bool_label(value: bool) -> str:
    return "true" if value else "false"


class PrometheusRecorder:
    """
    MetricsRecorder backed by prometheus_client.

    Registers, on the given registry:
    - kubewebhook_validating_webhook_review_duration_seconds (histogram)
    - kubewebhook_mutating_webhook_review_duration_seconds (histogram)
    - kubewebhook_webhook_review_warnings_total (counter)
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        buckets: Sequence[float] | None = None,
    ):
        """
        Initialize Prometheus recorder.

        Args:
            registry: Registry the metrics are registered on, the default
                prometheus_client registry when missing
            buckets: Duration histogram buckets, prometheus_client defaults when missing
        """
        self.registry = registry if registry is not None else REGISTRY
        histogram_kwargs = {"buckets": list(buckets)} if buckets else {}

        self.validating_review_duration = Histogram(
            f"{METRICS_PREFIX}_validating_webhook_review_duration_seconds",
            "The duration of the admission review handled by a validating webhook",
            [*_COMMON_LABELS, "allowed"],
            registry=self.registry,
            **histogram_kwargs,
        )
        self.mutating_review_duration = Histogram(
            f"{METRICS_PREFIX}_mutating_webhook_review_duration_seconds",
            "The duration of the admission review handled by a mutating webhook",
            [*_COMMON_LABELS, "mutated"],
            registry=self.registry,
            **histogram_kwargs,
        )
        self.review_warnings = Counter(
            f"{METRICS_PREFIX}_webhook_review_warnings_total",
            "The total number warnings the webhooks are returning on the review process",
            ["webhook_id", "webhook_type", *_COMMON_LABELS[1:]],
            registry=self.registry,
        )

    def _common_labels(self, data: MeasureOpCommonData) -> dict[str, str]:
        return {
            "webhook_id": data.webhook_id,
            "webhook_version": data.admission_review_version,
            "resource_namespace": data.resource_namespace,
            "resource_kind": data.resource_kind,
            "operation": data.operation,
            "dry_run": _bool_label(data.dry_run),
            "success": _bool_label(data.success),
        }

    def _count_warnings(self, data: MeasureOpCommonData) -> None:
        if data.warnings_number <= 0:
            return
        self.review_warnings.labels(
            webhook_type=data.webhook_type, **self._common_labels(data)
        ).inc(data.warnings_number)

    def measure_validating_webhook_review_op(
        self, ctx: ReviewContext, data: MeasureValidatingOpData
    ) -> None:
        self.validating_review_duration.labels(
            allowed=_bool_label(data.allowed), **self._common_labels(data)
        ).observe(data.duration)
        self._count_warnings(data)

    def measure_mutating_webhook_review_op(
        self, ctx: ReviewContext, data: MeasureMutatingOpData
    ) -> None:
        self.mutating_review_duration.labels(
            mutated=_bool_label(data.mutated), **self._common_labels(data)
        ).observe(data.duration)
        self._count_warnings(data)


class MetricsServer:
    """HTTP server for exposing Prometheus metrics."""

    def __init__(
        self,
        port: int = 8081,
        host: str = "0.0.0.0",
        registry: CollectorRegistry | None = None,
    ):
        """
        Initialize metrics server.

        Args:
            port: Port to serve metrics on
            host: Host interface to bind to
            registry: Registry to expose, the default registry when missing
        """
        self.port = port
        self.host = host
        self.registry = registry if registry is not None else REGISTRY
        self.app = Application()
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get("/metrics", self._metrics_handler)
        self.app.router.add_get("/healthz", self._healthz_handler)

    async def _metrics_handler(self, request: Request) -> Response:
        """Handle /metrics endpoint for Prometheus scraping."""
        try:
            metrics_data = generate_latest(self.registry)
            # aiohttp refuses a charset inside content_type
            return Response(
                body=metrics_data, headers={"Content-Type": CONTENT_TYPE_LATEST}
            )
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            return Response(
                text=f"Error generating metrics: {type(e).__name__}. Check logs for details.",
                status=500,
            )

    async def _healthz_handler(self, request: Request) -> Response:
        return Response(text="ok")

    async def start(self) -> None:
        """Start the metrics server."""
        try:
            self.runner = AppRunner(self.app)
            await self.runner.setup()

            self.site = TCPSite(self.runner, self.host, self.port)
            await self.site.start()

            logger.info(f"Metrics server started on {self.host}:{self.port}")
        except Exception as e:
            logger.error(f"Failed to start metrics server: {e}")
            raise

    async def stop(self) -> None:
        """Stop the metrics server."""
        try:
            if self.site:
                await self.site.stop()
                self.site = None

            if self.runner:
                await self.runner.cleanup()
                self.runner = None

            logger.info("Metrics server stopped")
        except Exception as e:
            logger.error(f"Error stopping metrics server: {e}")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
