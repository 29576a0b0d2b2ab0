"""Centralized webhook server settings using pydantic-settings.

This module provides a single source of truth for the webhook server
configuration loaded from environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kubewebhook.constants import DEFAULT_REVIEW_TIMEOUT_SECONDS


class Settings(BaseSettings):
    """Webhook server configuration loaded from environment variables.

    All settings have sensible defaults for running inside a cluster behind
    a webhook Service. Override via environment variables as documented per
    field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Add the admission request uid to every log line",
    )
    log_health_probes: bool = Field(
        default=False,
        validation_alias="LOG_HEALTH_PROBES",
        description="Log /healthz and /metrics requests",
    )

    # Webhook server
    webhook_host: str = Field(
        default="0.0.0.0",
        validation_alias="WEBHOOK_HOST",
        description="Host address to bind the webhook server",
    )
    webhook_port: int = Field(
        default=8443,
        validation_alias="WEBHOOK_PORT",
        description="Port for the admission webhook server",
    )
    tls_cert_file: str = Field(
        default="",
        validation_alias="TLS_CERT_FILE",
        description="TLS certificate file (empty = plain HTTP)",
    )
    tls_key_file: str = Field(
        default="",
        validation_alias="TLS_KEY_FILE",
        description="TLS private key file",
    )
    review_timeout_seconds: float = Field(
        default=DEFAULT_REVIEW_TIMEOUT_SECONDS,
        gt=0,
        validation_alias="REVIEW_TIMEOUT_SECONDS",
        description="Deadline of a single admission review",
    )

    # Metrics
    metrics_enabled: bool = Field(
        default=True,
        validation_alias="METRICS_ENABLED",
        description="Record Prometheus metrics for every review",
    )
    metrics_port: int = Field(
        default=8081,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )

    # Tracing
    tracing_enabled: bool = Field(
        default=False,
        validation_alias="OTEL_TRACING_ENABLED",
        description="Enable OpenTelemetry tracing",
    )
    tracing_endpoint: str = Field(
        default="http://localhost:4317",
        validation_alias="OTEL_EXPORTER_OTLP_ENDPOINT",
        description="OTLP collector endpoint (gRPC)",
    )
    tracing_service_name: str = Field(
        default="kubewebhook",
        validation_alias="OTEL_SERVICE_NAME",
        description="Service name reported in traces",
    )
    tracing_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        validation_alias="OTEL_TRACES_SAMPLER_ARG",
        description="Sampling rate for root spans (0.0-1.0)",
    )
    tracing_insecure: bool = Field(
        default=True,
        validation_alias="OTEL_EXPORTER_OTLP_INSECURE",
        description="Use an insecure connection to the collector",
    )

    @property
    def tls_enabled(self) -> bool:
        return bool(self.tls_cert_file and self.tls_key_file)


# Global settings instance - initialized once at module import
settings = Settings()
