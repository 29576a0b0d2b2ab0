"""
Admission webhooks: mutating and validating pipelines, chains and the
metrics/tracing decorators.
"""

from .base import Webhook
from .metrics import (
    NOOP_METRICS_RECORDER,
    MeasuredWebhook,
    MeasureMutatingOpData,
    MeasureOpCommonData,
    MeasureValidatingOpData,
    MetricsRecorder,
)
from .mutating import (
    MutatingWebhook,
    MutatingWebhookConfig,
    Mutator,
    MutatorChain,
    MutatorFunc,
    MutatorResult,
)
from .tracing import TracedWebhook
from .validating import (
    ValidatingWebhook,
    ValidatingWebhookConfig,
    Validator,
    ValidatorChain,
    ValidatorFunc,
    ValidatorResult,
)

__all__ = [
    "NOOP_METRICS_RECORDER",
    "MeasureMutatingOpData",
    "MeasureOpCommonData",
    "MeasureValidatingOpData",
    "MeasuredWebhook",
    "MetricsRecorder",
    "MutatingWebhook",
    "MutatingWebhookConfig",
    "Mutator",
    "MutatorChain",
    "MutatorFunc",
    "MutatorResult",
    "TracedWebhook",
    "ValidatingWebhook",
    "ValidatingWebhookConfig",
    "Validator",
    "ValidatorChain",
    "ValidatorFunc",
    "ValidatorResult",
    "Webhook",
]
