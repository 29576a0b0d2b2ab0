"""
Metrics instrumentation for webhooks.

MeasuredWebhook wraps any Webhook and reports every review to a
MetricsRecorder, failed reviews included.
"""

import time
from dataclasses import dataclass
from typing import Protocol

from kubewebhook.context import ReviewContext
from kubewebhook.model import (
    AdmissionResponse,
    AdmissionReview,
    MutatingAdmissionResponse,
    ValidatingAdmissionResponse,
    WebhookKind,
)

from .base import Webhook


@dataclass(frozen=True)
class MeasureOpCommonData:
    webhook_id: str
    webhook_type: str
    admission_review_version: str
    duration: float
    success: bool
    resource_name: str
    resource_namespace: str
    operation: str
    resource_kind: str
    dry_run: bool
    warnings_number: int


@dataclass(frozen=True)
class MeasureValidatingOpData(MeasureOpCommonData):
    allowed: bool = False


@dataclass(frozen=True)
class MeasureMutatingOpData(MeasureOpCommonData):
    mutated: bool = False


class MetricsRecorder(Protocol):
    """
    Metrics sink for webhook reviews.

    Implementations are called concurrently and must never raise.
    """

    def measure_validating_webhook_review_op(
        self, ctx: ReviewContext, data: MeasureValidatingOpData
    ) -> None: ...

    def measure_mutating_webhook_review_op(
        self, ctx: ReviewContext, data: MeasureMutatingOpData
    ) -> None: ...


class NoopMetricsRecorder:
    def measure_validating_webhook_review_op(
        self, ctx: ReviewContext, data: MeasureValidatingOpData
    ) -> None:
        pass

    def measure_mutating_webhook_review_op(
        self, ctx: ReviewContext, data: MeasureMutatingOpData
    ) -> None:
        pass


NOOP_METRICS_RECORDER = NoopMetricsRecorder()


class MeasuredWebhook(Webhook):
    """Webhook decorator recording review duration, outcome and warnings."""

    def __init__(self, recorder: MetricsRecorder | None, inner: Webhook):
        self.recorder = recorder if recorder is not None else NOOP_METRICS_RECORDER
        self.inner = inner

    @property
    def id(self) -> str:
        return self.inner.id

    @property
    def kind(self) -> WebhookKind:
        return self.inner.kind

    async def review(
        self, ctx: ReviewContext, review: AdmissionReview
    ) -> AdmissionResponse:
        start = time.perf_counter()
        response: AdmissionResponse | None = None
        try:
            response = await self.inner.review(ctx, review)
            return response
        finally:
            self._measure(ctx, review, response, time.perf_counter() - start)

    def _measure(
        self,
        ctx: ReviewContext,
        review: AdmissionReview,
        response: AdmissionResponse | None,
        duration: float,
    ) -> None:
        common = {
            "webhook_id": self.inner.id,
            "admission_review_version": review.version.value,
            "duration": duration,
            "success": response is not None,
            "resource_name": review.name,
            "resource_namespace": review.namespace,
            "operation": review.operation.value,
            "resource_kind": str(review.request_gvk),
            "dry_run": review.dry_run,
            "warnings_number": len(response.warnings) if response is not None else 0,
        }

        match response:
            case ValidatingAdmissionResponse():
                self.recorder.measure_validating_webhook_review_op(
                    ctx,
                    MeasureValidatingOpData(
                        webhook_type=WebhookKind.VALIDATING.value,
                        allowed=response.allowed,
                        **common,
                    ),
                )
            case MutatingAdmissionResponse():
                self.recorder.measure_mutating_webhook_review_op(
                    ctx,
                    MeasureMutatingOpData(
                        webhook_type=WebhookKind.MUTATING.value,
                        mutated=response.mutated,
                        **common,
                    ),
                )
            case None if self.inner.kind is WebhookKind.MUTATING:
                self.recorder.measure_mutating_webhook_review_op(
                    ctx,
                    MeasureMutatingOpData(
                        webhook_type=WebhookKind.MUTATING.value, **common
                    ),
                )
            case None:
                self.recorder.measure_validating_webhook_review_op(
                    ctx,
                    MeasureValidatingOpData(
                        webhook_type=WebhookKind.VALIDATING.value, **common
                    ),
                )
