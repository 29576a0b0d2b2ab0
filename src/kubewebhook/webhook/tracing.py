"""
Tracing instrumentation for webhooks.
"""

from kubewebhook.context import ReviewContext
from kubewebhook.model import (
    AdmissionResponse,
    AdmissionReview,
    MutatingAdmissionResponse,
    ValidatingAdmissionResponse,
    WebhookKind,
)
from kubewebhook.observability.tracing import NOOP_TRACER, Tracer

from .base import Webhook


class TracedWebhook(Webhook):
    """
    Webhook decorator opening one span per review.

    The span is named "webhook.Review/<webhook id>" and is ended exactly once,
    with the review error if there was one.
    """

    def __init__(self, tracer: Tracer | None, inner: Webhook):
        self.tracer = tracer if tracer is not None else NOOP_TRACER
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
        ctx = self.tracer.new_trace(ctx, f"webhook.Review/{self.inner.id}")
        self.tracer.add_trace_values(
            ctx,
            {
                "webhook_id": self.inner.id,
                "admission_review_version": review.version.value,
                "admission_review_user_uid": review.user_info.uid,
                "admission_review_user_username": review.user_info.username,
                "admission_review_user_groups": list(review.user_info.groups),
                "admission_review_id": review.id,
                "resource_name": review.name,
                "resource_namespace": review.namespace,
                "operation": review.operation.value,
                "resource_kind": str(review.request_gvk),
                "dry_run": review.dry_run,
            },
        )

        err: BaseException | None = None
        response: AdmissionResponse | None = None
        try:
            response = await self.inner.review(ctx, review)
            return response
        except BaseException as e:
            err = e
            raise
        finally:
            self._add_response_values(ctx, response)
            self.tracer.end_trace(ctx, err)

    def _add_response_values(
        self, ctx: ReviewContext, response: AdmissionResponse | None
    ) -> None:
        match response:
            case ValidatingAdmissionResponse():
                self.tracer.add_trace_values(
                    ctx,
                    {
                        "webhook_type": WebhookKind.VALIDATING.value,
                        "warnings": list(response.warnings),
                        "has_warnings": bool(response.warnings),
                        "allowed": response.allowed,
                    },
                )
            case MutatingAdmissionResponse():
                self.tracer.add_trace_values(
                    ctx,
                    {
                        "webhook_type": WebhookKind.MUTATING.value,
                        "warnings": list(response.warnings),
                        "has_warnings": bool(response.warnings),
                        "mutated": response.mutated,
                    },
                )
