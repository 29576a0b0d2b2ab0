"""
Unit tests for the metrics and tracing webhook decorators.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from kubewebhook.context import ReviewContext
from kubewebhook.errors import ChainError
from kubewebhook.model import (
    MutatingAdmissionResponse,
    Operation,
    ValidatingAdmissionResponse,
    WebhookKind,
)
from kubewebhook.observability.tracing import OtelTracer
from kubewebhook.webhook import (
    MeasuredWebhook,
    MeasureMutatingOpData,
    MeasureValidatingOpData,
    TracedWebhook,
    Webhook,
)
from tests.fixtures.admission import POD, make_review


def fake_webhook(kind: WebhookKind, response=None, side_effect=None) -> Webhook:
    webhook = MagicMock(spec=Webhook)
    webhook.id = "wh"
    webhook.kind = kind
    webhook.review = AsyncMock(return_value=response, side_effect=side_effect)
    return webhook


@pytest.fixture
def ctx():
    return ReviewContext.background()


@pytest.fixture
def review():
    return make_review(obj=POD, operation=Operation.UPDATE, old_obj=POD, dry_run=True)


class TestMeasuredWebhook:
    @pytest.mark.asyncio
    async def test_validating_review_is_measured(self, ctx, review):
        recorder = MagicMock()
        response = ValidatingAdmissionResponse(
            id="test-uid", allowed=False, message="no", warnings=["w"]
        )
        wh = MeasuredWebhook(recorder, fake_webhook(WebhookKind.VALIDATING, response))

        assert await wh.review(ctx, review) is response

        recorder.measure_validating_webhook_review_op.assert_called_once()
        recorder.measure_mutating_webhook_review_op.assert_not_called()
        data = recorder.measure_validating_webhook_review_op.call_args.args[1]
        assert isinstance(data, MeasureValidatingOpData)
        assert data.webhook_id == "wh"
        assert data.webhook_type == "validating"
        assert data.admission_review_version == "v1"
        assert data.success is True
        assert data.allowed is False
        assert data.resource_name == "test-pod"
        assert data.resource_namespace == "default"
        assert data.operation == "update"
        assert data.resource_kind == "v1/Pod"
        assert data.dry_run is True
        assert data.warnings_number == 1
        assert data.duration >= 0

    @pytest.mark.asyncio
    async def test_mutating_review_is_measured(self, ctx, review):
        recorder = MagicMock()
        response = MutatingAdmissionResponse(
            id="test-uid", json_patch=b'[{"op":"remove","path":"/a"}]'
        )
        wh = MeasuredWebhook(recorder, fake_webhook(WebhookKind.MUTATING, response))

        await wh.review(ctx, review)

        data = recorder.measure_mutating_webhook_review_op.call_args.args[1]
        assert isinstance(data, MeasureMutatingOpData)
        assert data.webhook_type == "mutating"
        assert data.mutated is True
        assert data.warnings_number == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kind,method,other",
        [
            (
                WebhookKind.MUTATING,
                "measure_mutating_webhook_review_op",
                "measure_validating_webhook_review_op",
            ),
            (
                WebhookKind.VALIDATING,
                "measure_validating_webhook_review_op",
                "measure_mutating_webhook_review_op",
            ),
        ],
    )
    async def test_failed_review_is_measured(self, ctx, review, kind, method, other):
        recorder = MagicMock()
        wh = MeasuredWebhook(
            recorder, fake_webhook(kind, side_effect=ChainError("broken"))
        )

        with pytest.raises(ChainError):
            await wh.review(ctx, review)

        getattr(recorder, other).assert_not_called()
        data = getattr(recorder, method).call_args.args[1]
        assert data.success is False
        assert data.webhook_type == kind.value
        assert data.warnings_number == 0

    @pytest.mark.asyncio
    async def test_missing_recorder_is_noop(self, ctx, review):
        response = ValidatingAdmissionResponse(id="test-uid", allowed=True)
        wh = MeasuredWebhook(None, fake_webhook(WebhookKind.VALIDATING, response))

        assert await wh.review(ctx, review) is response
        assert wh.id == "wh"
        assert wh.kind is WebhookKind.VALIDATING


class TestTracedWebhook:
    @pytest.fixture
    def exporter(self):
        return InMemorySpanExporter()

    @pytest.fixture
    def tracer(self, exporter):
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        return OtelTracer(provider)

    @pytest.mark.asyncio
    async def test_review_span(self, ctx, review, tracer, exporter):
        response = ValidatingAdmissionResponse(
            id="test-uid", allowed=True, warnings=["a", "b"]
        )
        wh = TracedWebhook(tracer, fake_webhook(WebhookKind.VALIDATING, response))

        assert await wh.review(ctx, review) is response

        spans = exporter.get_finished_spans()
        assert len(spans) == 1
        span = spans[0]
        assert span.name == "webhook.Review/wh"
        assert span.status.status_code == StatusCode.OK
        attributes = span.attributes
        assert attributes["webhook_id"] == "wh"
        assert attributes["admission_review_id"] == "test-uid"
        assert attributes["admission_review_user_username"] == "kubernetes-admin"
        assert tuple(attributes["admission_review_user_groups"]) == ("system:masters",)
        assert attributes["operation"] == "update"
        assert attributes["resource_kind"] == "v1/Pod"
        assert attributes["dry_run"] is True
        assert attributes["webhook_type"] == "validating"
        assert attributes["allowed"] is True
        assert attributes["has_warnings"] is True
        assert tuple(attributes["warnings"]) == ("a", "b")

    @pytest.mark.asyncio
    async def test_review_span_is_passed_to_inner(self, ctx, review, tracer, exporter):
        inner = fake_webhook(
            WebhookKind.MUTATING, MutatingAdmissionResponse(id="test-uid")
        )
        wh = TracedWebhook(tracer, inner)

        await wh.review(ctx, review)

        inner_ctx = inner.review.await_args.args[0]
        span = exporter.get_finished_spans()[0]
        assert inner_ctx.span.get_span_context().span_id == span.context.span_id
        assert span.attributes["mutated"] is False

    @pytest.mark.asyncio
    async def test_failed_review_ends_span_with_error(
        self, ctx, review, tracer, exporter
    ):
        wh = TracedWebhook(
            tracer,
            fake_webhook(WebhookKind.VALIDATING, side_effect=ChainError("broken")),
        )

        with pytest.raises(ChainError):
            await wh.review(ctx, review)

        spans = exporter.get_finished_spans()
        assert len(spans) == 1
        assert spans[0].status.status_code == StatusCode.ERROR
        assert "webhook_type" not in spans[0].attributes

    @pytest.mark.asyncio
    async def test_noop_tracer(self, ctx, review):
        response = ValidatingAdmissionResponse(id="test-uid", allowed=True)
        wh = TracedWebhook(None, fake_webhook(WebhookKind.VALIDATING, response))

        assert await wh.review(ctx, review) is response
