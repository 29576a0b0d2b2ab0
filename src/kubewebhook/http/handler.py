"""
HTTP gateway for admission webhooks.

handler_for() builds an aiohttp request handler that:
- reads the request body (capped at MAX_REQUEST_BODY_BYTES)
- decodes the AdmissionReview of either wire generation
- runs the webhook with a request-scoped ReviewContext
- answers with an AdmissionReview of the request's generation

Response table:

| Case                   | HTTP | status.code | status.status | status.message |
|------------------------|------|-------------|---------------|----------------|
| Validating allowed     | 200  | -           | -             | -              |
| Validating not allowed | 200  | 400         | Failure       | Custom message |
| Mutating               | 200  | -           | -             | -              |
| Error                  | 500  | -           | Failure       | Error string   |

Requests that can't be decoded never reach the webhook and are answered
with plain text 400/413 responses.
"""

import base64
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeAlias

from aiohttp import web

from kubewebhook.constants import (
    CONTENT_TYPE_JSON,
    HTTP_HANDLER_TRACE_NAME,
    MAX_REQUEST_BODY_BYTES,
    PATCH_TYPE_JSON_PATCH,
    REQUEST_BODY_CHUNK_BYTES,
    STATUS_CODE_DENIED,
    STATUS_FAILURE,
)
from kubewebhook.context import ReviewContext
from kubewebhook.errors import (
    ConfigurationError,
    RequestDecodeError,
    RequestTooLargeError,
    ResponseEncodeError,
    TransportError,
)
from kubewebhook.model import (
    AdmissionResponse,
    AdmissionReview,
    AdmissionReviewVersion,
    MutatingAdmissionResponse,
    ValidatingAdmissionResponse,
)
from kubewebhook.model.wire import (
    AdmissionReviewV1,
    AdmissionReviewV1Beta1,
    WireAdmissionResponseV1,
    WireAdmissionResponseV1Beta1,
    WireStatus,
    decode_admission_review,
)
from kubewebhook.observability.logging import (
    NOOP_LOGGER,
    WebhookLogger,
    set_correlation_id,
)
from kubewebhook.observability.tracing import NOOP_TRACER, Tracer
from kubewebhook.webhook import Webhook

RequestHandler: TypeAlias = Callable[[web.Request], Awaitable[web.StreamResponse]]


@dataclass
class HandlerConfig:
    """
    HTTP handler configuration.

    Attributes:
        webhook: Webhook serving the admission reviews
        logger: Logger, no-op when missing
        tracer: Tracer, no-op when missing
        timeout_seconds: Deadline of every review, none when missing
    """

    webhook: Webhook | None
    logger: WebhookLogger | None = None
    tracer: Tracer | None = None
    timeout_seconds: float | None = None

    def validate(self) -> None:
        errors = []
        if self.webhook is None:
            errors.append("webhook is required")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            errors.append("timeout must be positive")
        if errors:
            raise ConfigurationError("handler invalid configuration", errors)


async def read_body(request: web.Request, limit: int = MAX_REQUEST_BODY_BYTES) -> bytes:
    """
    Read the request body, refusing bodies bigger than limit.

    Raises:
        RequestTooLargeError: If the body exceeds limit
    """
    body = bytearray()
    async for chunk in request.content.iter_chunked(REQUEST_BODY_CHUNK_BYTES):
        body.extend(chunk)
        if len(body) > limit:
            raise RequestTooLargeError(limit)
    return bytes(body)


def _validating_wire_response(
    response: ValidatingAdmissionResponse,
) -> dict:
    fields: dict = {"uid": response.id, "allowed": response.allowed}
    if not response.allowed:
        fields["status"] = WireStatus(
            status=STATUS_FAILURE,
            message=response.message,
            code=STATUS_CODE_DENIED,
        )
    return fields


def _mutating_wire_response(response: MutatingAdmissionResponse) -> dict:
    # Mutating webhooks never deny.
    fields: dict = {"uid": response.id, "allowed": True}
    if response.mutated:
        fields["patch"] = base64.b64encode(response.json_patch).decode("ascii")
        fields["patch_type"] = PATCH_TYPE_JSON_PATCH
    return fields


class AdmissionHandler:
    """aiohttp handler serving a single webhook."""

    def __init__(self, config: HandlerConfig):
        config.validate()
        self.webhook: Webhook = config.webhook
        self.logger = config.logger if config.logger is not None else NOOP_LOGGER
        self.tracer = config.tracer if config.tracer is not None else NOOP_TRACER
        self.timeout_seconds = config.timeout_seconds

    async def __call__(self, request: web.Request) -> web.StreamResponse:
        start = time.perf_counter()

        try:
            body = await read_body(request)
        except TransportError as e:
            self.logger.error(str(e))
            return web.Response(text=str(e), status=e.status_code)

        if not body:
            self.logger.error("no body found")
            return web.Response(text="no body found", status=400)

        try:
            review = decode_admission_review(body)
        except RequestDecodeError as e:
            self.logger.error(f"could not parse body to model review: {e}")
            return web.Response(text=str(e), status=e.status_code)

        set_correlation_id(review.id)
        ctx = self._new_context(request, review)
        logger = self.logger.with_ctx_values(ctx)

        try:
            response = await self.webhook.review(ctx, review)
        except Exception as e:
            logger.error(f"Admission review error: {e}")
            return self._error_response(review, e)

        try:
            data = self.encode_response(ctx, review, response)
        except ResponseEncodeError as e:
            logger.error(f"Could not map model response to JSON: {e}")
            return self._error_response(review, e)

        logger.with_values(duration=time.perf_counter() - start).info(
            "Admission review request handled"
        )
        return web.Response(body=data, content_type=CONTENT_TYPE_JSON)

    def _new_context(
        self, request: web.Request, review: AdmissionReview
    ) -> ReviewContext:
        ctx = ReviewContext.background().with_timeout(self.timeout_seconds)
        ctx = ctx.with_disconnect_probe(
            lambda: request.transport is None or request.transport.is_closing()
        )
        return ctx.with_log_values(
            **{
                "webhook-id": self.webhook.id,
                "webhook-kind": self.webhook.kind.value,
                "request-id": review.id,
                "op": review.operation.value,
                "wh-version": review.version.value,
                "dry-run": review.dry_run,
                "kind": str(review.request_gvk),
                "ns": review.namespace,
                "name": review.name,
                "path": request.path,
                "trace-id": self.tracer.trace_id(ctx),
            }
        )

    def encode_response(
        self,
        ctx: ReviewContext,
        review: AdmissionReview,
        response: AdmissionResponse,
    ) -> bytes:
        """
        Encode a webhook response as an AdmissionReview of the request's generation.

        Raises:
            ResponseEncodeError: If the response is not a known response type
        """
        match response:
            case ValidatingAdmissionResponse():
                fields = _validating_wire_response(response)
            case MutatingAdmissionResponse():
                fields = _mutating_wire_response(response)
            case _:
                raise ResponseEncodeError("invalid admission response type")

        if review.version is AdmissionReviewVersion.V1:
            if response.warnings:
                fields["warnings"] = list(response.warnings)
            wire = AdmissionReviewV1(response=WireAdmissionResponseV1(**fields))
        else:
            if response.warnings:
                self.logger.with_ctx_values(ctx).warning(
                    "warnings used in a 'v1beta1' webhook"
                )
            wire = AdmissionReviewV1Beta1(
                response=WireAdmissionResponseV1Beta1(**fields)
            )

        return wire.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")

    def _error_response(self, review: AdmissionReview, err: Exception) -> web.Response:
        fields = {
            "uid": review.id,
            "allowed": False,
            "status": WireStatus(status=STATUS_FAILURE, message=str(err)),
        }
        wire: AdmissionReviewV1 | AdmissionReviewV1Beta1
        if review.version is AdmissionReviewVersion.V1:
            wire = AdmissionReviewV1(response=WireAdmissionResponseV1(**fields))
        else:
            wire = AdmissionReviewV1Beta1(
                response=WireAdmissionResponseV1Beta1(**fields)
            )
        return web.Response(
            body=wire.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8"),
            status=500,
            content_type=CONTENT_TYPE_JSON,
        )


def handler_for(config: HandlerConfig) -> RequestHandler:
    """
    Build the aiohttp request handler serving a webhook.

    Args:
        config: Handler configuration

    Returns:
        Request handler, wrapped in the tracer's HTTP span

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    handler = AdmissionHandler(config)
    tracer = handler.tracer.with_values(
        {
            "webhook-id": handler.webhook.id,
            "webhook-kind": handler.webhook.kind.value,
        }
    )
    return tracer.trace_http_handler(HTTP_HANDLER_TRACE_NAME, handler)
