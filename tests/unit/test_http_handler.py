"""
Unit tests for the admission HTTP handler.

Uses ``aiohttp.test_utils`` to drive handlers mounted on a bare aiohttp
application.
"""

import asyncio
import base64
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from kubewebhook.errors import ConfigurationError, RequestTooLargeError
from kubewebhook.http import HandlerConfig, handler_for, read_body
from kubewebhook.model import (
    MutatingAdmissionResponse,
    ValidatingAdmissionResponse,
    WebhookKind,
)
from kubewebhook.observability.logging import WebhookLogger
from kubewebhook.webhook import (
    ValidatingWebhook,
    ValidatingWebhookConfig,
    ValidatorChain,
    ValidatorFunc,
    ValidatorResult,
    Webhook,
)
from tests.fixtures.admission import DEPLOYMENT, POD, review_body


def fake_webhook(kind=WebhookKind.VALIDATING, response=None, side_effect=None):
    webhook = MagicMock(spec=Webhook)
    webhook.id = "wh"
    webhook.kind = kind
    webhook.review = AsyncMock(return_value=response, side_effect=side_effect)
    return webhook


@pytest.fixture
def enable_socket(socket_enabled):
    """Enable sockets for aiohttp server tests."""
    pass


@pytest.fixture
async def serve(enable_socket):
    clients: list[TestClient] = []

    async def factory(webhook, **config) -> TestClient:
        app = web.Application()
        app.router.add_post("/wh", handler_for(HandlerConfig(webhook=webhook, **config)))
        client = TestClient(TestServer(app))
        await client.start_server()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.close()


class TestHandlerConfig:
    def test_webhook_is_required(self):
        with pytest.raises(ConfigurationError, match="webhook is required"):
            handler_for(HandlerConfig(webhook=None))

    def test_timeout_must_be_positive(self):
        with pytest.raises(ConfigurationError, match="timeout must be positive"):
            handler_for(HandlerConfig(webhook=fake_webhook(), timeout_seconds=0))


class TestValidatingResponses:
    @pytest.mark.asyncio
    async def test_allowed(self, serve):
        client = await serve(
            fake_webhook(response=ValidatingAdmissionResponse(id="test-uid", allowed=True))
        )

        resp = await client.post("/wh", data=review_body(POD))

        assert resp.status == 200
        assert resp.content_type == "application/json"
        assert await resp.json() == {
            "apiVersion": "admission.k8s.io/v1",
            "kind": "AdmissionReview",
            "response": {"uid": "test-uid", "allowed": True},
        }

    @pytest.mark.asyncio
    async def test_denied(self, serve):
        client = await serve(
            fake_webhook(
                response=ValidatingAdmissionResponse(
                    id="test-uid", allowed=False, message="not on my watch"
                )
            )
        )

        resp = await client.post("/wh", data=review_body(POD))

        assert resp.status == 200
        response = (await resp.json())["response"]
        assert response["allowed"] is False
        assert response["status"]["status"] == "Failure"
        assert response["status"]["code"] == 400
        assert response["status"]["message"] == "not on my watch"

    @pytest.mark.asyncio
    async def test_v1_warnings(self, serve):
        client = await serve(
            fake_webhook(
                response=ValidatingAdmissionResponse(
                    id="test-uid", allowed=True, warnings=["w1", "w2"]
                )
            )
        )

        resp = await client.post("/wh", data=review_body(POD))

        assert (await resp.json())["response"]["warnings"] == ["w1", "w2"]

    @pytest.mark.asyncio
    async def test_v1beta1_drops_warnings(self, serve, caplog):
        client = await serve(
            fake_webhook(
                response=ValidatingAdmissionResponse(
                    id="test-uid", allowed=True, warnings=["w1"]
                )
            ),
            logger=WebhookLogger(),
        )

        with caplog.at_level(logging.WARNING, logger="kubewebhook"):
            resp = await client.post(
                "/wh", data=review_body(POD, api_version="admission.k8s.io/v1beta1")
            )

        data = await resp.json()
        assert resp.status == 200
        assert data["apiVersion"] == "admission.k8s.io/v1beta1"
        assert "warnings" not in data["response"]
        assert "warnings used in a 'v1beta1' webhook" in caplog.text

    @pytest.mark.asyncio
    async def test_replicas_validation_end_to_end(self, serve):
        async def replicas(ctx, review, obj):
            if obj.spec.replicas > 5:
                return ValidatorResult(
                    message=(
                        f"{obj.spec.replicas} is not a valid replica number, "
                        "deployment max replicas are 5"
                    )
                )
            return ValidatorResult(valid=True)

        webhook = ValidatingWebhook(
            ValidatingWebhookConfig(id="replicas", validator=ValidatorFunc(replicas))
        )
        client = await serve(webhook)

        resp = await client.post("/wh", data=review_body(DEPLOYMENT, uid="dep-1"))

        response = (await resp.json())["response"]
        assert response["uid"] == "dep-1"
        assert response["allowed"] is False
        assert (
            response["status"]["message"]
            == "10 is not a valid replica number, deployment max replicas are 5"
        )


class TestMutatingResponses:
    @pytest.mark.asyncio
    async def test_patch_is_base64_encoded(self, serve):
        patch_ops = b'[{"op":"add","path":"/metadata/labels","value":{"team":"x"}}]'
        client = await serve(
            fake_webhook(
                WebhookKind.MUTATING,
                MutatingAdmissionResponse(id="test-uid", json_patch=patch_ops),
            )
        )

        resp = await client.post("/wh", data=review_body(POD))

        response = (await resp.json())["response"]
        assert response["allowed"] is True
        assert response["patchType"] == "JSONPatch"
        assert base64.b64decode(response["patch"]) == patch_ops

    @pytest.mark.asyncio
    @pytest.mark.parametrize("patch_ops", [b"", b"[]"])
    async def test_no_patch_when_not_mutated(self, serve, patch_ops):
        client = await serve(
            fake_webhook(
                WebhookKind.MUTATING,
                MutatingAdmissionResponse(id="test-uid", json_patch=patch_ops),
            )
        )

        resp = await client.post("/wh", data=review_body(POD))

        assert (await resp.json())["response"] == {"uid": "test-uid", "allowed": True}


class TestErrors:
    @pytest.mark.asyncio
    async def test_webhook_error_is_500(self, serve):
        client = await serve(fake_webhook(side_effect=RuntimeError("kaboom")))

        resp = await client.post("/wh", data=review_body(POD))

        assert resp.status == 500
        response = (await resp.json())["response"]
        assert response["uid"] == "test-uid"
        assert response["allowed"] is False
        assert response["status"]["status"] == "Failure"
        assert response["status"]["message"] == "kaboom"
        assert "code" not in response["status"]

    @pytest.mark.asyncio
    async def test_unknown_response_type_is_500(self, serve):
        client = await serve(fake_webhook(response=object()))

        resp = await client.post("/wh", data=review_body(POD))

        assert resp.status == 500
        assert (await resp.json())["response"]["status"]["message"] == (
            "invalid admission response type"
        )

    @pytest.mark.asyncio
    async def test_review_deadline(self, serve):
        async def slow(ctx, review, obj):
            await asyncio.sleep(0.2)
            return ValidatorResult(valid=True)

        webhook = ValidatingWebhook(
            ValidatingWebhookConfig(
                id="slow",
                validator=ValidatorChain(ValidatorFunc(slow), ValidatorFunc(slow)),
            )
        )
        client = await serve(webhook, timeout_seconds=0.05)

        resp = await client.post("/wh", data=review_body(POD))

        assert resp.status == 500
        message = (await resp.json())["response"]["status"]["message"]
        assert message == (
            "validator chain not finished correctly, context deadline exceeded"
        )

    @pytest.mark.asyncio
    async def test_empty_body(self, serve):
        webhook = fake_webhook()
        client = await serve(webhook)

        resp = await client.post("/wh", data=b"")

        assert resp.status == 400
        assert await resp.text() == "no body found"
        webhook.review.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_undecodable_body(self, serve):
        webhook = fake_webhook()
        client = await serve(webhook)

        resp = await client.post("/wh", data=b"{not a review")

        assert resp.status == 400
        assert (await resp.text()).startswith(
            "could not decode the admission review from the request"
        )
        webhook.review.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_body_too_large(self, serve):
        webhook = fake_webhook()
        client = await serve(webhook)

        with patch(
            "kubewebhook.http.handler.read_body",
            AsyncMock(side_effect=RequestTooLargeError(10)),
        ):
            resp = await client.post("/wh", data=review_body(POD))

        assert resp.status == 413
        assert "request entity too large" in await resp.text()
        webhook.review.assert_not_awaited()


class TestReadBody:
    @staticmethod
    def request_with(*chunks: bytes):
        async def iter_chunked(size):
            for chunk in chunks:
                yield chunk

        request = MagicMock()
        request.content.iter_chunked = iter_chunked
        return request

    @pytest.mark.asyncio
    async def test_reads_all_chunks(self):
        body = await read_body(self.request_with(b"ab", b"cd"), limit=4)
        assert body == b"abcd"

    @pytest.mark.asyncio
    async def test_rejects_bodies_over_limit(self):
        with pytest.raises(RequestTooLargeError) as exc_info:
            await read_body(self.request_with(b"ab", b"cde"), limit=4)

        assert exc_info.value.status_code == 413
