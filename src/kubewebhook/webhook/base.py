"""
Webhook capability shared by mutating, validating and decorator webhooks.
"""

from abc import ABC, abstractmethod

from kubewebhook.context import ReviewContext
from kubewebhook.model import AdmissionResponse, AdmissionReview, WebhookKind


class Webhook(ABC):
    """
    An admission webhook.

    Implementations are built once and reviewed concurrently from any number
    of requests; they must not keep request state.
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Webhook identifier, used in logs, metrics and traces."""

    @property
    @abstractmethod
    def kind(self) -> WebhookKind:
        """Whether this is a mutating or a validating webhook."""

    @abstractmethod
    async def review(
        self, ctx: ReviewContext, review: AdmissionReview
    ) -> AdmissionResponse:
        """
        Review an admission request.

        Args:
            ctx: Request-scoped context (cancellation, log values, span)
            review: Version-agnostic admission review

        Returns:
            Validating or mutating admission response

        Raises:
            Exception: Any error; the HTTP gateway turns it into a failure response
        """
