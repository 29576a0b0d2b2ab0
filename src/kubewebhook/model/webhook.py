"""Webhook kinds."""

from enum import Enum


class WebhookKind(Enum):
    """Kind of admission webhook."""

    MUTATING = "mutating"
    VALIDATING = "validating"
