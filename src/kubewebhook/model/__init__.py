"""
Admission review model for kubewebhook.

Version-agnostic records produced from either admission review wire
generation and consumed by webhooks.
"""

from .response import (
    AdmissionResponse,
    MutatingAdmissionResponse,
    ValidatingAdmissionResponse,
)
from .review import (
    AdmissionReview,
    AdmissionReviewVersion,
    GroupVersionKind,
    GroupVersionResource,
    Operation,
    UserInfo,
)
from .webhook import WebhookKind

__all__ = [
    "AdmissionReview",
    "AdmissionReviewVersion",
    "AdmissionResponse",
    "GroupVersionKind",
    "GroupVersionResource",
    "MutatingAdmissionResponse",
    "Operation",
    "UserInfo",
    "ValidatingAdmissionResponse",
    "WebhookKind",
]
