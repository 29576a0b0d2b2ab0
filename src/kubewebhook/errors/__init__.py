"""
Error handling module for kubewebhook.

This module provides the error hierarchy used across the admission pipeline,
categorizing failures by the stage that produced them so the HTTP gateway
can map them to the right response.
"""

from .webhook_errors import (
    ChainCancelledError,
    ChainError,
    ConfigurationError,
    MaterializationError,
    ObjectError,
    RequestDecodeError,
    RequestTooLargeError,
    ResponseEncodeError,
    TransportError,
    WebhookError,
)

__all__ = [
    "WebhookError",
    "ConfigurationError",
    "TransportError",
    "RequestDecodeError",
    "RequestTooLargeError",
    "MaterializationError",
    "ObjectError",
    "ChainError",
    "ChainCancelledError",
    "ResponseEncodeError",
]
