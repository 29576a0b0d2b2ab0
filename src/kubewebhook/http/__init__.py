"""
HTTP gateway: admission request handlers and the server hosting them.
"""

from .handler import AdmissionHandler, HandlerConfig, handler_for, read_body
from .server import WebhookServer, create_ssl_context

__all__ = [
    "AdmissionHandler",
    "HandlerConfig",
    "WebhookServer",
    "create_ssl_context",
    "handler_for",
    "read_body",
]
