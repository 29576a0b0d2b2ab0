"""
Webhook error hierarchy with categorization.

This module defines the error types raised by kubewebhook. Errors are
categorized by the stage that produced them:

- transport: the HTTP request could not be turned into an admission review
  (rejected before any webhook runs, plain-text 400/413)
- configuration: a webhook was built with invalid configuration (fail fast at
  construction time, never at request time)
- materialization: raw object bytes could not be decoded into an object
- chain: a mutator/validator chain misbehaved or was cancelled
- encode: a webhook response could not be mapped to the wire format

Errors raised by user supplied mutators and validators are not wrapped; the
gateway reports their message verbatim.
"""


class WebhookError(Exception):
    """
    Base error class for all kubewebhook exceptions.

    Carries the category of the failure and an optional underlying cause.
    """

    def __init__(
        self,
        message: str,
        category: str,
        cause: Exception | None = None,
    ):
        """
        Initialize webhook error.

        Args:
            message: Human-readable error description
            category: Error category (transport, configuration, materialization,
                chain, encode, object)
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.cause = cause


class ConfigurationError(WebhookError):
    """Invalid webhook or handler configuration."""

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message=message, category="configuration")


class TransportError(WebhookError):
    """Error reading or decoding the HTTP request before a webhook is reached."""

    status_code = 400

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message=message, category="transport", cause=cause)


class RequestDecodeError(TransportError):
    """The request body is not a known admission review."""


class RequestTooLargeError(TransportError):
    """The request body exceeds the maximum allowed size."""

    status_code = 413

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"request entity too large: limit is {limit}")


class MaterializationError(WebhookError):
    """Raw object bytes could not be decoded into the target object type."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message=message, category="materialization", cause=cause)


class ObjectError(WebhookError):
    """An object does not satisfy the Kubernetes object capability set."""

    def __init__(self, message: str):
        super().__init__(message=message, category="object")


class ChainError(WebhookError):
    """A mutator or validator chain step misbehaved."""

    def __init__(self, message: str):
        super().__init__(message=message, category="chain")


class ChainCancelledError(ChainError):
    """The review context was cancelled before the chain finished."""


class ResponseEncodeError(WebhookError):
    """A webhook response could not be mapped to the admission review wire format."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message=message, category="encode", cause=cause)
