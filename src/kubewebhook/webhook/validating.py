"""
Validating admission webhooks.

A validating webhook materializes the reviewed object and hands it to a
Validator (usually a ValidatorChain). It never mutates or patches.
"""

import dataclasses
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeAlias

from kubewebhook.context import ReviewContext
from kubewebhook.errors import ChainError, ConfigurationError
from kubewebhook.model import (
    AdmissionReview,
    ValidatingAdmissionResponse,
    WebhookKind,
)
from kubewebhook.objects import (
    DynamicObjectCreator,
    ObjectCreator,
    StaticObjectCreator,
    TypeRegistry,
)
from kubewebhook.observability.logging import NOOP_LOGGER, WebhookLogger

from .base import Webhook
from .chain import ensure_not_done


@dataclass
class ValidatorResult:
    """
    Result of a validation step.

    Attributes:
        stop_chain: Stop the chain after this step
        valid: Whether the object is accepted
        message: Message for the user when the object is rejected
        warnings: Warnings for the user issuing the API request
    """

    stop_chain: bool = False
    valid: bool = False
    message: str = ""
    warnings: list[str] = field(default_factory=list)


class Validator(Protocol):
    async def validate(
        self, ctx: ReviewContext, review: AdmissionReview, obj: Any
    ) -> ValidatorResult: ...


ValidateFunc: TypeAlias = Callable[
    [ReviewContext, AdmissionReview, Any], Awaitable[ValidatorResult]
]


class ValidatorFunc:
    """Adapts a coroutine function to the Validator protocol."""

    def __init__(self, func: ValidateFunc):
        self.func = func

    async def validate(
        self, ctx: ReviewContext, review: AdmissionReview, obj: Any
    ) -> ValidatorResult:
        return await self.func(ctx, review, obj)


class ValidatorChain:
    """
    Ordered sequence of validators acting as a single Validator.

    The chain stops at the first step that is invalid or asks to stop the
    chain, returning that step's result with the warnings accumulated so far.
    """

    def __init__(self, *validators: Validator, logger: WebhookLogger | None = None):
        self.validators = list(validators)
        self.logger = logger if logger is not None else NOOP_LOGGER

    async def validate(
        self, ctx: ReviewContext, review: AdmissionReview, obj: Any
    ) -> ValidatorResult:
        warnings: list[str] = []
        for validator in self.validators:
            ensure_not_done(ctx, "validator")

            result = await validator.validate(ctx, review, obj)
            if result is None:
                raise ChainError("validator result can't be None")

            warnings.extend(result.warnings)
            if result.stop_chain or not result.valid:
                self.logger.with_ctx_values(ctx).debug(
                    f"Validator chain stopped (valid={result.valid})"
                )
                return dataclasses.replace(result, warnings=warnings)

        return ValidatorResult(valid=True, warnings=warnings)


@dataclass
class ValidatingWebhookConfig:
    """
    Validating webhook configuration.

    Attributes:
        id: Webhook identifier
        validator: Validator (or ValidatorChain) applied to every reviewed object
        obj: Prototype of the reviewed type; None selects dynamic type resolution
        logger: Logger, no-op when missing
        type_registry: Kinds known to dynamic type resolution
    """

    id: str
    validator: Validator | None
    obj: Any = None
    logger: WebhookLogger | None = None
    type_registry: TypeRegistry | None = None

    def validate(self) -> None:
        errors = []
        if not self.id:
            errors.append("id is required")
        if self.validator is None:
            errors.append("validator is required")
        if errors:
            raise ConfigurationError("invalid configuration", errors)


class ValidatingWebhook(Webhook):
    """Validating webhook answering allow or deny from validator results."""

    def __init__(self, config: ValidatingWebhookConfig):
        """
        Initialize validating webhook.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        config.validate()
        self._id = config.id
        self.validator: Validator = config.validator
        self.logger = (config.logger or NOOP_LOGGER).with_values(
            **{"webhook-id": config.id, "webhook-type": WebhookKind.VALIDATING.value}
        )
        self.object_creator: ObjectCreator
        if config.obj is not None:
            self.object_creator = StaticObjectCreator(config.obj)
        else:
            self.object_creator = DynamicObjectCreator(config.type_registry)

    @property
    def id(self) -> str:
        return self._id

    @property
    def kind(self) -> WebhookKind:
        return WebhookKind.VALIDATING

    async def review(
        self, ctx: ReviewContext, review: AdmissionReview
    ) -> ValidatingAdmissionResponse:
        self.logger.with_ctx_values(ctx).debug(
            "Webhook validating review request received"
        )

        obj = self.object_creator.new_object(review.raw_for_operation())

        result = await self.validator.validate(ctx, review, obj)
        if result is None:
            raise ChainError("validator result can't be None")

        return ValidatingAdmissionResponse(
            id=review.id,
            allowed=result.valid,
            message=result.message,
            warnings=list(result.warnings),
        )
