"""
Mutating admission webhooks.

A mutating webhook materializes the reviewed object, hands it to a Mutator
(usually a MutatorChain), and answers with the JSON Patch that turns the
original raw object into the mutated one. The patch is always computed from
the raw bytes received, so in-place mutation and returning a replacement
object are equivalent.
"""

import dataclasses
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeAlias

import jsonpatch

from kubewebhook.context import ReviewContext
from kubewebhook.errors import ChainError, ConfigurationError
from kubewebhook.model import (
    AdmissionReview,
    MutatingAdmissionResponse,
    WebhookKind,
)
from kubewebhook.objects import (
    DynamicObjectCreator,
    ObjectCreator,
    StaticObjectCreator,
    TypeRegistry,
    is_typed_object,
    parse_raw,
    serialize_object,
)
from kubewebhook.observability.logging import NOOP_LOGGER, WebhookLogger

from .base import Webhook
from .chain import ensure_not_done


@dataclass
class MutatorResult:
    """
    Result of a mutation step.

    Attributes:
        stop_chain: Stop the chain after this step
        mutated_object: Replacement object; None means the object passed in
            (possibly mutated in place) is the result
        warnings: Warnings for the user issuing the API request
    """

    stop_chain: bool = False
    mutated_object: Any = None
    warnings: list[str] = field(default_factory=list)


class Mutator(Protocol):
    async def mutate(
        self, ctx: ReviewContext, review: AdmissionReview, obj: Any
    ) -> MutatorResult: ...


MutateFunc: TypeAlias = Callable[
    [ReviewContext, AdmissionReview, Any], Awaitable[MutatorResult]
]


class MutatorFunc:
    """Adapts a coroutine function to the Mutator protocol."""

    def __init__(self, func: MutateFunc):
        self.func = func

    async def mutate(
        self, ctx: ReviewContext, review: AdmissionReview, obj: Any
    ) -> MutatorResult:
        return await self.func(ctx, review, obj)


class MutatorChain:
    """
    Ordered sequence of mutators acting as a single Mutator.

    Every step receives the most recent object. Warnings of all executed steps
    are accumulated in order. A step error aborts the whole chain.
    """

    def __init__(self, *mutators: Mutator, logger: WebhookLogger | None = None):
        self.mutators = list(mutators)
        self.logger = logger if logger is not None else NOOP_LOGGER

    async def mutate(
        self, ctx: ReviewContext, review: AdmissionReview, obj: Any
    ) -> MutatorResult:
        warnings: list[str] = []
        for mutator in self.mutators:
            ensure_not_done(ctx, "mutator")

            result = await mutator.mutate(ctx, review, obj)
            if result is None:
                raise ChainError("mutator result can't be None")

            warnings.extend(result.warnings)
            if result.mutated_object is not None:
                obj = result.mutated_object

            if result.stop_chain:
                self.logger.with_ctx_values(ctx).debug("Mutator chain stopped")
                return dataclasses.replace(result, warnings=warnings)

        return MutatorResult(mutated_object=obj, warnings=warnings)


@dataclass
class MutatingWebhookConfig:
    """
    Mutating webhook configuration.

    Attributes:
        id: Webhook identifier
        mutator: Mutator (or MutatorChain) applied to every reviewed object
        obj: Prototype of the reviewed type (client model class/instance or
            Unstructured); None selects dynamic type resolution
        logger: Logger, no-op when missing
        type_registry: Kinds known to dynamic type resolution; the built-in
            kinds when missing
    """

    id: str
    mutator: Mutator | None
    obj: Any = None
    logger: WebhookLogger | None = None
    type_registry: TypeRegistry | None = None

    def validate(self) -> None:
        errors = []
        if not self.id:
            errors.append("id is required")
        if self.mutator is None:
            errors.append("mutator is required")
        if errors:
            raise ConfigurationError("invalid configuration", errors)


def _prune_nulls(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _prune_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_prune_nulls(v) for v in value]
    return value


class MutatingWebhook(Webhook):
    """Mutating webhook computing JSON Patches from mutator results."""

    def __init__(self, config: MutatingWebhookConfig):
        """
        Initialize mutating webhook.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        config.validate()
        self._id = config.id
        self.mutator: Mutator = config.mutator
        self.logger = (config.logger or NOOP_LOGGER).with_values(
            **{"webhook-id": config.id, "webhook-type": WebhookKind.MUTATING.value}
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
        return WebhookKind.MUTATING

    async def review(
        self, ctx: ReviewContext, review: AdmissionReview
    ) -> MutatingAdmissionResponse:
        logger = self.logger.with_ctx_values(ctx)
        logger.debug("Webhook mutating review request received")

        raw = review.raw_for_operation()
        obj = self.object_creator.new_object(raw)

        result = await self.mutator.mutate(ctx, review, obj)
        if result is None:
            raise ChainError("mutator result can't be None")

        final = result.mutated_object if result.mutated_object is not None else obj
        patch = self._create_patch(raw, final)
        logger.debug(f"JSON patch for request: {patch.decode()}")

        return MutatingAdmissionResponse(
            id=review.id,
            json_patch=patch,
            warnings=list(result.warnings),
        )

    def _create_patch(self, raw: bytes, final: Any) -> bytes:
        original = parse_raw(raw)
        mutated = serialize_object(final)
        if is_typed_object(final):
            # Client models can't hold explicit nulls, ignore them on the raw side.
            original = _prune_nulls(original)
        patch = jsonpatch.make_patch(original, mutated)
        return json.dumps(patch.patch, separators=(",", ":")).encode("utf-8")
