"""
Object creators.

An object creator turns the raw bytes of an admission review object into the
object handed to mutators and validators:

- StaticObjectCreator always builds the same type (typed prototype or
  Unstructured)
- DynamicObjectCreator reads apiVersion/kind from the payload and builds a
  typed object when the kind is registered, Unstructured otherwise
"""

import logging
from typing import Any, Protocol

from kubewebhook.errors import ConfigurationError, MaterializationError

from .codec import decode_typed, parse_raw_mapping
from .registry import TypeRegistry, default_type_registry, has_object_metadata
from .unstructured import Unstructured

logger = logging.getLogger(__name__)


class ObjectCreator(Protocol):
    def new_object(self, raw: bytes) -> Any: ...


class StaticObjectCreator:
    """Creates objects of a single, preconfigured type."""

    def __init__(self, prototype: Any):
        """
        Initialize static object creator.

        Args:
            prototype: Kubernetes client model class or instance, or
                Unstructured (class or instance)

        Raises:
            ConfigurationError: If the prototype is not a Kubernetes object type
        """
        cls = prototype if isinstance(prototype, type) else type(prototype)
        if cls is not Unstructured and not has_object_metadata(cls):
            raise ConfigurationError(
                f"{cls.__name__} is not a Kubernetes object type with object metadata"
            )
        self.cls = cls

    def new_object(self, raw: bytes) -> Any:
        data = parse_raw_mapping(raw)
        if self.cls is Unstructured:
            return Unstructured(data)
        return decode_typed(data, self.cls)


class DynamicObjectCreator:
    """Creates typed objects for registered kinds, Unstructured for the rest."""

    def __init__(self, registry: TypeRegistry | None = None):
        self.registry = registry if registry is not None else default_type_registry()

    def new_object(self, raw: bytes) -> Any:
        data = parse_raw_mapping(raw)
        api_version = data.get("apiVersion")
        kind = data.get("kind")
        if not isinstance(api_version, str) or not isinstance(kind, str):
            return Unstructured(data)

        cls = self.registry.lookup(api_version, kind)
        if cls is None or not has_object_metadata(cls):
            return Unstructured(data)

        try:
            return decode_typed(data, cls)
        except MaterializationError as e:
            logger.warning(
                f"Typed decode of {api_version}/{kind} failed, using unstructured: {e}"
            )
            return Unstructured(data)
