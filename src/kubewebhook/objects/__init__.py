"""
Kubernetes object materialization.

Decodes the raw objects of admission reviews into typed kubernetes client
models or generic Unstructured objects, and serializes them back.
"""

from .codec import format_rfc3339, parse_raw, serialize_object
from .creator import DynamicObjectCreator, ObjectCreator, StaticObjectCreator
from .meta import ObjectMeta, TypedObjectMeta, is_typed_object, meta_accessor
from .registry import TypeRegistry, default_type_registry, parse_api_version
from .unstructured import Unstructured

__all__ = [
    "DynamicObjectCreator",
    "ObjectCreator",
    "ObjectMeta",
    "StaticObjectCreator",
    "TypeRegistry",
    "TypedObjectMeta",
    "Unstructured",
    "default_type_registry",
    "format_rfc3339",
    "is_typed_object",
    "meta_accessor",
    "parse_api_version",
    "parse_raw",
    "serialize_object",
]
