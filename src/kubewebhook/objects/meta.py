"""
Kubernetes object capability.

Webhooks work with two object representations: Unstructured (generic) and
kubernetes python-client models (typed). meta_accessor() gives uniform
access to the object metadata of either.
"""

from typing import Any, Protocol, runtime_checkable

from kubernetes.client import V1ObjectMeta

from kubewebhook.errors import ObjectError

from .codec import serialize_object
from .registry import has_object_metadata
from .unstructured import Unstructured


@runtime_checkable
class ObjectMeta(Protocol):
    """Capabilities every Kubernetes object exposes to mutators and validators."""

    def get_name(self) -> str: ...

    def set_name(self, name: str) -> None: ...

    def get_namespace(self) -> str: ...

    def set_namespace(self, namespace: str) -> None: ...

    def get_labels(self) -> dict[str, str]: ...

    def set_labels(self, labels: dict[str, str] | None) -> None: ...

    def get_annotations(self) -> dict[str, str]: ...

    def set_annotations(self, annotations: dict[str, str] | None) -> None: ...

    def to_dict(self) -> dict[str, Any]: ...


class TypedObjectMeta:
    """ObjectMeta adapter over a kubernetes client model with V1ObjectMeta metadata."""

    def __init__(self, obj: Any):
        self.obj = obj

    def _metadata(self, create: bool = False) -> V1ObjectMeta | None:
        if self.obj.metadata is None and create:
            self.obj.metadata = V1ObjectMeta()
        return self.obj.metadata

    def get_name(self) -> str:
        meta = self._metadata()
        return (meta.name or "") if meta else ""

    def set_name(self, name: str) -> None:
        self._metadata(create=True).name = name or None

    def get_namespace(self) -> str:
        meta = self._metadata()
        return (meta.namespace or "") if meta else ""

    def set_namespace(self, namespace: str) -> None:
        self._metadata(create=True).namespace = namespace or None

    def get_labels(self) -> dict[str, str]:
        meta = self._metadata()
        return dict(meta.labels or {}) if meta else {}

    def set_labels(self, labels: dict[str, str] | None) -> None:
        self._metadata(create=True).labels = dict(labels) if labels else None

    def get_annotations(self) -> dict[str, str]:
        meta = self._metadata()
        return dict(meta.annotations or {}) if meta else {}

    def set_annotations(self, annotations: dict[str, str] | None) -> None:
        self._metadata(create=True).annotations = (
            dict(annotations) if annotations else None
        )

    def to_dict(self) -> dict[str, Any]:
        return serialize_object(self.obj)


def is_typed_object(obj: Any) -> bool:
    """True for kubernetes client models carrying full object metadata."""
    return has_object_metadata(type(obj)) and hasattr(obj, "metadata")


def meta_accessor(obj: Any) -> ObjectMeta:
    """
    Get the object metadata accessor of a Kubernetes object.

    Args:
        obj: Unstructured object or kubernetes client model

    Returns:
        Accessor implementing the ObjectMeta capabilities

    Raises:
        ObjectError: If the object does not carry Kubernetes object metadata
    """
    if isinstance(obj, Unstructured):
        return obj
    if is_typed_object(obj):
        return TypedObjectMeta(obj)
    raise ObjectError(
        f"{type(obj).__name__} is not a Kubernetes object with object metadata"
    )
