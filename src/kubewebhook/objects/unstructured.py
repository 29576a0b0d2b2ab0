"""
Generic (untyped) Kubernetes object.

Unstructured keeps the decoded JSON tree verbatim, so unknown fields and
custom resources survive a decode/encode round trip untouched.
"""

import copy
from typing import Any


class Unstructured:
    """Kubernetes object backed by a plain nested dict."""

    def __init__(self, content: dict[str, Any] | None = None):
        self.object: dict[str, Any] = content if content is not None else {}

    def __repr__(self) -> str:
        return f"Unstructured({self.get_api_version()}/{self.get_kind()} {self.get_namespace()}/{self.get_name()})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Unstructured):
            return NotImplemented
        return self.object == other.object

    def _metadata(self, create: bool = False) -> dict[str, Any]:
        meta = self.object.get("metadata")
        if not isinstance(meta, dict):
            if not create:
                return {}
            meta = {}
            self.object["metadata"] = meta
        return meta

    def _meta_str(self, key: str) -> str:
        value = self._metadata().get(key)
        return value if isinstance(value, str) else ""

    def _meta_map(self, key: str) -> dict[str, str]:
        value = self._metadata().get(key)
        return dict(value) if isinstance(value, dict) else {}

    def _set_meta(self, key: str, value: Any) -> None:
        if not value:
            self._metadata().pop(key, None)
            return
        self._metadata(create=True)[key] = value

    def get_api_version(self) -> str:
        value = self.object.get("apiVersion")
        return value if isinstance(value, str) else ""

    def get_kind(self) -> str:
        value = self.object.get("kind")
        return value if isinstance(value, str) else ""

    def get_name(self) -> str:
        return self._meta_str("name")

    def set_name(self, name: str) -> None:
        self._set_meta("name", name)

    def get_namespace(self) -> str:
        return self._meta_str("namespace")

    def set_namespace(self, namespace: str) -> None:
        self._set_meta("namespace", namespace)

    def get_labels(self) -> dict[str, str]:
        return self._meta_map("labels")

    def set_labels(self, labels: dict[str, str] | None) -> None:
        self._set_meta("labels", dict(labels) if labels else None)

    def get_annotations(self) -> dict[str, str]:
        return self._meta_map("annotations")

    def set_annotations(self, annotations: dict[str, str] | None) -> None:
        self._set_meta("annotations", dict(annotations) if annotations else None)

    def get(self, *path: str, default: Any = None) -> Any:
        """Nested field lookup, e.g. obj.get("spec", "replicas")."""
        current: Any = self.object
        for key in path:
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
        return current

    def set(self, *path: str, value: Any) -> None:
        """Nested field assignment, creating intermediate mappings."""
        if not path:
            raise ValueError("empty field path")
        current = self.object
        for key in path[:-1]:
            child = current.get(key)
            if not isinstance(child, dict):
                child = {}
                current[key] = child
            current = child
        current[path[-1]] = value

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self.object)
