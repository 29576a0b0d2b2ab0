"""
Kubernetes type registry.

Maps a (group, version, kind) triple to a kubernetes python-client model
class. The registry is immutable once built and is handed explicitly to the
dynamic object creator.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from kubernetes import client as k8s_client

from kubewebhook.model.review import GroupVersionKind

logger = logging.getLogger(__name__)

# Common built-in kinds: (group, version, kind) -> client model class name
_BUILTIN_KINDS: tuple[tuple[str, str, str, str], ...] = (
    ("", "v1", "Pod", "V1Pod"),
    ("", "v1", "Service", "V1Service"),
    ("", "v1", "ConfigMap", "V1ConfigMap"),
    ("", "v1", "Secret", "V1Secret"),
    ("", "v1", "Namespace", "V1Namespace"),
    ("", "v1", "ServiceAccount", "V1ServiceAccount"),
    ("", "v1", "Node", "V1Node"),
    ("", "v1", "Endpoints", "V1Endpoints"),
    ("", "v1", "PersistentVolume", "V1PersistentVolume"),
    ("", "v1", "PersistentVolumeClaim", "V1PersistentVolumeClaim"),
    ("", "v1", "LimitRange", "V1LimitRange"),
    ("", "v1", "ResourceQuota", "V1ResourceQuota"),
    ("", "v1", "PodList", "V1PodList"),
    ("", "v1", "Status", "V1Status"),
    ("apps", "v1", "Deployment", "V1Deployment"),
    ("apps", "v1", "StatefulSet", "V1StatefulSet"),
    ("apps", "v1", "DaemonSet", "V1DaemonSet"),
    ("apps", "v1", "ReplicaSet", "V1ReplicaSet"),
    ("batch", "v1", "Job", "V1Job"),
    ("batch", "v1", "CronJob", "V1CronJob"),
    ("networking.k8s.io", "v1", "Ingress", "V1Ingress"),
    ("networking.k8s.io", "v1", "NetworkPolicy", "V1NetworkPolicy"),
    ("rbac.authorization.k8s.io", "v1", "Role", "V1Role"),
    ("rbac.authorization.k8s.io", "v1", "RoleBinding", "V1RoleBinding"),
    ("rbac.authorization.k8s.io", "v1", "ClusterRole", "V1ClusterRole"),
    ("rbac.authorization.k8s.io", "v1", "ClusterRoleBinding", "V1ClusterRoleBinding"),
    ("autoscaling", "v2", "HorizontalPodAutoscaler", "V2HorizontalPodAutoscaler"),
    ("policy", "v1", "PodDisruptionBudget", "V1PodDisruptionBudget"),
    ("storage.k8s.io", "v1", "StorageClass", "V1StorageClass"),
    ("scheduling.k8s.io", "v1", "PriorityClass", "V1PriorityClass"),
    ("coordination.k8s.io", "v1", "Lease", "V1Lease"),
    (
        "apiextensions.k8s.io",
        "v1",
        "CustomResourceDefinition",
        "V1CustomResourceDefinition",
    ),
    (
        "admissionregistration.k8s.io",
        "v1",
        "MutatingWebhookConfiguration",
        "V1MutatingWebhookConfiguration",
    ),
    (
        "admissionregistration.k8s.io",
        "v1",
        "ValidatingWebhookConfiguration",
        "V1ValidatingWebhookConfiguration",
    ),
)


def parse_api_version(api_version: str) -> tuple[str, str]:
    """Split "group/version" (or a core "version") into (group, version)."""
    if "/" not in api_version:
        return "", api_version
    group, _, version = api_version.rpartition("/")
    return group, version


def has_object_metadata(cls: type) -> bool:
    """True when instances of the client model carry a full V1ObjectMeta."""
    openapi_types = getattr(cls, "openapi_types", None) or {}
    return openapi_types.get("metadata") == "V1ObjectMeta"


class TypeRegistry(Mapping[GroupVersionKind, type]):
    """Immutable mapping of GroupVersionKind to kubernetes client model classes."""

    def __init__(self, types: Mapping[GroupVersionKind, type] | None = None):
        self._types: Mapping[GroupVersionKind, type] = MappingProxyType(
            dict(types or {})
        )

    def __getitem__(self, key: GroupVersionKind) -> type:
        return self._types[key]

    def __iter__(self) -> Iterator[GroupVersionKind]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def lookup(self, api_version: str, kind: str) -> type | None:
        """Resolve an apiVersion/kind pair, None when the kind is not known."""
        group, version = parse_api_version(api_version)
        return self._types.get(GroupVersionKind(group=group, version=version, kind=kind))

    def with_types(
        self, types: Iterable[tuple[GroupVersionKind, type]]
    ) -> "TypeRegistry":
        """New registry extended with more kinds (e.g. custom resource models)."""
        merged = dict(self._types)
        merged.update(types)
        return TypeRegistry(merged)


def default_type_registry() -> TypeRegistry:
    """
    Build the registry of the common built-in kinds.

    Kinds whose model class is missing from the installed kubernetes client
    are skipped.
    """
    types: dict[GroupVersionKind, type] = {}
    for group, version, kind, class_name in _BUILTIN_KINDS:
        cls = getattr(k8s_client, class_name, None)
        if cls is None:
            logger.debug(f"Kubernetes client has no model {class_name}, skipping")
            continue
        types[GroupVersionKind(group=group, version=version, kind=kind)] = cls
    return TypeRegistry(types)
