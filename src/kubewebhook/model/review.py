"""
Version-agnostic admission review request.

The HTTP gateway normalizes both admission review wire generations
(admission.k8s.io/v1beta1 and admission.k8s.io/v1) into these records, so
webhooks never see the wire types.
"""

from dataclasses import dataclass, field
from enum import Enum


class AdmissionReviewVersion(Enum):
    """Wire generation the admission review was received with."""

    V1BETA1 = "v1beta1"
    V1 = "v1"


class Operation(Enum):
    """Admission review operation."""

    UNKNOWN = "unknown"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    CONNECT = "connect"

    @classmethod
    def from_wire(cls, value: str | None) -> "Operation":
        """Map a wire operation (CREATE, UPDATE...) to the model operation."""
        return _WIRE_OPERATIONS.get(value or "", cls.UNKNOWN)


_WIRE_OPERATIONS = {
    "CREATE": Operation.CREATE,
    "UPDATE": Operation.UPDATE,
    "DELETE": Operation.DELETE,
    "CONNECT": Operation.CONNECT,
}


@dataclass(frozen=True)
class GroupVersionKind:
    group: str = ""
    version: str = ""
    kind: str = ""

    def __str__(self) -> str:
        return "/".join([self.group, self.version, self.kind]).strip(" /")


@dataclass(frozen=True)
class GroupVersionResource:
    group: str = ""
    version: str = ""
    resource: str = ""

    def __str__(self) -> str:
        return "/".join([self.group, self.version, self.resource]).strip(" /")


@dataclass(frozen=True)
class UserInfo:
    """Identity of the requester."""

    username: str = ""
    uid: str = ""
    groups: tuple[str, ...] = ()
    extra: dict[str, tuple[str, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class AdmissionReview:
    """
    Admission review request, independent of the wire generation.

    Exactly one of old_object_raw/new_object_raw is populated for DELETE
    (old_object_raw); new_object_raw is populated for every other operation.
    """

    id: str
    version: AdmissionReviewVersion
    operation: Operation = Operation.UNKNOWN
    name: str = ""
    namespace: str = ""
    request_gvk: GroupVersionKind = field(default_factory=GroupVersionKind)
    request_gvr: GroupVersionResource = field(default_factory=GroupVersionResource)
    old_object_raw: bytes = b""
    new_object_raw: bytes = b""
    dry_run: bool = False
    user_info: UserInfo = field(default_factory=UserInfo)

    def raw_for_operation(self) -> bytes:
        """Raw object the review is about: the old object on DELETE, the new one otherwise."""
        if self.operation is Operation.DELETE:
            return self.old_object_raw
        return self.new_object_raw
