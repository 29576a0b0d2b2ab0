"""
Admission review wire schemas.

Pydantic models for the two wire generations of the admission protocol,
admission.k8s.io/v1beta1 and admission.k8s.io/v1. The generation of a
request is decided by which schema decoded it (apiVersion discriminator),
never by HTTP headers.

The v1beta1 response schema has no warnings field, so a v1beta1 response
can't carry warnings.
"""

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from kubewebhook.constants import (
    ADMISSION_API_VERSION_V1,
    ADMISSION_API_VERSION_V1BETA1,
    ADMISSION_REVIEW_KIND,
)
from kubewebhook.errors import RequestDecodeError

from .review import (
    AdmissionReview,
    AdmissionReviewVersion,
    GroupVersionKind,
    GroupVersionResource,
    Operation,
    UserInfo,
)


class WireGroupVersionKind(BaseModel):
    model_config = {"populate_by_name": True}

    group: str = ""
    version: str = ""
    kind: str = ""


class WireGroupVersionResource(BaseModel):
    model_config = {"populate_by_name": True}

    group: str = ""
    version: str = ""
    resource: str = ""


class WireUserInfo(BaseModel):
    model_config = {"populate_by_name": True}

    username: str = ""
    uid: str = ""
    groups: list[str] = Field(default_factory=list)
    extra: dict[str, list[str]] = Field(default_factory=dict)


class WireAdmissionRequest(BaseModel):
    """AdmissionRequest, identical in both wire generations."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    uid: str = Field(..., description="Request correlation id, echoed in the response")
    kind: WireGroupVersionKind = Field(default_factory=WireGroupVersionKind)
    resource: WireGroupVersionResource = Field(
        default_factory=WireGroupVersionResource
    )
    sub_resource: str = Field("", alias="subResource")
    request_kind: WireGroupVersionKind | None = Field(None, alias="requestKind")
    request_resource: WireGroupVersionResource | None = Field(
        None, alias="requestResource"
    )
    request_sub_resource: str = Field("", alias="requestSubResource")
    name: str = ""
    namespace: str = ""
    operation: str = ""
    user_info: WireUserInfo = Field(default_factory=WireUserInfo, alias="userInfo")
    object_: Any = Field(None, alias="object")
    old_object: Any = Field(None, alias="oldObject")
    dry_run: bool | None = Field(None, alias="dryRun")
    options: Any = None


class WireStatus(BaseModel):
    """Subset of metav1.Status used in admission responses."""

    model_config = {"populate_by_name": True}

    metadata: dict[str, Any] = Field(default_factory=dict)
    status: str | None = None
    message: str | None = None
    code: int | None = None


class WireAdmissionResponseV1Beta1(BaseModel):
    model_config = {"populate_by_name": True}

    uid: str
    allowed: bool = False
    status: WireStatus | None = None
    patch: str | None = Field(None, description="Base64 encoded JSON Patch")
    patch_type: str | None = Field(None, alias="patchType")


class WireAdmissionResponseV1(WireAdmissionResponseV1Beta1):
    warnings: list[str] | None = None


class AdmissionReviewV1Beta1(BaseModel):
    model_config = {"populate_by_name": True}

    api_version: Literal["admission.k8s.io/v1beta1"] = Field(
        ADMISSION_API_VERSION_V1BETA1, alias="apiVersion"
    )
    kind: Literal["AdmissionReview"] = ADMISSION_REVIEW_KIND
    request: WireAdmissionRequest | None = None
    response: WireAdmissionResponseV1Beta1 | None = None


class AdmissionReviewV1(BaseModel):
    model_config = {"populate_by_name": True}

    api_version: Literal["admission.k8s.io/v1"] = Field(
        ADMISSION_API_VERSION_V1, alias="apiVersion"
    )
    kind: Literal["AdmissionReview"] = ADMISSION_REVIEW_KIND
    request: WireAdmissionRequest | None = None
    response: WireAdmissionResponseV1 | None = None


# Registry of the known admission review wire schemas.
WireAdmissionReview = Annotated[
    AdmissionReviewV1Beta1 | AdmissionReviewV1, Field(discriminator="api_version")
]

_review_adapter: TypeAdapter[AdmissionReviewV1Beta1 | AdmissionReviewV1] = (
    TypeAdapter(WireAdmissionReview)
)

_WIRE_VERSIONS: dict[type[BaseModel], AdmissionReviewVersion] = {
    AdmissionReviewV1Beta1: AdmissionReviewVersion.V1BETA1,
    AdmissionReviewV1: AdmissionReviewVersion.V1,
}


def _raw_object(value: Any) -> bytes:
    if value is None:
        return b""
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def _gvk(
    request_kind: WireGroupVersionKind | None, kind: WireGroupVersionKind
) -> GroupVersionKind:
    # requestKind is the operation specific one, kind is the fallback.
    src = request_kind if request_kind is not None else kind
    return GroupVersionKind(group=src.group, version=src.version, kind=src.kind)


def _gvr(
    request_resource: WireGroupVersionResource | None,
    resource: WireGroupVersionResource,
) -> GroupVersionResource:
    src = request_resource if request_resource is not None else resource
    return GroupVersionResource(
        group=src.group, version=src.version, resource=src.resource
    )


def decode_wire_review(body: bytes) -> AdmissionReviewV1Beta1 | AdmissionReviewV1:
    """
    Decode a request body against the known admission review wire schemas.

    Args:
        body: Raw HTTP request body

    Returns:
        The decoded wire admission review (v1beta1 or v1)

    Raises:
        RequestDecodeError: If the body is not a known admission review with a request
    """
    try:
        wire = _review_adapter.validate_json(body)
    except PydanticValidationError as e:
        raise RequestDecodeError(
            f"could not decode the admission review from the request: {e}", cause=e
        ) from e

    if wire.request is None:
        raise RequestDecodeError(
            "could not decode the admission review from the request: missing request"
        )
    return wire


def wire_review_to_model(
    wire: AdmissionReviewV1Beta1 | AdmissionReviewV1,
) -> AdmissionReview:
    """Map a decoded wire admission review to the version-agnostic model."""
    req = wire.request
    if req is None:
        raise RequestDecodeError("admission review has no request")

    return AdmissionReview(
        id=req.uid,
        version=_WIRE_VERSIONS[type(wire)],
        operation=Operation.from_wire(req.operation),
        name=req.name,
        namespace=req.namespace,
        request_gvk=_gvk(req.request_kind, req.kind),
        request_gvr=_gvr(req.request_resource, req.resource),
        old_object_raw=_raw_object(req.old_object),
        new_object_raw=_raw_object(req.object_),
        dry_run=bool(req.dry_run) if req.dry_run is not None else False,
        user_info=UserInfo(
            username=req.user_info.username,
            uid=req.user_info.uid,
            groups=tuple(req.user_info.groups),
            extra={k: tuple(v) for k, v in req.user_info.extra.items()},
        ),
    )


def decode_admission_review(body: bytes) -> AdmissionReview:
    """Decode a request body straight into the version-agnostic model."""
    return wire_review_to_model(decode_wire_review(body))
