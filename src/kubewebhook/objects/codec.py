"""
Raw object decoding and wire serialization.

Typed objects are kubernetes python-client models; they are decoded and
serialized with the client's own ApiClient so that field names follow the
Kubernetes JSON conventions (camelCase, RFC 3339 timestamps).
"""

import inspect
import json
from datetime import UTC, date, datetime
from typing import Any

import yaml
from kubernetes.client import ApiClient
from kubernetes.client.exceptions import ApiException

from kubewebhook.errors import MaterializationError

from .unstructured import Unstructured


class _WireApiClient(ApiClient):
    """ApiClient that renders timestamps the way the API server does."""

    def sanitize_for_serialization(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return format_rfc3339(obj)
        if isinstance(obj, date):
            return obj.isoformat()
        return super().sanitize_for_serialization(obj)


class _RawResponse:
    """Response shape read by ApiClient.deserialize(response, response_type)."""

    def __init__(self, text: str):
        self.data = text


_api_client: _WireApiClient | None = None


def _get_api_client() -> _WireApiClient:
    global _api_client
    if _api_client is None:
        _api_client = _WireApiClient()
    return _api_client


def format_rfc3339(value: datetime) -> str:
    """Format a timestamp as RFC 3339 UTC with a Z suffix."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += f".{value.microsecond:06d}"
    return text + "Z"


def parse_raw(raw: bytes) -> Any:
    """
    Parse raw object bytes into a JSON tree.

    JSON is tried first, YAML is accepted as a fallback.

    Raises:
        MaterializationError: If the bytes are neither JSON nor YAML
    """
    try:
        return json.loads(raw)
    except ValueError as json_error:
        try:
            return yaml.safe_load(raw)
        except yaml.YAMLError:
            raise MaterializationError(
                f"could not decode raw object: {json_error}", cause=json_error
            ) from json_error


def parse_raw_mapping(raw: bytes) -> dict[str, Any]:
    """Parse raw object bytes that must hold a JSON object."""
    data = parse_raw(raw)
    if not isinstance(data, dict):
        raise MaterializationError(
            f"raw object is not a JSON object, got {type(data).__name__}"
        )
    return data


def _deserialize(client: ApiClient, text: str, cls: type) -> Any:
    params = inspect.signature(client.deserialize).parameters
    if "content_type" in params:
        # Newer clients: deserialize(response_text, response_type, content_type)
        return client.deserialize(text, cls, "application/json")
    return client.deserialize(_RawResponse(text), cls)


def decode_typed(data: dict[str, Any], cls: type) -> Any:
    """
    Decode a JSON tree into a kubernetes client model.

    Raises:
        MaterializationError: If the model rejects the data
    """
    try:
        return _deserialize(_get_api_client(), json.dumps(data), cls)
    except (ApiException, ValueError) as e:
        raise MaterializationError(
            f"could not decode object into {cls.__name__}: {e}", cause=e
        ) from e


def serialize_object(obj: Any) -> dict[str, Any]:
    """
    Serialize an object to its wire JSON form.

    Accepts Unstructured, kubernetes client models and plain dicts.
    """
    if isinstance(obj, Unstructured):
        return obj.to_dict()
    data = _get_api_client().sanitize_for_serialization(obj)
    if not isinstance(data, dict):
        raise MaterializationError(
            f"object {type(obj).__name__} does not serialize to a JSON object"
        )
    return data
