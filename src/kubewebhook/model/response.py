"""
Admission responses returned by webhooks.

AdmissionResponse is a closed union: a webhook returns either a
ValidatingAdmissionResponse or a MutatingAdmissionResponse, and the HTTP
gateway rejects anything else.
"""

from dataclasses import dataclass, field
from typing import TypeAlias

from kubewebhook.constants import EMPTY_JSON_PATCH


@dataclass(frozen=True)
class ValidatingAdmissionResponse:
    """Response of a validating webhook."""

    id: str
    allowed: bool
    message: str = ""
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class MutatingAdmissionResponse:
    """Response of a mutating webhook, carrying the serialized JSON Patch."""

    id: str
    json_patch: bytes = b""
    warnings: list[str] = field(default_factory=list)

    @property
    def mutated(self) -> bool:
        """True when the patch has at least one operation."""
        return bool(self.json_patch) and self.json_patch.strip() != EMPTY_JSON_PATCH


AdmissionResponse: TypeAlias = ValidatingAdmissionResponse | MutatingAdmissionResponse
