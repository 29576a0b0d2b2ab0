"""
Constants used throughout kubewebhook.

This module defines the constant values shared by the admission review model,
the HTTP gateway and the observability layer:
- Admission review wire identifiers
- Kubernetes Status shapes
- HTTP limits
- Metric and tracing names
"""

# Admission review wire identifiers
ADMISSION_GROUP = "admission.k8s.io"
ADMISSION_REVIEW_KIND = "AdmissionReview"
ADMISSION_API_VERSION_V1BETA1 = "admission.k8s.io/v1beta1"
ADMISSION_API_VERSION_V1 = "admission.k8s.io/v1"

# Patch type sent back with mutating responses
PATCH_TYPE_JSON_PATCH = "JSONPatch"

# Empty JSON Patch document, treated as "no mutation"
EMPTY_JSON_PATCH = b"[]"

# metav1.Status values
STATUS_FAILURE = "Failure"
STATUS_SUCCESS = "Success"
STATUS_CODE_DENIED = 400

# Kubernetes allows a 2x buffer on the max etcd object size (3 MiB) when it
# forwards objects. We allow an additional 2x buffer on top of it.
MAX_REQUEST_BODY_BYTES = 6 * 1024 * 1024

# Chunk size used when reading request bodies
REQUEST_BODY_CHUNK_BYTES = 64 * 1024

# Content types
CONTENT_TYPE_JSON = "application/json"

# Default review timeout (Kubernetes caps webhook calls at 30 seconds)
DEFAULT_REVIEW_TIMEOUT_SECONDS = 30.0

# Metrics
METRICS_PREFIX = "kubewebhook"

# Tracing
TRACER_NAME = "kubewebhook"
HTTP_HANDLER_TRACE_NAME = "webhookHTTPHandler"
