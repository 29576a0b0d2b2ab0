"""
kubewebhook - Kubernetes dynamic admission webhooks for asyncio.

This package provides the server-side engine behind mutating and validating
admission webhooks:
- Version-agnostic admission review model (admission.k8s.io v1beta1 and v1)
- Typed or unstructured object materialization from raw request objects
- Mutating (JSON Patch) and validating review pipelines with chains
- Metrics and tracing webhook decorators
- aiohttp gateway that speaks both admission review wire generations
"""

__version__ = "0.1.0"
