"""Daemon client package for locman.

Provides the HTTP ``Transport`` with its retry and buffering policy, and the
``RegistryClient`` that implements the version/list/pull/delete operations
on top of it.
"""

from locman.client.models import BatchSummary, ModelSummary, OperationResult
from locman.client.registry import RegistryClient
from locman.client.transport import BodyBufferPool, RequestOutcome, Transport

__all__ = [
    "BatchSummary",
    "BodyBufferPool",
    "ModelSummary",
    "OperationResult",
    "RegistryClient",
    "RequestOutcome",
    "Transport",
]
