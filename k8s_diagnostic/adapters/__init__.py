"""Adapters — cluster client bindings.

Public re-exports for convenient access.
"""

from k8s_diagnostic.adapters.base import (
    AlreadyExistsError,
    ClusterClient,
    ClusterError,
    ExecResult,
    NotFoundError,
    ReadinessTimeout,
)
from k8s_diagnostic.adapters.kubectl import KubectlClient
from k8s_diagnostic.adapters.mock import MockClusterClient

__all__ = [
    "AlreadyExistsError",
    "ClusterClient",
    "ClusterError",
    "ExecResult",
    "KubectlClient",
    "MockClusterClient",
    "NotFoundError",
    "ReadinessTimeout",
]
