"""Kubernetes client module for sparkdev."""

from .client import (
    K8sClient,
    K8sConflictError,
    K8sConnectionError,
    K8sError,
    K8sResourceError,
    ResourceStatus,
    get_k8s_client,
)
from .wait import (
    WaitError,
    WaitResult,
    WaitStatus,
    wait_for_condition,
    wait_for_job_complete,
    wait_for_pod_running,
)

__all__ = [
    # Client
    "K8sClient",
    "ResourceStatus",
    "get_k8s_client",
    # Errors
    "K8sError",
    "K8sConnectionError",
    "K8sResourceError",
    "K8sConflictError",
    "WaitError",
    # Wait
    "WaitResult",
    "WaitStatus",
    "wait_for_condition",
    "wait_for_pod_running",
    "wait_for_job_complete",
]
