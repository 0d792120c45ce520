"""Cluster-side operations on a spark's resource bundle."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from sparkdev._constants import SPARK_NAME_LABEL
from sparkdev.k8s import K8sClient, K8sError, WaitResult, wait_for_pod_running

from .resources import (
    configmap_name,
    pvc_name,
    secret_name,
    service_name,
    spark_selector,
)

logger = logging.getLogger(__name__)


class BundleError(K8sError):
    """Raised when a bundle step fails; records which step."""

    def __init__(self, message: str, kind: str, name: str, completed: list[str]):
        super().__init__(message)
        self.kind = kind
        self.name = name
        self.completed = completed


@dataclass
class DeleteStep:
    """Outcome of one resource deletion."""

    kind: str
    name: str
    deleted: bool  # False when the resource was already absent


def deletion_order(name: str) -> list[tuple[str, str]]:
    """(kind, resource name) pairs in deletion order, the reverse of creation."""
    return [
        ("Deployment", name),
        ("Service", service_name(name)),
        ("PersistentVolumeClaim", pvc_name(name)),
        ("Secret", secret_name(name)),
        ("ConfigMap", configmap_name(name)),
    ]


class SparkCluster:
    """Creates, inspects and deletes spark bundles through a K8sClient."""

    def __init__(self, k8s: K8sClient, namespace: str | None = None):
        self.k8s = k8s
        self.namespace = namespace or k8s.namespace

    def create_bundle(self, bundle: list[dict[str, Any]]) -> list[str]:
        """Submit manifests one at a time, in the given order.

        Already-created resources are left in place if a later one fails.

        Returns:
            "Kind/name" of each created resource

        Raises:
            BundleError: On the first failed submission
        """
        created: list[str] = []
        for manifest in bundle:
            kind = manifest["kind"]
            name = manifest["metadata"]["name"]
            try:
                self.k8s.create_manifest(manifest, namespace=self.namespace)
            except K8sError as e:
                raise BundleError(
                    f"Failed to create {kind.lower()} {name}: {e}",
                    kind=kind,
                    name=name,
                    completed=created,
                ) from e
            created.append(f"{kind}/{name}")
            logger.info("Created %s/%s", kind, name)
        return created

    def delete_bundle(self, name: str) -> list[DeleteStep]:
        """Delete a spark's resources, workload first.

        A resource that is already gone counts as deleted. Any other
        failure aborts before the remaining resources are touched.

        Raises:
            BundleError: On the first failed deletion
        """
        steps: list[DeleteStep] = []
        for kind, resource_name in deletion_order(name):
            try:
                deleted = self.k8s.delete_resource(kind, resource_name, namespace=self.namespace)
            except K8sError as e:
                raise BundleError(
                    f"Failed to delete {kind.lower()} {resource_name}: {e}",
                    kind=kind,
                    name=resource_name,
                    completed=[f"{s.kind}/{s.name}" for s in steps],
                ) from e
            if not deleted:
                logger.info("%s/%s already absent", kind, resource_name)
            steps.append(DeleteStep(kind=kind, name=resource_name, deleted=deleted))
        return steps

    def list_sparks(self) -> list[str]:
        """Names of all sparks, taken from the workload's spark-name label."""
        names = []
        for dep in self.k8s.list_deployments(spark_selector(), namespace=self.namespace):
            labels = dep.metadata.labels or {}
            if SPARK_NAME_LABEL in labels:
                names.append(labels[SPARK_NAME_LABEL])
        return names

    def is_ready(self, name: str) -> bool:
        """True when the spark's workload has at least one ready replica."""
        status = self.k8s.get_deployment_status(name, namespace=self.namespace)
        if not status.exists:
            raise K8sError(f"Deployment {name} not found")
        return status.ready

    def get_spark_pod(self, name: str) -> Any | None:
        """The first Running pod of a spark, else its first pod, else None."""
        pods = self.k8s.list_pods(spark_selector(name), namespace=self.namespace)
        for pod in pods:
            if pod.status and pod.status.phase == "Running":
                return pod
        return pods[0] if pods else None

    def wait_until_running(
        self,
        name: str,
        max_attempts: int,
        poll_interval: float,
        cancel: threading.Event | None = None,
    ) -> WaitResult:
        """Poll until a pod of the spark reports the Running phase."""
        return wait_for_pod_running(
            self.k8s,
            spark_selector(name),
            namespace=self.namespace,
            max_attempts=max_attempts,
            poll_interval=poll_interval,
            cancel=cancel,
        )
