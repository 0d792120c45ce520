"""Kubernetes client for sparkdev."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

logger = logging.getLogger(__name__)


class K8sError(Exception):
    """Base exception for Kubernetes errors."""

    pass


class K8sConnectionError(K8sError):
    """Raised when Kubernetes cluster is unreachable."""

    pass


class K8sResourceError(K8sError):
    """Raised when resource operations fail."""

    pass


class K8sConflictError(K8sResourceError):
    """Raised when creating a resource whose name is already taken."""

    pass


@dataclass
class ResourceStatus:
    """Status of a Kubernetes resource."""

    kind: str
    name: str
    namespace: str | None
    exists: bool
    ready: bool
    message: str = ""


# kind -> (API group attribute, method suffix shared by create/read/delete)
_KIND_METHODS: dict[str, tuple[str, str]] = {
    "ConfigMap": ("_core_v1", "namespaced_config_map"),
    "Secret": ("_core_v1", "namespaced_secret"),
    "PersistentVolumeClaim": ("_core_v1", "namespaced_persistent_volume_claim"),
    "Service": ("_core_v1", "namespaced_service"),
    "Deployment": ("_apps_v1", "namespaced_deployment"),
    "Job": ("_batch_v1", "namespaced_job"),
}


class K8sClient:
    """Kubernetes client for resource management.

    This client wraps the official kubernetes-client and provides
    the namespaced create/read/delete operations sparkdev needs.
    """

    def __init__(self, context: str = "", namespace: str = "", kubeconfig: str = ""):
        """Initialize Kubernetes client."""
        self.context_name = context
        self.kubeconfig = kubeconfig
        self._namespace = namespace

        try:
            if context or kubeconfig:
                config.load_kube_config(config_file=kubeconfig or None, context=context or None)
            else:
                # Try in-cluster config first, fall back to kubeconfig
                try:
                    config.load_incluster_config()
                except config.ConfigException:
                    config.load_kube_config()
        except Exception as e:
            raise K8sConnectionError(f"Failed to load Kubernetes config: {e}")  # noqa: B904

        self._core_v1 = client.CoreV1Api()
        self._apps_v1 = client.AppsV1Api()
        self._batch_v1 = client.BatchV1Api()

    @property
    def namespace(self) -> str:
        """Get the default namespace."""
        if self._namespace:
            return self._namespace

        # Try to get from kubeconfig
        try:
            contexts, active = config.list_kube_config_contexts(
                config_file=self.kubeconfig or None
            )
            if active and "namespace" in active.get("context", {}):
                return active["context"]["namespace"]
        except Exception:
            logger.debug("Could not read namespace from kubeconfig", exc_info=True)

        return "default"

    def _method(self, kind: str, verb: str) -> Any:
        try:
            api_attr, suffix = _KIND_METHODS[kind]
        except KeyError:
            raise K8sResourceError(f"Unsupported resource kind: {kind}")  # noqa: B904
        return getattr(getattr(self, api_attr), f"{verb}_{suffix}")

    def create_manifest(self, manifest: dict[str, Any], namespace: str | None = None) -> None:
        """Create a resource from a manifest.

        Unlike an apply, an existing resource is an error.

        Args:
            manifest: Kubernetes manifest as dict
            namespace: Override namespace

        Raises:
            K8sConflictError: If a resource with the same name exists
            K8sResourceError: On any other API error
            K8sConnectionError: If the API server is unreachable
        """
        kind = manifest.get("kind", "")
        metadata = manifest.get("metadata", {})
        name = metadata.get("name", "")
        ns = namespace or metadata.get("namespace") or self.namespace

        create = self._method(kind, "create")
        try:
            create(ns, manifest)
        except ApiException as e:
            if e.status == 409:
                raise K8sConflictError(f"{kind}/{name} already exists in namespace {ns}")  # noqa: B904
            raise K8sResourceError(f"Failed to create {kind}/{name}: {e.reason}")  # noqa: B904
        except HTTPError as e:
            raise K8sConnectionError(f"Failed to create {kind}/{name}: {e}")  # noqa: B904
        logger.debug("Created %s/%s in %s", kind, name, ns)

    def delete_resource(self, kind: str, name: str, namespace: str | None = None) -> bool:
        """Delete a namespaced resource.

        Args:
            kind: Resource kind (e.g. "Deployment")
            name: Resource name
            namespace: Namespace (default: client's namespace)

        Returns:
            True if deleted, False if it did not exist
        """
        ns = namespace or self.namespace
        delete = self._method(kind, "delete")
        try:
            delete(name, ns, body=client.V1DeleteOptions(propagation_policy="Background"))
        except ApiException as e:
            if e.status == 404:
                return False
            raise K8sResourceError(f"Failed to delete {kind}/{name}: {e.reason}")  # noqa: B904
        except HTTPError as e:
            raise K8sConnectionError(f"Failed to delete {kind}/{name}: {e}")  # noqa: B904
        logger.debug("Deleted %s/%s in %s", kind, name, ns)
        return True

    def read_resource(self, kind: str, name: str, namespace: str | None = None) -> Any | None:
        """Read a namespaced resource.

        Returns:
            The API object, or None if it does not exist
        """
        ns = namespace or self.namespace
        read = self._method(kind, "read")
        try:
            return read(name, ns)
        except ApiException as e:
            if e.status == 404:
                return None
            raise K8sResourceError(f"Failed to read {kind}/{name}: {e.reason}")  # noqa: B904
        except HTTPError as e:
            raise K8sConnectionError(f"Failed to read {kind}/{name}: {e}")  # noqa: B904

    def list_deployments(self, label_selector: str, namespace: str | None = None) -> list[Any]:
        """List Deployments matching a label selector."""
        ns = namespace or self.namespace
        try:
            return self._apps_v1.list_namespaced_deployment(ns, label_selector=label_selector).items
        except ApiException as e:
            raise K8sResourceError(f"Failed to list deployments: {e.reason}")  # noqa: B904
        except HTTPError as e:
            raise K8sConnectionError(f"Failed to list deployments: {e}")  # noqa: B904

    def list_pods(self, label_selector: str, namespace: str | None = None) -> list[Any]:
        """List Pods matching a label selector."""
        ns = namespace or self.namespace
        try:
            return self._core_v1.list_namespaced_pod(ns, label_selector=label_selector).items
        except ApiException as e:
            raise K8sResourceError(f"Failed to list pods: {e.reason}")  # noqa: B904
        except HTTPError as e:
            raise K8sConnectionError(f"Failed to list pods: {e}")  # noqa: B904

    def get_deployment_status(self, name: str, namespace: str | None = None) -> ResourceStatus:
        """Get readiness of a Deployment (ready when any replica is ready)."""
        ns = namespace or self.namespace
        dep = self.read_resource("Deployment", name, ns)
        if dep is None:
            return ResourceStatus(kind="Deployment", name=name, namespace=ns, exists=False, ready=False)
        ready_replicas = (dep.status.ready_replicas if dep.status else None) or 0
        desired = (dep.spec.replicas if dep.spec else None) or 1
        return ResourceStatus(
            kind="Deployment",
            name=name,
            namespace=ns,
            exists=True,
            ready=ready_replicas > 0,
            message=f"{ready_replicas}/{desired} replicas ready",
        )


def get_k8s_client(context: str = "", namespace: str = "", kubeconfig: str = "") -> K8sClient:
    """Create a Kubernetes client.

    Args:
        context: Kubernetes context (empty = current)
        namespace: Default namespace (empty = from context)
        kubeconfig: Path to a kubeconfig file (empty = default lookup)

    Returns:
        K8sClient instance
    """
    return K8sClient(context=context, namespace=namespace, kubeconfig=kubeconfig)
