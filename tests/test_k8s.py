"""Tests for the K8s client.

All tests mock the kubernetes-client to avoid requiring a real cluster.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client as k8s_models
from kubernetes.client.rest import ApiException


@pytest.fixture
def k8s():
    """K8sClient with config loading and API classes patched out."""
    with (
        patch("sparkdev.k8s.client.config") as mock_config,
        patch("sparkdev.k8s.client.client.CoreV1Api") as core,
        patch("sparkdev.k8s.client.client.AppsV1Api") as apps,
        patch("sparkdev.k8s.client.client.BatchV1Api") as batch,
    ):
        mock_config.ConfigException = Exception
        from sparkdev.k8s.client import K8sClient

        c = K8sClient(namespace="spark")
        c.core = core.return_value
        c.apps = apps.return_value
        c.batch = batch.return_value
        yield c


# ===========================================================================
# K8sClient connection and namespace
# ===========================================================================


class TestK8sClientInit:
    """Tests for K8sClient initialization."""

    def test_connection_error(self):
        from sparkdev.k8s.client import K8sClient, K8sConnectionError

        with patch("sparkdev.k8s.client.config") as mock_config:
            mock_config.ConfigException = type("ConfigException", (Exception,), {})
            mock_config.load_incluster_config.side_effect = mock_config.ConfigException()
            mock_config.load_kube_config.side_effect = Exception("no kubeconfig")
            with pytest.raises(K8sConnectionError, match="no kubeconfig"):
                K8sClient()

    def test_context_loads_kubeconfig(self):
        from sparkdev.k8s.client import K8sClient

        with patch("sparkdev.k8s.client.config") as mock_config, patch(
            "sparkdev.k8s.client.client"
        ):
            K8sClient(context="homelab")
        mock_config.load_kube_config.assert_called_once_with(config_file=None, context="homelab")
        mock_config.load_incluster_config.assert_not_called()

    def test_kubeconfig_path(self):
        from sparkdev.k8s.client import K8sClient

        with patch("sparkdev.k8s.client.config") as mock_config, patch(
            "sparkdev.k8s.client.client"
        ):
            k8s = K8sClient(kubeconfig="/tmp/homelab.yaml")
            mock_config.list_kube_config_contexts.return_value = ([], {"context": {}})
            assert k8s.namespace == "default"
        mock_config.load_kube_config.assert_called_once_with(
            config_file="/tmp/homelab.yaml", context=None
        )
        mock_config.list_kube_config_contexts.assert_called_once_with(
            config_file="/tmp/homelab.yaml"
        )
        mock_config.load_incluster_config.assert_not_called()

    def test_explicit_namespace(self, k8s):
        assert k8s.namespace == "spark"

    def test_namespace_from_kubeconfig(self):
        from sparkdev.k8s.client import K8sClient

        with patch("sparkdev.k8s.client.config") as mock_config, patch(
            "sparkdev.k8s.client.client"
        ):
            mock_config.list_kube_config_contexts.return_value = (
                [],
                {"context": {"namespace": "from-ctx"}},
            )
            assert K8sClient().namespace == "from-ctx"

    def test_namespace_fallback_default(self):
        from sparkdev.k8s.client import K8sClient

        with patch("sparkdev.k8s.client.config") as mock_config, patch(
            "sparkdev.k8s.client.client"
        ):
            mock_config.list_kube_config_contexts.side_effect = Exception("none")
            assert K8sClient().namespace == "default"


# ===========================================================================
# create / delete / read
# ===========================================================================


class TestCreateManifest:
    def test_dispatches_by_kind(self, k8s):
        manifest = {"kind": "Deployment", "metadata": {"name": "brave-otter"}}
        k8s.create_manifest(manifest)
        k8s.apps.create_namespaced_deployment.assert_called_once_with("spark", manifest)

    def test_namespace_override(self, k8s):
        manifest = {"kind": "Secret", "metadata": {"name": "s", "namespace": "meta-ns"}}
        k8s.create_manifest(manifest, namespace="other")
        k8s.core.create_namespaced_secret.assert_called_once_with("other", manifest)

    def test_namespace_from_metadata(self, k8s):
        manifest = {"kind": "Job", "metadata": {"name": "j", "namespace": "meta-ns"}}
        k8s.create_manifest(manifest)
        k8s.batch.create_namespaced_job.assert_called_once_with("meta-ns", manifest)

    def test_conflict(self, k8s):
        from sparkdev.k8s import K8sConflictError

        k8s.core.create_namespaced_config_map.side_effect = ApiException(status=409)
        with pytest.raises(K8sConflictError, match="already exists"):
            k8s.create_manifest({"kind": "ConfigMap", "metadata": {"name": "x-config"}})

    def test_api_error(self, k8s):
        from sparkdev.k8s import K8sConflictError, K8sResourceError

        k8s.core.create_namespaced_service.side_effect = ApiException(status=422, reason="Invalid")
        with pytest.raises(K8sResourceError, match="Invalid") as exc_info:
            k8s.create_manifest({"kind": "Service", "metadata": {"name": "x-ssh"}})
        assert not isinstance(exc_info.value, K8sConflictError)

    def test_unreachable(self, k8s):
        from urllib3.exceptions import MaxRetryError

        from sparkdev.k8s import K8sConnectionError

        k8s.core.create_namespaced_persistent_volume_claim.side_effect = MaxRetryError(
            None, "/api", "refused"
        )
        with pytest.raises(K8sConnectionError):
            k8s.create_manifest({"kind": "PersistentVolumeClaim", "metadata": {"name": "p"}})

    def test_unsupported_kind(self, k8s):
        from sparkdev.k8s import K8sResourceError

        with pytest.raises(K8sResourceError, match="Unsupported"):
            k8s.create_manifest({"kind": "CronJob", "metadata": {"name": "c"}})


class TestDeleteResource:
    def test_deleted(self, k8s):
        assert k8s.delete_resource("Service", "x-ssh") is True
        args = k8s.core.delete_namespaced_service.call_args
        assert args.args == ("x-ssh", "spark")
        assert args.kwargs["body"].propagation_policy == "Background"

    def test_not_found_is_false(self, k8s):
        k8s.apps.delete_namespaced_deployment.side_effect = ApiException(status=404)
        assert k8s.delete_resource("Deployment", "gone") is False

    def test_other_error_raises(self, k8s):
        from sparkdev.k8s import K8sResourceError

        k8s.core.delete_namespaced_secret.side_effect = ApiException(status=403, reason="Forbidden")
        with pytest.raises(K8sResourceError, match="Forbidden"):
            k8s.delete_resource("Secret", "x-secret")


class TestReadResource:
    def test_found(self, k8s):
        job = k8s_models.V1Job(metadata=k8s_models.V1ObjectMeta(name="j"))
        k8s.batch.read_namespaced_job.return_value = job
        assert k8s.read_resource("Job", "j") is job

    def test_not_found(self, k8s):
        k8s.batch.read_namespaced_job.side_effect = ApiException(status=404)
        assert k8s.read_resource("Job", "j") is None


class TestListAndStatus:
    def test_list_deployments_passes_selector(self, k8s):
        k8s.apps.list_namespaced_deployment.return_value = MagicMock(items=["a"])
        assert k8s.list_deployments("app=spark") == ["a"]
        k8s.apps.list_namespaced_deployment.assert_called_once_with(
            "spark", label_selector="app=spark"
        )

    def test_list_pods_error(self, k8s):
        from sparkdev.k8s import K8sResourceError

        k8s.core.list_namespaced_pod.side_effect = ApiException(status=500, reason="boom")
        with pytest.raises(K8sResourceError, match="boom"):
            k8s.list_pods("app=spark")

    @pytest.mark.parametrize("ready_replicas,expected", [(None, False), (0, False), (1, True)])
    def test_deployment_ready_when_any_replica_ready(self, k8s, ready_replicas, expected):
        k8s.apps.read_namespaced_deployment.return_value = k8s_models.V1Deployment(
            spec=k8s_models.V1DeploymentSpec(
                replicas=1,
                selector=k8s_models.V1LabelSelector(),
                template=k8s_models.V1PodTemplateSpec(),
            ),
            status=k8s_models.V1DeploymentStatus(ready_replicas=ready_replicas),
        )
        status = k8s.get_deployment_status("brave-otter")
        assert status.exists is True
        assert status.ready is expected

    def test_deployment_missing(self, k8s):
        k8s.apps.read_namespaced_deployment.side_effect = ApiException(status=404)
        status = k8s.get_deployment_status("gone")
        assert status.exists is False
        assert status.ready is False
