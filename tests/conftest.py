"""Shared fixtures for the sparkdev test suite."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from kubernetes import client as k8s_models

from sparkdev.config import SparkConfig

TEST_SSH_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAITestKey user@laptop\n"


def make_config(**overrides: Any) -> SparkConfig:
    """Create a SparkConfig with sensible defaults for testing.

    This is the canonical config factory for tests. Prefer this over
    hand-building dicts so that new required fields are handled in one place.
    """
    base: dict[str, Any] = {
        "secrets": {
            "anthropic_api_key": "sk-ant-test",
            "github_token": "ghp_test",
            "github_user": "octocat",
            "ssh_public_key": TEST_SSH_KEY,
        },
        "postgres": {
            "host": "postgres.postgres.svc.cluster.local",
            "port": "5432",
            "user": "spark",
            "password": "s3cret",
            "database": "homelab",
        },
    }
    base.update(overrides)
    return SparkConfig.model_validate(base)


def make_pod(name: str, phase: str) -> k8s_models.V1Pod:
    return k8s_models.V1Pod(
        metadata=k8s_models.V1ObjectMeta(name=name),
        status=k8s_models.V1PodStatus(phase=phase),
    )


def make_deployment(name: str, labels: dict[str, str] | None = None) -> k8s_models.V1Deployment:
    return k8s_models.V1Deployment(
        metadata=k8s_models.V1ObjectMeta(name=name, labels=labels),
        spec=k8s_models.V1DeploymentSpec(
            selector=k8s_models.V1LabelSelector(match_labels=labels or {}),
            template=k8s_models.V1PodTemplateSpec(
                metadata=k8s_models.V1ObjectMeta(labels=labels or {}),
            ),
        ),
    )


@pytest.fixture
def default_config() -> SparkConfig:
    """A default SparkConfig for tests that don't care about specifics."""
    return make_config()


@pytest.fixture
def mock_k8s_client():
    """Pre-configured mock K8sClient for unit tests."""
    client = MagicMock()
    client.namespace = "spark"
    client.delete_resource.return_value = True
    client.list_deployments.return_value = []
    client.list_pods.return_value = []
    return client


@pytest.fixture
def mock_db():
    """Mock PostgresAdmin usable as a context manager."""
    db = MagicMock()
    db.__enter__.return_value = db
    db.__exit__.return_value = False
    db.database_exists.return_value = False
    return db


@pytest.fixture
def mock_cluster():
    """Mock SparkCluster with an empty namespace and a pod that runs at once."""
    from sparkdev.k8s import WaitResult, WaitStatus

    cluster = MagicMock()
    cluster.list_sparks.return_value = []
    cluster.create_bundle.side_effect = lambda bundle: [
        f"{m['kind']}/{m['metadata']['name']}" for m in bundle
    ]
    cluster.delete_bundle.return_value = []
    cluster.wait_until_running.return_value = WaitResult(
        status=WaitStatus.READY, message="Pod running", elapsed_seconds=0.0, attempts=1
    )
    return cluster
