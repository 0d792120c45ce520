"""Manifest builders for the five-resource spark bundle.

All builders are pure: they map a spark's name and secrets to manifest
dicts and never talk to the cluster.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from sparkdev._constants import (
    DEFAULT_DOTFILES_REPO,
    SPARK_APP_LABEL,
    SPARK_IMAGE,
    SPARK_NAME_LABEL,
    SPARK_NAMESPACE,
    SPARK_SSH_PORT,
    SPARK_STORAGE_SIZE,
    SPARK_UID,
    SPARK_USER,
    TAILSCALE_HOSTNAME_ANNOTATION,
    TAILSCALE_LB_CLASS,
)
from sparkdev.ssh import ssh_host

CONFIG_MOUNT = "/tmp/spark-config"
SECRET_MOUNT = "/tmp/spark-secret"
HOME_DIR = f"/home/{SPARK_USER}"

# scheme://host/path, or scp-style git@host:path. No whitespace, quotes or
# shell metacharacters anywhere in the URL.
_SAFE_URL_CHARS = r"[A-Za-z0-9._~:/?#\[\]@!%+=,-]"
_REPO_URL_RE = re.compile(
    rf"^(?:(?:https?|ssh|git)://{_SAFE_URL_CHARS}+|[A-Za-z0-9._-]+@[A-Za-z0-9.-]+:{_SAFE_URL_CHARS}+)$"
)


class InvalidRepositoryError(ValueError):
    """Raised when a git repository URL is rejected."""

    pass


def validate_git_repo(url: str) -> str:
    """Validate a repository URL destined for the provisioning script.

    Returns:
        The URL, unchanged

    Raises:
        InvalidRepositoryError: If the URL is not a plain git URL
    """
    if not _REPO_URL_RE.fullmatch(url) or url.startswith("-"):
        raise InvalidRepositoryError(f"Invalid git repository URL: {url!r}")
    return url


def spark_labels(name: str) -> dict[str, str]:
    """Labels carried by every resource in a spark's bundle."""
    return {"app": SPARK_APP_LABEL, SPARK_NAME_LABEL: name}


def spark_selector(name: str | None = None) -> str:
    """Label selector for one spark, or for all sparks when name is None."""
    if name is None:
        return f"app={SPARK_APP_LABEL}"
    return f"app={SPARK_APP_LABEL},{SPARK_NAME_LABEL}={name}"


def configmap_name(name: str) -> str:
    return f"{name}-config"


def secret_name(name: str) -> str:
    return f"{name}-secret"


def pvc_name(name: str) -> str:
    return f"{name}-storage"


def service_name(name: str) -> str:
    return f"{name}-ssh"


class TemplateRenderer:
    """Renders the packaged Jinja2 templates.

    Autoescaping is off: the templates are shell scripts, not markup.
    Interpolated values that come from users go through ``shell_quote``.
    """

    def __init__(self, template_dir: Path | None = None):
        if template_dir is None:
            from sparkdev._resources import get_templates_dir

            template_dir = get_templates_dir()

        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.env.filters["shell_quote"] = shlex.quote

    def render(self, template_name: str, context: dict[str, Any]) -> str:
        """Render a template with the given context."""
        template = self.env.get_template(template_name)
        return template.render(**context)


@dataclass
class SparkResources:
    """Inputs for one spark's resource bundle."""

    name: str
    database_url: str
    anthropic_api_key: str
    ssh_public_key: str
    git_repo: str = ""
    github_token: str = ""
    github_user: str = ""
    dotfiles_repo: str = DEFAULT_DOTFILES_REPO
    namespace: str = SPARK_NAMESPACE

    def __post_init__(self) -> None:
        if self.git_repo:
            validate_git_repo(self.git_repo)
        if self.dotfiles_repo:
            validate_git_repo(self.dotfiles_repo)

    def _metadata(self, name: str, annotations: dict[str, str] | None = None) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "name": name,
            "namespace": self.namespace,
            "labels": spark_labels(self.name),
        }
        if annotations:
            meta["annotations"] = annotations
        return meta

    def build_configmap(self) -> dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": self._metadata(configmap_name(self.name)),
            "data": {
                "authorized_keys": self.ssh_public_key,
                "git_repo": self.git_repo,
            },
        }

    def build_secret(self) -> dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": self._metadata(secret_name(self.name)),
            "type": "Opaque",
            "stringData": {
                "DATABASE_URL": self.database_url,
                "ANTHROPIC_API_KEY": self.anthropic_api_key,
                "GITHUB_TOKEN": self.github_token,
            },
        }

    def build_pvc(self) -> dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": "PersistentVolumeClaim",
            "metadata": self._metadata(pvc_name(self.name)),
            "spec": {
                "accessModes": ["ReadWriteOnce"],
                "resources": {"requests": {"storage": SPARK_STORAGE_SIZE}},
            },
        }

    def build_service(self) -> dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": self._metadata(
                service_name(self.name),
                annotations={TAILSCALE_HOSTNAME_ANNOTATION: ssh_host(self.name)},
            ),
            "spec": {
                "type": "LoadBalancer",
                "loadBalancerClass": TAILSCALE_LB_CLASS,
                "ports": [{"name": "ssh", "port": SPARK_SSH_PORT, "protocol": "TCP"}],
                "selector": spark_labels(self.name),
            },
        }

    def build_deployment(self, renderer: TemplateRenderer | None = None) -> dict[str, Any]:
        script = self.build_init_script(renderer)
        secret = secret_name(self.name)

        def secret_env(key: str) -> dict[str, Any]:
            return {"name": key, "valueFrom": {"secretKeyRef": {"name": secret, "key": key}}}

        return {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": self._metadata(self.name),
            "spec": {
                "replicas": 1,
                "selector": {"matchLabels": spark_labels(self.name)},
                "template": {
                    "metadata": {"labels": spark_labels(self.name)},
                    "spec": {
                        "securityContext": {"fsGroup": SPARK_UID},
                        "containers": [
                            {
                                "name": "debian",
                                "image": SPARK_IMAGE,
                                "command": ["/bin/bash", "-c", script],
                                "ports": [
                                    {
                                        "name": "ssh",
                                        "containerPort": SPARK_SSH_PORT,
                                        "protocol": "TCP",
                                    }
                                ],
                                "env": [
                                    secret_env("DATABASE_URL"),
                                    secret_env("ANTHROPIC_API_KEY"),
                                    {"name": "SPARK_NAME", "value": self.name},
                                ],
                                "volumeMounts": [
                                    {"name": "spark-storage", "mountPath": HOME_DIR},
                                    {
                                        "name": "spark-config",
                                        "mountPath": CONFIG_MOUNT,
                                        "readOnly": True,
                                    },
                                    {
                                        "name": "spark-secret",
                                        "mountPath": SECRET_MOUNT,
                                        "readOnly": True,
                                    },
                                ],
                                "resources": {
                                    "requests": {"cpu": "100m", "memory": "256Mi"},
                                    "limits": {"cpu": "1000m", "memory": "2Gi"},
                                },
                                # sshd needs root to drop privileges per session
                                "securityContext": {
                                    "runAsUser": 0,
                                    "allowPrivilegeEscalation": True,
                                    "capabilities": {"add": ["SETUID", "SETGID"]},
                                    "readOnlyRootFilesystem": False,
                                },
                            }
                        ],
                        "volumes": [
                            {
                                "name": "spark-storage",
                                "persistentVolumeClaim": {"claimName": pvc_name(self.name)},
                            },
                            {
                                "name": "spark-config",
                                "configMap": {"name": configmap_name(self.name)},
                            },
                            {"name": "spark-secret", "secret": {"secretName": secret}},
                        ],
                    },
                },
            },
        }

    def build_init_script(self, renderer: TemplateRenderer | None = None) -> str:
        """Render the provisioning script run as the container's command."""
        renderer = renderer or TemplateRenderer()
        return renderer.render(
            "spark/provision.sh.j2",
            {
                "user": SPARK_USER,
                "uid": SPARK_UID,
                "home": HOME_DIR,
                "config_mount": CONFIG_MOUNT,
                "secret_mount": SECRET_MOUNT,
                "github_user": self.github_user,
                "dotfiles_repo": self.dotfiles_repo,
                "git_repo": self.git_repo,
            },
        )

    def build_bundle(self, renderer: TemplateRenderer | None = None) -> list[dict[str, Any]]:
        """All five manifests in submission order.

        ConfigMap, Secret, PVC and Service come before the Deployment that
        references them by name.
        """
        return [
            self.build_configmap(),
            self.build_secret(),
            self.build_pvc(),
            self.build_service(),
            self.build_deployment(renderer),
        ]
