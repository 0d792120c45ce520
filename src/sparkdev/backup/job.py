"""One-shot backup of a pod's data directory into a new PVC.

The PVC is the durable artifact. The copy Job runs ``kubectl exec ... tar``
against the source pod, streams the archive into the mounted PVC, and is
garbage collected by the cluster an hour after it finishes.
"""

from __future__ import annotations

import logging
import shlex
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sparkdev._constants import (
    BACKUP_BACKOFF_LIMIT,
    BACKUP_POLL_INTERVAL,
    BACKUP_TIMEOUT_SECONDS,
    BACKUP_TTL_SECONDS,
)
from sparkdev.k8s import K8sClient, K8sError, WaitResult, WaitStatus, wait_for_job_complete

logger = logging.getLogger(__name__)

BACKUP_APP_LABEL = "uptime-kuma-backup"
BACKUP_MOUNT = "/backup"


def default_backup_name(now: datetime | None = None) -> str:
    """Timestamped PVC name, e.g. ``uptime-kuma-backup-20260101-120000``."""
    now = now or datetime.now()
    return f"uptime-kuma-backup-{now.strftime('%Y%m%d-%H%M%S')}"


class BackupConfig(BaseModel):
    """What to back up and where to put it."""

    model_config = ConfigDict(extra="forbid")

    namespace: str = Field(default="uptime-kuma", min_length=1)
    pod: str = Field(default="uptime-kuma-0", min_length=1)
    container: str = Field(default="uptime-kuma", min_length=1)
    source_path: str = Field(default="/app/data", min_length=1)
    size: str = Field(default="5Gi", min_length=1)
    storage_class: str = Field(default="local-path", min_length=1)
    name: str = Field(default_factory=default_backup_name, min_length=1)
    service_account: str = "uptime-kuma"
    image: str = "bitnami/kubectl:latest"
    context: str = ""
    kubeconfig: str = ""

    @property
    def job_name(self) -> str:
        return f"{self.name}-job"


class BackupError(Exception):
    """Base exception for backup errors."""

    pass


class BackupJobFailedError(BackupError):
    """Raised when the copy job fails.

    ``pod_name`` is the job's pod when it could be found; ``hint`` is the
    command that shows its logs.
    """

    def __init__(self, message: str, namespace: str, pod_name: str | None = None):
        super().__init__(message)
        self.namespace = namespace
        self.pod_name = pod_name

    @property
    def hint(self) -> str | None:
        if not self.pod_name:
            return None
        return f"kubectl logs -n {self.namespace} {self.pod_name}"


class BackupTimeoutError(BackupError):
    """Raised when the job does not finish in time. The job is not cancelled."""

    pass


def build_backup_pvc(cfg: BackupConfig, created: date | None = None) -> dict[str, Any]:
    created = created or date.today()
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {
            "name": cfg.name,
            "namespace": cfg.namespace,
            "labels": {"app": BACKUP_APP_LABEL, "created": created.isoformat()},
        },
        "spec": {
            "accessModes": ["ReadWriteOnce"],
            "storageClassName": cfg.storage_class,
            "resources": {"requests": {"storage": cfg.size}},
        },
    }


def build_copy_script(cfg: BackupConfig) -> str:
    """Shell script run by the job container. Every value is shell-quoted."""
    ns = shlex.quote(cfg.namespace)
    pod = shlex.quote(cfg.pod)
    container = shlex.quote(cfg.container)
    source = shlex.quote(cfg.source_path)
    return "\n".join(
        [
            "set -e",
            'echo "Starting backup process..."',
            f"echo Source pod: {pod}",
            f"echo Source path: {source}",
            f"echo Backup destination: {BACKUP_MOUNT}",
            "",
            f"kubectl exec -n {ns} {pod} -c {container} -- tar czf - -C {source} . "
            f"| tar xzf - -C {BACKUP_MOUNT}",
            "",
            'echo "Backup completed successfully!"',
            f"ls -lah {BACKUP_MOUNT}",
            "",
        ]
    )


def build_backup_job(cfg: BackupConfig) -> dict[str, Any]:
    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": {
            "name": cfg.job_name,
            "namespace": cfg.namespace,
            "labels": {"app": BACKUP_APP_LABEL},
        },
        "spec": {
            "backoffLimit": BACKUP_BACKOFF_LIMIT,
            "ttlSecondsAfterFinished": BACKUP_TTL_SECONDS,
            "template": {
                "spec": {
                    "serviceAccountName": cfg.service_account,
                    "restartPolicy": "Never",
                    "containers": [
                        {
                            "name": "backup",
                            "image": cfg.image,
                            "command": ["/bin/sh", "-c", build_copy_script(cfg)],
                            "volumeMounts": [{"name": "backup", "mountPath": BACKUP_MOUNT}],
                        }
                    ],
                    "volumes": [
                        {
                            "name": "backup",
                            "persistentVolumeClaim": {"claimName": cfg.name},
                        }
                    ],
                }
            },
        },
    }


@dataclass
class BackupResult:
    """A completed backup."""

    pvc_name: str
    job_name: str
    namespace: str
    size: str
    wait: WaitResult


class BackupOrchestrator:
    """Creates the backup PVC and copy job, then polls the job to completion."""

    def __init__(
        self,
        k8s: K8sClient,
        progress_callback: Callable[[str, str], None] | None = None,
        timeout_seconds: float = BACKUP_TIMEOUT_SECONDS,
        poll_interval: float = BACKUP_POLL_INTERVAL,
    ):
        self.k8s = k8s
        self._progress = progress_callback
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval

    def _report(self, step: str, message: str) -> None:
        logger.info("%s: %s", step, message)
        if self._progress:
            self._progress(step, message)

    def _job_pod_name(self, cfg: BackupConfig) -> str | None:
        try:
            pods = self.k8s.list_pods(f"job-name={cfg.job_name}", namespace=cfg.namespace)
        except K8sError as e:
            logger.warning("Could not look up pods of job %s: %s", cfg.job_name, e)
            return None
        return pods[0].metadata.name if pods else None

    def run(self, cfg: BackupConfig, cancel: threading.Event | None = None) -> BackupResult:
        """Run a backup end to end.

        Raises:
            BackupError: If the PVC or job cannot be created, or polling is cancelled
            BackupJobFailedError: If the job fails
            BackupTimeoutError: If the job is still running after the timeout
        """
        self._report("pvc", f"Creating backup PVC: {cfg.name}")
        try:
            self.k8s.create_manifest(build_backup_pvc(cfg), namespace=cfg.namespace)
        except K8sError as e:
            raise BackupError(f"Error creating backup PVC: {e}") from e

        self._report("job", "Creating backup job")
        try:
            self.k8s.create_manifest(build_backup_job(cfg), namespace=cfg.namespace)
        except K8sError as e:
            raise BackupError(f"Error creating backup job: {e}") from e

        self._report("wait", "Waiting for backup to complete...")
        result = wait_for_job_complete(
            self.k8s,
            cfg.job_name,
            namespace=cfg.namespace,
            timeout_seconds=self.timeout_seconds,
            poll_interval=self.poll_interval,
            cancel=cancel,
        )

        if result.status == WaitStatus.READY:
            return BackupResult(
                pvc_name=cfg.name,
                job_name=cfg.job_name,
                namespace=cfg.namespace,
                size=cfg.size,
                wait=result,
            )
        if result.status == WaitStatus.FAILED:
            pod_name = self._job_pod_name(cfg)
            message = result.message
            if pod_name:
                message += f" (pod: {pod_name})"
            raise BackupJobFailedError(message, namespace=cfg.namespace, pod_name=pod_name)
        if result.status == WaitStatus.CANCELLED:
            raise BackupError(f"Stopped waiting for job {cfg.job_name}; it is still running")
        raise BackupTimeoutError(
            f"Timeout waiting for job {cfg.job_name} to complete "
            f"after {result.elapsed_seconds:.0f}s; it may still be running"
        )
