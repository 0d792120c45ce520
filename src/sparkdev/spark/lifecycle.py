"""Spark lifecycle workflows: create, delete, list and shell.

Create order:
1. Pick an unused name
2. Create the spark's database on the shared server
3. Build the five-resource bundle
4. Submit ConfigMap -> Secret -> PVC -> Service -> Deployment
5. Poll for a Running pod (60 x 2s)
6. Open an SSH session

If anything after step 2 fails the database is dropped again. Cluster
resources created before the failure are left for ``delete`` to clean up.
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sparkdev._constants import READY_POLL_ATTEMPTS, READY_POLL_INTERVAL
from sparkdev.config import SparkConfig
from sparkdev.db import DatabaseError, PostgresAdmin, build_connection_uri
from sparkdev.k8s import K8sError, WaitResult, WaitStatus, get_k8s_client
from sparkdev.names import (
    NameExhaustedError,
    generate_name,
    generate_unique_name,
    is_spark_name,
)
from sparkdev.ssh import ShellError, open_shell, ssh_target

from .cluster import DeleteStep, SparkCluster
from .resources import SparkResources, TemplateRenderer, validate_git_repo

logger = logging.getLogger(__name__)


class SparkError(Exception):
    """Base exception for spark workflow errors."""

    pass


class SparkCreateError(SparkError):
    """Raised when the create workflow fails."""

    pass


class SparkDeleteError(SparkError):
    """Raised when the delete workflow fails."""

    pass


class SparkNotFoundError(SparkError):
    """Raised when the named spark does not exist."""

    pass


class SparkNotReadyError(SparkError):
    """Raised when a spark exists but its pod is not running."""

    pass


class StepStatus(Enum):
    """Status of a workflow step, as reported to the progress callback."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    WARNING = "warning"
    FAILED = "failed"


class SparkStatus(str, Enum):
    """Display status of a listed spark."""

    READY = "Ready"
    NOT_READY = "Not Ready"
    UNKNOWN = "Unknown"


ProgressCallback = Callable[[str, StepStatus, str], None]
DatabaseFactory = Callable[[], PostgresAdmin]
ShellRunner = Callable[[str], int]


@dataclass
class CreateResult:
    """Outcome of the create workflow."""

    name: str
    database: str
    ssh_target: str
    git_repo: str = ""
    created: list[str] = field(default_factory=list)
    wait: WaitResult | None = None
    connected: bool = False
    dry_run: bool = False
    bundle: list[dict[str, Any]] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return self.wait is not None and self.wait.status == WaitStatus.READY


@dataclass
class DeleteResult:
    """Outcome of the delete workflow."""

    name: str
    steps: list[DeleteStep]
    database_dropped: bool


@dataclass
class SparkSummary:
    """One row of ``list`` output."""

    name: str
    status: SparkStatus
    ssh_target: str
    database: str
    error: str = ""


class SparkLifecycle:
    """Sequences database, bundle and cluster calls for each workflow.

    Collaborators are injected so tests can substitute mocks; by default
    they are built from the configuration on first use.
    """

    def __init__(
        self,
        config: SparkConfig,
        cluster: SparkCluster | None = None,
        db_factory: DatabaseFactory | None = None,
        shell_runner: ShellRunner | None = None,
        progress_callback: ProgressCallback | None = None,
        ready_attempts: int = READY_POLL_ATTEMPTS,
        ready_interval: float = READY_POLL_INTERVAL,
        rng: random.Random | None = None,
    ):
        self.config = config
        self._cluster = cluster
        self._db_factory = db_factory or (lambda: PostgresAdmin.from_config(config.postgres))
        self._shell_runner = shell_runner or open_shell
        self._progress = progress_callback
        self.ready_attempts = ready_attempts
        self.ready_interval = ready_interval
        self._rng = rng
        self.renderer = TemplateRenderer()

    @property
    def cluster(self) -> SparkCluster:
        """Cluster orchestrator, connected on first use."""
        if self._cluster is None:
            k8s_cfg = self.config.kubernetes
            k8s = get_k8s_client(context=k8s_cfg.context, namespace=k8s_cfg.namespace)
            self._cluster = SparkCluster(k8s, namespace=k8s_cfg.namespace)
        return self._cluster

    def _report(self, step: str, status: StepStatus, message: str) -> None:
        if status == StepStatus.FAILED:
            logger.error("%s: %s", step, message)
        elif status == StepStatus.WARNING:
            logger.warning("%s: %s", step, message)
        else:
            logger.info("%s: %s", step, message)
        if self._progress:
            self._progress(step, status, message)

    # -------------------------------------------------------------------------
    # create
    # -------------------------------------------------------------------------

    def _pick_name(self, dry_run: bool) -> str:
        if dry_run:
            return generate_name(self._rng)
        try:
            existing = self.cluster.list_sparks()
        except K8sError as e:
            raise SparkCreateError(f"Failed to list existing sparks: {e}") from e
        try:
            return generate_unique_name(existing, rng=self._rng)
        except NameExhaustedError as e:
            raise SparkCreateError(str(e)) from e

    def _resources_for(self, name: str, git_repo: str) -> SparkResources:
        cfg = self.config
        pg = cfg.postgres
        return SparkResources(
            name=name,
            database_url=build_connection_uri(pg.host, pg.port, pg.user, pg.password, name),
            anthropic_api_key=cfg.secrets.anthropic_api_key,
            ssh_public_key=cfg.secrets.ssh_public_key,
            git_repo=git_repo,
            github_token=cfg.secrets.github_token,
            github_user=cfg.secrets.github_user,
            dotfiles_repo=cfg.dotfiles_repo,
            namespace=cfg.kubernetes.namespace,
        )

    def _drop_after_failure(self, db: PostgresAdmin, name: str) -> str:
        """Compensate for a failed create by dropping the new database.

        Returns:
            Text appended to the create error describing the rollback
        """
        self._report("rollback", StepStatus.IN_PROGRESS, f"Dropping database {name}...")
        try:
            db.drop_database(name)
        except DatabaseError as e:
            self._report("rollback", StepStatus.FAILED, f"Could not drop database {name}: {e}")
            return f"; database {name} was NOT dropped ({e})"
        self._report("rollback", StepStatus.SUCCESS, f"Database {name} dropped")
        return f"; database {name} dropped"

    def create(
        self,
        git_repo: str | None = None,
        connect: bool = True,
        dry_run: bool = False,
        cancel: threading.Event | None = None,
    ) -> CreateResult:
        """Create a spark.

        Args:
            git_repo: Repository to clone into the spark
            connect: Open an SSH session once the pod is running
            dry_run: Build the bundle without touching the database or cluster
            cancel: Event that ends readiness polling early

        Returns:
            CreateResult. A spark whose pod did not become ready in time is
            still a successful create (``result.ready`` is False).

        Raises:
            InvalidRepositoryError: If ``git_repo`` is rejected
            SparkCreateError: If the database or any cluster resource
                cannot be created
        """
        git_repo = git_repo or ""
        if git_repo:
            validate_git_repo(git_repo)

        name = self._pick_name(dry_run)
        self._report("name", StepStatus.SUCCESS, f"Creating spark: {name}")
        resources = self._resources_for(name, git_repo)
        result = CreateResult(
            name=name,
            database=name,
            ssh_target=ssh_target(name),
            git_repo=git_repo,
            dry_run=dry_run,
        )

        if dry_run:
            result.bundle = resources.build_bundle(self.renderer)
            self._report("bundle", StepStatus.SUCCESS, f"Would create {len(result.bundle)} resources")
            return result

        with self._db_factory() as db:
            self._report("database", StepStatus.IN_PROGRESS, "Creating PostgreSQL database...")
            try:
                db.ping()
                db.create_database(name)
            except DatabaseError as e:
                self._report("database", StepStatus.FAILED, str(e))
                raise SparkCreateError(f"Failed to create database {name}: {e}") from e
            self._report("database", StepStatus.SUCCESS, f"Database created: {name}")

            self._report("cluster", StepStatus.IN_PROGRESS, "Creating Kubernetes resources...")
            try:
                result.bundle = resources.build_bundle(self.renderer)
                result.created = self.cluster.create_bundle(result.bundle)
            except Exception as e:
                self._report("cluster", StepStatus.FAILED, str(e))
                rollback = self._drop_after_failure(db, name)
                if isinstance(e, K8sError):
                    raise SparkCreateError(f"Failed to create spark {name}: {e}{rollback}") from e
                raise
            self._report("cluster", StepStatus.SUCCESS, "Spark created successfully!")

        self._report("wait", StepStatus.IN_PROGRESS, "Waiting for pod to be ready...")
        result.wait = self.cluster.wait_until_running(
            name, self.ready_attempts, self.ready_interval, cancel=cancel
        )
        if not result.ready:
            self._report(
                "wait",
                StepStatus.WARNING,
                f"Spark created but pod is not ready yet ({result.wait.message}). "
                f"You can connect later with: spark shell {name}",
            )
            return result

        details = [
            "Pod is ready!",
            f"  Name:     {name}",
            f"  Database: {name}",
            f"  SSH:      ssh {result.ssh_target}",
        ]
        if git_repo:
            details.append(f"  Git Repo: {git_repo}")
        self._report("wait", StepStatus.SUCCESS, "\n".join(details))

        if connect:
            result.connected = self._connect_after_create(result.ssh_target)
        return result

    def _connect_after_create(self, target: str) -> bool:
        self._report("shell", StepStatus.IN_PROGRESS, "Connecting to spark...")
        try:
            code = self._shell_runner(target)
        except ShellError as e:
            self._report(
                "shell",
                StepStatus.WARNING,
                f"Failed to SSH into spark: {e}. Try connecting manually with: ssh {target}",
            )
            return False
        if code != 0:
            self._report(
                "shell",
                StepStatus.WARNING,
                f"SSH exited with status {code}. Try connecting manually with: ssh {target}",
            )
            return False
        return True

    # -------------------------------------------------------------------------
    # delete
    # -------------------------------------------------------------------------

    def _owns_database(self, name: str) -> bool:
        return is_spark_name(name) and name != self.config.postgres.database

    def delete(self, name: str) -> DeleteResult:
        """Delete a spark's cluster resources, then its database.

        Resources that are already gone are skipped, so a delete that
        failed halfway can simply be re-run. Any other failure aborts the
        workflow, leaving later resources and the database in place.

        Only databases named like a spark are ever dropped. The configured
        administrative database is never dropped.

        Raises:
            SparkNotFoundError: If neither cluster resources nor a spark
                database exist
            SparkDeleteError: On the first failed deletion
        """
        self._report("cluster", StepStatus.IN_PROGRESS, "Deleting Kubernetes resources...")
        try:
            steps = self.cluster.delete_bundle(name)
        except K8sError as e:
            self._report("cluster", StepStatus.FAILED, str(e))
            raise SparkDeleteError(f"Failed to delete spark {name}: {e}") from e
        removed = [s for s in steps if s.deleted]
        if removed:
            self._report(
                "cluster", StepStatus.SUCCESS, f"Kubernetes resources deleted ({len(removed)})"
            )

        if not self._owns_database(name):
            if not removed:
                raise SparkNotFoundError(f"Spark {name} not found")
            self._report(
                "database", StepStatus.WARNING, f"Not a spark database, leaving {name} in place"
            )
            return DeleteResult(name=name, steps=steps, database_dropped=False)

        self._report("database", StepStatus.IN_PROGRESS, "Deleting PostgreSQL database...")
        with self._db_factory() as db:
            try:
                exists = db.database_exists(name)
                if not exists and not removed:
                    raise SparkNotFoundError(f"Spark {name} not found")
                if exists:
                    db.drop_database(name)
            except DatabaseError as e:
                self._report("database", StepStatus.FAILED, str(e))
                raise SparkDeleteError(f"Failed to delete database {name}: {e}") from e

        if exists:
            self._report("database", StepStatus.SUCCESS, "Database deleted")
        else:
            self._report("database", StepStatus.WARNING, f"Database {name} did not exist")
        return DeleteResult(name=name, steps=steps, database_dropped=exists)

    # -------------------------------------------------------------------------
    # list
    # -------------------------------------------------------------------------

    def list(self) -> list[SparkSummary]:
        """List sparks with their readiness.

        A failed status query marks that one spark Unknown; the rest are
        still listed.
        """
        try:
            names = self.cluster.list_sparks()
        except K8sError as e:
            raise SparkError(f"Failed to list sparks: {e}") from e

        summaries = []
        for name in names:
            try:
                ready = self.cluster.is_ready(name)
            except K8sError as e:
                logger.warning("Could not get status of spark %s: %s", name, e)
                summaries.append(
                    SparkSummary(
                        name=name,
                        status=SparkStatus.UNKNOWN,
                        ssh_target=ssh_target(name),
                        database=name,
                        error=str(e),
                    )
                )
                continue
            summaries.append(
                SparkSummary(
                    name=name,
                    status=SparkStatus.READY if ready else SparkStatus.NOT_READY,
                    ssh_target=ssh_target(name),
                    database=name,
                )
            )
        return summaries

    # -------------------------------------------------------------------------
    # shell
    # -------------------------------------------------------------------------

    def shell(self, name: str) -> int:
        """Open an SSH session to a running spark.

        Returns:
            The ssh exit code

        Raises:
            SparkNotFoundError: If the spark has no pod
            SparkNotReadyError: If its pod is not running
            SparkError: If ssh cannot be started
        """
        try:
            pod = self.cluster.get_spark_pod(name)
        except K8sError as e:
            raise SparkError(f"Failed to look up spark {name}: {e}") from e
        if pod is None:
            raise SparkNotFoundError(f"Spark {name} not found")

        phase = pod.status.phase if pod.status else "Unknown"
        if phase != "Running":
            raise SparkNotReadyError(f"Spark {name} is not running (status: {phase})")

        self._report("shell", StepStatus.IN_PROGRESS, f"Connecting to spark: {name}")
        try:
            return self._shell_runner(ssh_target(name))
        except ShellError as e:
            raise SparkError(f"Failed to SSH into spark: {e}") from e
