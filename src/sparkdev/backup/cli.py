"""spark-backup CLI: snapshot a pod's data directory into a new PVC."""

from __future__ import annotations

from typing import Annotated

import typer
from pydantic import ValidationError

from sparkdev.cli import configure_logging, console, print_error, print_info, print_success
from sparkdev.k8s import K8sConnectionError, get_k8s_client

from .job import (
    BackupConfig,
    BackupError,
    BackupJobFailedError,
    BackupOrchestrator,
    BackupTimeoutError,
    default_backup_name,
)

app = typer.Typer(
    name="spark-backup",
    help="Back up a pod's data directory into a new PersistentVolumeClaim",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.command()
def backup(
    namespace: Annotated[
        str, typer.Option("--namespace", "-n", help="Namespace of the source pod")
    ] = "uptime-kuma",
    pod: Annotated[str, typer.Option("--pod", help="Name of the source pod")] = "uptime-kuma-0",
    container: Annotated[
        str, typer.Option("--container", help="Container in the source pod")
    ] = "uptime-kuma",
    source: Annotated[
        str, typer.Option("--source", help="Directory to back up inside the container")
    ] = "/app/data",
    size: Annotated[str, typer.Option("--size", help="Size of the backup PVC")] = "5Gi",
    storage_class: Annotated[
        str, typer.Option("--storage-class", help="Storage class of the backup PVC")
    ] = "local-path",
    name: Annotated[
        str | None,
        typer.Option("--name", help="Backup PVC name (default: timestamped)"),
    ] = None,
    kubeconfig: Annotated[
        str, typer.Option("--kubeconfig", help="Path to kubeconfig file")
    ] = "",
    context: Annotated[
        str, typer.Option("--context", help="Kubeconfig context to use")
    ] = "",
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Create a backup PVC and a one-shot copy job, then wait for it."""
    configure_logging(verbose)

    try:
        cfg = BackupConfig(
            namespace=namespace,
            pod=pod,
            container=container,
            source_path=source,
            size=size,
            storage_class=storage_class,
            name=name or default_backup_name(),
            context=context,
            kubeconfig=kubeconfig,
        )
    except ValidationError as e:
        print_error("Invalid backup options:")
        for err in e.errors():
            loc = ".".join(str(x) for x in err["loc"])
            console.print(f"  [red]•[/red] {loc}: {err['msg']}")
        raise typer.Exit(1)  # noqa: B904

    try:
        k8s = get_k8s_client(
            context=cfg.context, namespace=cfg.namespace, kubeconfig=cfg.kubeconfig
        )
    except K8sConnectionError as e:
        print_error(f"Kubernetes connection failed: {e}")
        raise typer.Exit(1)  # noqa: B904

    def on_progress(step: str, message: str) -> None:
        print_info(message)

    orchestrator = BackupOrchestrator(k8s, progress_callback=on_progress)
    try:
        result = orchestrator.run(cfg)
    except BackupJobFailedError as e:
        print_error(f"Backup job failed: {e}")
        if e.hint:
            print_info(f"Check logs with: {e.hint}")
        raise typer.Exit(1)  # noqa: B904
    except BackupTimeoutError as e:
        print_error(str(e))
        print_info(f"Check progress with: kubectl get job -n {cfg.namespace} {cfg.job_name}")
        raise typer.Exit(1)  # noqa: B904
    except BackupError as e:
        print_error(str(e))
        raise typer.Exit(1)  # noqa: B904

    print_success("Backup completed successfully!")
    console.print("\nBackup details:")
    console.print(f"  PVC Name:  {result.pvc_name}")
    console.print(f"  Namespace: {result.namespace}")
    console.print(f"  Size:      {result.size}")
    console.print(f"\nTo restore from this backup, mount the PVC '{result.pvc_name}' to a pod.")


def main() -> None:
    """Main entry point for spark-backup."""
    app()


if __name__ == "__main__":
    main()
