"""Sparkdev CLI."""

from __future__ import annotations

import copy
import logging
from typing import Annotated, Any

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from sparkdev import __version__
from sparkdev.config import ConfigError, ConfigValidationError, SparkConfig, load_config
from sparkdev.spark import (
    InvalidRepositoryError,
    SparkCreateError,
    SparkDeleteError,
    SparkError,
    SparkLifecycle,
    SparkNotFoundError,
    SparkNotReadyError,
    SparkStatus,
    StepStatus,
)

logger = logging.getLogger(__name__)

MASK = "********"

app = typer.Typer(
    name="spark",
    help="Create and manage ephemeral development environments on Kubernetes",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    epilog="[dim]Workflow: create -> shell -> delete[/dim]",
)

console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]OK[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]ERROR[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]WARN[/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]...[/blue] {message}")


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich. DEBUG with --verbose, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose)],
        force=True,
    )


def on_progress(step: str, status: StepStatus, message: str) -> None:
    if status == StepStatus.IN_PROGRESS:
        print_info(message)
    elif status == StepStatus.SUCCESS:
        print_success(message)
    elif status == StepStatus.FAILED:
        print_error(message)
    elif status == StepStatus.WARNING:
        print_warning(message)


def require_config() -> SparkConfig:
    """Load configuration from the environment or exit with the reason."""
    try:
        return load_config()
    except ConfigValidationError as e:
        print_error(str(e))
        for err in e.errors:
            loc = ".".join(str(x) for x in err["loc"])
            console.print(f"  [red]•[/red] {loc}: {err['msg']}")
        raise typer.Exit(1)  # noqa: B904
    except ConfigError as e:
        print_error(f"Config error: {e}")
        raise typer.Exit(1)  # noqa: B904


def mask_bundle(bundle: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Copy of a bundle with every non-empty Secret value masked."""
    masked = copy.deepcopy(bundle)
    for manifest in masked:
        if manifest.get("kind") != "Secret":
            continue
        for field in ("stringData", "data"):
            values = manifest.get(field) or {}
            for key, value in values.items():
                if value:
                    values[key] = MASK
    return masked


def bundle_to_yaml(bundle: list[dict[str, Any]]) -> str:
    return yaml.safe_dump_all(mask_bundle(bundle), default_flow_style=False, sort_keys=False)


# =============================================================================
# Commands
# =============================================================================


@app.callback()
def callback(
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging",
        ),
    ] = False,
) -> None:
    configure_logging(verbose)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"Sparkdev version {__version__}")


@app.command()
def create(
    repo: Annotated[
        str | None,
        typer.Option(
            "--repo",
            "-r",
            help="Git repository to clone into ~/project",
        ),
    ] = None,
    no_connect: Annotated[
        bool,
        typer.Option(
            "--no-connect",
            help="Do not open an SSH session once the spark is ready",
        ),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Print the resources that would be created and exit",
        ),
    ] = False,
) -> None:
    """Create a new spark.

    Creates a PostgreSQL database, then the ConfigMap, Secret, PVC,
    Service and Deployment, waits for the pod and connects over SSH.
    """
    cfg = require_config()
    lifecycle = SparkLifecycle(cfg, progress_callback=None if dry_run else on_progress)

    try:
        result = lifecycle.create(git_repo=repo, connect=not no_connect, dry_run=dry_run)
    except InvalidRepositoryError as e:
        print_error(str(e))
        raise typer.Exit(1)  # noqa: B904
    except SparkCreateError as e:
        print_error(str(e))
        raise typer.Exit(1)  # noqa: B904

    if dry_run:
        console.print(f"# Spark: {result.name}")
        console.print(
            bundle_to_yaml(result.bundle),
            markup=False,
            emoji=False,
            highlight=False,
            soft_wrap=True,
        )


@app.command()
def delete(
    name: Annotated[str, typer.Argument(help="Name of the spark to delete")],
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Skip confirmation prompt",
        ),
    ] = False,
) -> None:
    """Delete a spark and its database."""
    cfg = require_config()

    if not force:
        console.print(
            Panel(
                f"[red]WARNING[/red]: This will delete spark [bold]{name}[/bold], "
                "its home volume and its database",
                title="Confirm Deletion",
                expand=False,
            )
        )
        if not typer.confirm("Are you sure you want to proceed?"):
            print_info("Deletion cancelled")
            raise typer.Exit(0)

    lifecycle = SparkLifecycle(cfg, progress_callback=on_progress)
    try:
        lifecycle.delete(name)
    except SparkNotFoundError as e:
        print_error(str(e))
        raise typer.Exit(1)  # noqa: B904
    except SparkDeleteError as e:
        print_error(str(e))
        print_info(f"Re-run 'spark delete {name}' once the cause is fixed")
        raise typer.Exit(1)  # noqa: B904

    print_success(f"Spark {name} deleted successfully!")


@app.command(name="list")
def list_sparks() -> None:
    """List all sparks and their status."""
    cfg = require_config()
    lifecycle = SparkLifecycle(cfg)

    try:
        sparks = lifecycle.list()
    except SparkError as e:
        print_error(str(e))
        raise typer.Exit(1)  # noqa: B904

    if not sparks:
        console.print("No sparks found")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("SSH")
    table.add_column("Database")

    styles = {
        SparkStatus.READY: "green",
        SparkStatus.NOT_READY: "yellow",
        SparkStatus.UNKNOWN: "red",
    }
    for spark in sparks:
        style = styles[spark.status]
        table.add_row(
            spark.name,
            f"[{style}]{spark.status.value}[/{style}]",
            f"ssh {spark.ssh_target}",
            spark.database,
        )
    console.print(table)


@app.command()
def shell(
    name: Annotated[str, typer.Argument(help="Name of the spark to connect to")],
) -> None:
    """Open an SSH session to a spark."""
    cfg = require_config()
    lifecycle = SparkLifecycle(cfg, progress_callback=on_progress)

    try:
        code = lifecycle.shell(name)
    except SparkNotReadyError as e:
        print_warning(str(e))
        raise typer.Exit(1)  # noqa: B904
    except SparkError as e:
        print_error(str(e))
        raise typer.Exit(1)  # noqa: B904

    if code != 0:
        raise typer.Exit(code)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
