"""Spark resource bundle and lifecycle workflows."""

from .cluster import BundleError, DeleteStep, SparkCluster, deletion_order
from .lifecycle import (
    CreateResult,
    DeleteResult,
    SparkCreateError,
    SparkDeleteError,
    SparkError,
    SparkLifecycle,
    SparkNotFoundError,
    SparkNotReadyError,
    SparkStatus,
    SparkSummary,
    StepStatus,
)
from .resources import (
    InvalidRepositoryError,
    SparkResources,
    TemplateRenderer,
    spark_labels,
    spark_selector,
    validate_git_repo,
)

__all__ = [
    # Workflows
    "SparkLifecycle",
    "CreateResult",
    "DeleteResult",
    "SparkSummary",
    "SparkStatus",
    "StepStatus",
    # Cluster
    "SparkCluster",
    "DeleteStep",
    "deletion_order",
    # Resources
    "SparkResources",
    "TemplateRenderer",
    "spark_labels",
    "spark_selector",
    "validate_git_repo",
    # Errors
    "SparkError",
    "SparkCreateError",
    "SparkDeleteError",
    "SparkNotFoundError",
    "SparkNotReadyError",
    "BundleError",
    "InvalidRepositoryError",
]
