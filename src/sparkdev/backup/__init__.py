"""Backup job orchestration."""

from .job import (
    BackupConfig,
    BackupError,
    BackupJobFailedError,
    BackupOrchestrator,
    BackupResult,
    BackupTimeoutError,
    build_backup_job,
    build_backup_pvc,
    build_copy_script,
    default_backup_name,
)

__all__ = [
    "BackupConfig",
    "BackupOrchestrator",
    "BackupResult",
    "build_backup_pvc",
    "build_backup_job",
    "build_copy_script",
    "default_backup_name",
    # Errors
    "BackupError",
    "BackupJobFailedError",
    "BackupTimeoutError",
]
