"""Sparkdev configuration module."""

from .loader import (
    ConfigError,
    ConfigValidationError,
    SSHKeyNotFoundError,
    default_ssh_key_path,
    load_config,
    read_ssh_public_key,
)
from .schema import KubernetesConfig, PostgresConfig, SecretsConfig, SparkConfig

__all__ = [
    # Config classes
    "SparkConfig",
    "SecretsConfig",
    "PostgresConfig",
    "KubernetesConfig",
    # Loader functions
    "load_config",
    "read_ssh_public_key",
    "default_ssh_key_path",
    # Exceptions
    "ConfigError",
    "ConfigValidationError",
    "SSHKeyNotFoundError",
]
