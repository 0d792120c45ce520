"""Configuration loader for sparkdev.

Configuration is read from environment variables. Empty values are treated
as unset so that ``FOO=`` in a shell profile falls back to the default.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .schema import SparkConfig

# Environment variable -> (section, field)
ENV_FIELDS: dict[str, tuple[str, str]] = {
    "ANTHROPIC_API_KEY": ("secrets", "anthropic_api_key"),
    "GITHUB_TOKEN": ("secrets", "github_token"),
    "GITHUB_USER": ("secrets", "github_user"),
    "POSTGRES_HOST": ("postgres", "host"),
    "POSTGRES_PORT": ("postgres", "port"),
    "POSTGRES_USER": ("postgres", "user"),
    "POSTGRES_PASSWORD": ("postgres", "password"),
    "POSTGRES_DB": ("postgres", "database"),
    "SPARK_NAMESPACE": ("kubernetes", "namespace"),
    "KUBE_CONTEXT": ("kubernetes", "context"),
}

# Friendly names for required fields so errors point at the variable to set
REQUIRED_ENV = {
    ("secrets", "anthropic_api_key"): "ANTHROPIC_API_KEY",
    ("postgres", "password"): "POSTGRES_PASSWORD",
}


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class SSHKeyNotFoundError(ConfigError):
    """Raised when the SSH public key file cannot be read."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


def default_ssh_key_path() -> Path:
    """Return ~/.ssh/id_ed25519.pub for the current user."""
    return Path.home() / ".ssh" / "id_ed25519.pub"


def read_ssh_public_key(path: str | Path) -> str:
    """Read an SSH public key file.

    Raises:
        SSHKeyNotFoundError: If the file is missing or unreadable
    """
    path = Path(path).expanduser()
    try:
        return path.read_text()
    except OSError as e:
        raise SSHKeyNotFoundError(  # noqa: B904
            f"Failed to read SSH public key from {path}: {e}"
        )


def _env_value(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key, "")
    return value if value else None


def load_config(env: Mapping[str, str] | None = None) -> SparkConfig:
    """Load and validate configuration from environment variables.

    Args:
        env: Environment mapping (default: ``os.environ``)

    Returns:
        Validated SparkConfig object

    Raises:
        SSHKeyNotFoundError: If the SSH public key cannot be read
        ConfigValidationError: If a required variable is missing or invalid
    """
    if env is None:
        env = os.environ

    data: dict[str, dict[str, Any]] = {"secrets": {}, "postgres": {}, "kubernetes": {}}
    for key, (section, field_name) in ENV_FIELDS.items():
        value = _env_value(env, key)
        if value is not None:
            data[section][field_name] = value

    # Required variables are reported before touching the filesystem
    missing = [var for (section, name), var in REQUIRED_ENV.items() if name not in data[section]]
    if missing:
        raise ConfigValidationError(
            "Missing required environment variables: " + ", ".join(missing),
            errors=[{"loc": (var,), "msg": "required"} for var in missing],
        )

    key_path = _env_value(env, "SSH_PUBLIC_KEY_PATH") or default_ssh_key_path()
    data["secrets"]["ssh_public_key"] = read_ssh_public_key(key_path)

    dotfiles = env.get("SPARK_DOTFILES_REPO")
    if dotfiles is not None:
        # An explicitly empty value disables the dotfiles clone
        data["dotfiles_repo"] = dotfiles  # type: ignore[assignment]

    try:
        return SparkConfig.model_validate(data)
    except ValidationError as e:
        errors = e.errors(include_input=False)
        error_messages = []
        for err in errors:
            loc = ".".join(str(x) for x in err["loc"])
            error_messages.append(f"  - {loc}: {err['msg']}")

        raise ConfigValidationError(  # noqa: B904
            "Configuration validation failed:\n" + "\n".join(error_messages),
            errors=[dict(e) for e in errors],  # type: ignore[call-overload]
        )
