"""Pydantic models for sparkdev configuration.

Values come from the caller's environment (see ``loader.load_config``) and
are threaded explicitly into every workflow.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sparkdev._constants import DEFAULT_DOTFILES_REPO, SPARK_NAMESPACE

# =============================================================================
# Secrets
# =============================================================================


class SecretsConfig(BaseModel):
    """Credentials copied verbatim into each spark's Secret and ConfigMap."""

    model_config = ConfigDict(hide_input_in_errors=True)

    anthropic_api_key: str = Field(min_length=1)
    github_token: str = ""
    github_user: str = ""
    ssh_public_key: str = Field(min_length=1)

    @field_validator("ssh_public_key")
    @classmethod
    def ensure_trailing_newline(cls, v: str) -> str:
        """authorized_keys entries must be newline-terminated."""
        return v if v.endswith("\n") else v + "\n"


# =============================================================================
# Shared PostgreSQL server
# =============================================================================


class PostgresConfig(BaseModel):
    """Connection parameters for the shared database server."""

    model_config = ConfigDict(hide_input_in_errors=True)

    host: str = "postgres.postgres.svc.cluster.local"
    port: str = "5432"
    user: str = "spark"
    password: str = Field(min_length=1)
    database: str = "homelab"  # administrative database used for CREATE/DROP

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: str) -> str:
        if not v.isdigit() or not 0 < int(v) < 65536:
            raise ValueError(f"invalid port: {v!r}")
        return v


# =============================================================================
# Kubernetes
# =============================================================================


class KubernetesConfig(BaseModel):
    """Kubernetes connection and namespace configuration."""

    context: str = ""  # Empty = use current context
    namespace: str = SPARK_NAMESPACE


# =============================================================================
# Root
# =============================================================================


class SparkConfig(BaseModel):
    """Complete configuration for the spark workflows."""

    secrets: SecretsConfig
    postgres: PostgresConfig
    kubernetes: KubernetesConfig = Field(default_factory=KubernetesConfig)
    dotfiles_repo: str = DEFAULT_DOTFILES_REPO
