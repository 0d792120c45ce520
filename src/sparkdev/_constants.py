"""Shared constants for sparkdev."""

# Namespace holding every spark bundle unless overridden by SPARK_NAMESPACE
SPARK_NAMESPACE = "spark"

# Label selector shared by every resource in a bundle.
SPARK_APP_LABEL = "spark"
SPARK_NAME_LABEL = "spark-name"

# Login user created by the provisioning script. UID/GID match the pod fsGroup.
SPARK_USER = "user"
SPARK_UID = 1000

SPARK_IMAGE = "debian:bookworm"
SPARK_STORAGE_SIZE = "10Gi"
SPARK_SSH_PORT = 22

# Overlay network (Tailscale) load balancer settings for the SSH service.
TAILSCALE_LB_CLASS = "tailscale"
TAILSCALE_HOSTNAME_ANNOTATION = "tailscale.com/hostname"

DEFAULT_DOTFILES_REPO = "https://github.com/t-eckert/dotfiles.git"

# Readiness polling: 60 attempts x 2s ~= 120s
READY_POLL_ATTEMPTS = 60
READY_POLL_INTERVAL = 2

# Backup job polling
BACKUP_POLL_INTERVAL = 2
BACKUP_TIMEOUT_SECONDS = 300
BACKUP_BACKOFF_LIMIT = 3
BACKUP_TTL_SECONDS = 3600
