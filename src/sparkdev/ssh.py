"""Interactive SSH sessions into sparks."""

from __future__ import annotations

import logging
import shutil
import subprocess

from sparkdev._constants import SPARK_USER

logger = logging.getLogger(__name__)


class ShellError(Exception):
    """Raised when an SSH session cannot be started or exits abnormally."""

    pass


def ssh_host(name: str) -> str:
    """Overlay network hostname of a spark."""
    return f"spark-{name}"


def ssh_target(name: str) -> str:
    """``user@host`` argument for ssh."""
    return f"{SPARK_USER}@{ssh_host(name)}"


def open_shell(target: str, ssh_binary: str = "ssh") -> int:
    """Run ssh attached to the current terminal.

    Args:
        target: ``user@host`` to connect to
        ssh_binary: ssh executable name or path

    Returns:
        The ssh exit code

    Raises:
        ShellError: If ssh is not installed
    """
    if shutil.which(ssh_binary) is None:
        raise ShellError(f"{ssh_binary} not found on PATH")

    logger.debug("Running %s %s", ssh_binary, target)
    try:
        # stdin/stdout/stderr are inherited so the session is interactive
        result = subprocess.run([ssh_binary, target])
    except OSError as e:
        raise ShellError(f"Failed to start {ssh_binary}: {e}")  # noqa: B904
    return result.returncode
