"""Tests for SSH session helpers."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest


class TestTargets:
    def test_host_and_target(self):
        from sparkdev.ssh import ssh_host, ssh_target

        assert ssh_host("brave-otter") == "spark-brave-otter"
        assert ssh_target("brave-otter") == "user@spark-brave-otter"


class TestOpenShell:
    def test_runs_ssh(self):
        from sparkdev.ssh import open_shell

        with (
            patch("sparkdev.ssh.shutil.which", return_value="/usr/bin/ssh"),
            patch("sparkdev.ssh.subprocess.run", return_value=MagicMock(returncode=0)) as run,
        ):
            assert open_shell("user@spark-brave-otter") == 0
        run.assert_called_once_with(["ssh", "user@spark-brave-otter"])

    def test_exit_code(self):
        from sparkdev.ssh import open_shell

        with (
            patch("sparkdev.ssh.shutil.which", return_value="/usr/bin/ssh"),
            patch("sparkdev.ssh.subprocess.run", return_value=MagicMock(returncode=255)),
        ):
            assert open_shell("user@spark-x") == 255

    def test_ssh_not_installed(self):
        from sparkdev.ssh import ShellError, open_shell

        with patch("sparkdev.ssh.shutil.which", return_value=None):
            with pytest.raises(ShellError, match="not found"):
                open_shell("user@spark-x")

    def test_exec_failure(self):
        from sparkdev.ssh import ShellError, open_shell

        with (
            patch("sparkdev.ssh.shutil.which", return_value="/usr/bin/ssh"),
            patch("sparkdev.ssh.subprocess.run", side_effect=PermissionError("denied")),
        ):
            with pytest.raises(ShellError, match="denied"):
                open_shell("user@spark-x")
