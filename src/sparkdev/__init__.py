"""Sparkdev: ephemeral per-user development environments on Kubernetes."""

__version__ = "0.3.0"
