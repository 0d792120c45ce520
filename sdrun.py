#!/usr/bin/env python3
"""Sparkdev CLI entrypoint -- run without pip install.

Usage:
    python sdrun.py create --repo https://github.com/org/repo.git
    python sdrun.py --help
"""

import sys
from pathlib import Path

# Add src/ to import path so the sparkdev package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from sparkdev.cli import app

if __name__ == "__main__":
    app()
