"""
phaseguard CLI Package.

This module exports the CLI entry points.
"""

from phaseguard.cli.main import app, cli

__all__ = [
    "app",
    "cli",
]
