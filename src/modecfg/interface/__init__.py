"""
Interface module - External interfaces to modecfg.

This module contains:
- cli.py: Command-line interface for inspection and maintenance
"""

from modecfg.interface.cli import app as cli_app

__all__ = [
    "cli_app",
]
