"""
CLI module for Turnwise.

Provides the command-line interface using Click.
"""

from turnwise.cli.main import cli, main

__all__ = ["main", "cli"]
