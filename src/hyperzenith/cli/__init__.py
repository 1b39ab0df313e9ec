"""
Command-line interface for the hyperzenith package.

This module provides the main CLI entry point.
"""

from .main import main_cli

__all__ = [
    "main_cli",
]
