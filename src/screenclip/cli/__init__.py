"""
Command-line interface for the screenclip package.

This module provides the main CLI entry point for the screenshot watcher.
"""

from .main import main, main_cli

__all__ = [
    "main",
    "main_cli",
]
