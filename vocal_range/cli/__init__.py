"""Command-line interface for Vocal Range."""

from .main import main

__all__ = ["main"]
