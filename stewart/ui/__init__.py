"""Command-line interface."""

from __future__ import annotations

from stewart.ui.cli import main

__all__ = ["main"]
