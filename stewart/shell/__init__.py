"""Interactive shell backend.

Key Components:
    - ShellDialect: how to start a shell and frame commands for it
    - ShellWorker: one persistent shell process with sentinel framing
    - WorkerPool: bounded fleet of workers with batch dispatch
"""

from __future__ import annotations

from stewart.shell.dialect import PosixDialect, PowerShellDialect, ShellDialect, default_dialect
from stewart.shell.pool import WorkerPool
from stewart.shell.worker import ShellWorker

__all__ = [
    "PosixDialect",
    "PowerShellDialect",
    "ShellDialect",
    "default_dialect",
    "ShellWorker",
    "WorkerPool",
]
