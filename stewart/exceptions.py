"""Custom exception classes for Stewart.

All exceptions raised by the package inherit from StewartError so callers can
catch one type at the outer boundary. Per-check problems are never raised;
they travel on CheckResult/SecureResult as an ErrorKind.
"""

from __future__ import annotations
from typing import Optional, Dict, Any


class StewartError(Exception):
    """Base exception with context.

    Attributes:
        msg: The error message
        ctx: Optional dictionary of contextual information (e.g., bank path, run ID)
    """

    def __init__(self, msg: str, ctx: Optional[Dict[str, Any]] = None):
        super().__init__(msg)
        self.msg = msg
        self.ctx = ctx or {}

    def __str__(self) -> str:
        if self.ctx:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.ctx.items())
            return f"{self.msg} [{ctx_str}]"
        return self.msg


class ValidationError(StewartError):
    """Raised when an argument or record fails validation."""


class FileError(StewartError):
    """Raised when file operations fail."""


class ParseError(StewartError):
    """Raised when JSON parsing fails."""


class BankError(StewartError):
    """Raised when a vulnerability bank cannot be loaded or is empty."""


class PoolError(StewartError):
    """Raised when a worker pool cannot be initialized or is used after disposal."""


class WorkerError(StewartError):
    """Raised when a shell worker is used after disposal."""


class AuditError(StewartError):
    """Raised when the audit store cannot answer a request (e.g. unknown run ID)."""
