"""Audit store and the check/secure flows that use it."""

from __future__ import annotations

from stewart.audit.session import AuditSession
from stewart.audit.store import AuditStore

__all__ = ["AuditSession", "AuditStore"]
