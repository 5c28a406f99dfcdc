"""St3wart - host security-compliance auditing engine.

Evaluates a bank of declarative vulnerability checks against the live
machine (shell-queryable state, registry values, files), reports pass/fail
per check, and replays the same checks as remediation ("secure") actions.

Package Structure:
    core/       - Core infrastructure (constants, config, logging, state, deps)
    checks/     - Check variants, result records and the operator evaluator
    shell/      - Interactive shell workers and the worker pool
    probes/     - Registry and file probes
    dispatch/   - Backend partitioning and concurrent dispatch
    bank/       - Vulnerability bank loading (JSON)
    audit/      - Exemption list, run log and the check/secure sessions
    io/         - File operations (atomic writes, encoding detection)
    ui/         - Command-line interface
"""

from __future__ import annotations

from stewart.core.constants import VERSION, BUILD_DATE, APP_NAME
from stewart.exceptions import (
    StewartError,
    ValidationError,
    FileError,
    ParseError,
    BankError,
    PoolError,
    WorkerError,
    AuditError,
)

__version__ = VERSION
__build_date__ = BUILD_DATE
__app_name__ = APP_NAME

__all__ = [
    "VERSION",
    "BUILD_DATE",
    "APP_NAME",
    "StewartError",
    "ValidationError",
    "FileError",
    "ParseError",
    "BankError",
    "PoolError",
    "WorkerError",
    "AuditError",
]
