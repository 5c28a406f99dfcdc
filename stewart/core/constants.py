"""Stewart constants module.

This module defines application constants, enumerations, and the timing values
that drive the shell framing protocol and the dispatch concurrency tiers.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple


# ──────────────────────────────────────────────────────────────────────────────
# VERSION INFORMATION
# ──────────────────────────────────────────────────────────────────────────────

VERSION = "1.2.0"
BUILD_DATE = "2026-10-19"
APP_NAME = "St3wart"


# ──────────────────────────────────────────────────────────────────────────────
# FILE OPERATION CONSTANTS
# ──────────────────────────────────────────────────────────────────────────────

MAX_RETRIES = 3  # Number of retry attempts for I/O operations
RETRY_DELAY = 0.5  # Seconds between retries
MAX_BANK_SIZE = 64 * 1024 * 1024  # 64MB - refuse larger vulnerability banks

# Tried in order when a file has no byte-order mark; latin-1 accepts any bytes
ENCODINGS = [
    "utf-8",
    "cp1252",
    "latin-1",
]


# ──────────────────────────────────────────────────────────────────────────────
# SHELL FRAMING PROTOCOL
# ──────────────────────────────────────────────────────────────────────────────

COMMAND_TIMEOUT = 30.0  # Seconds allowed for a command's stdout to reach the sentinel
ERROR_TIMEOUT = 2.0  # Seconds allowed per stderr line
MAX_ERROR_LINES = 5  # Stderr lines kept per command
EXIT_GRACE = 2.0  # Seconds a shell gets to honour "exit" before it is killed
DRAIN_TIMEOUT = 5.0  # Seconds allowed to flush stale output before a respawn
SENTINEL_PREFIX = "###END_ST3WART_COMMAND_"


# ──────────────────────────────────────────────────────────────────────────────
# CONCURRENCY
# ──────────────────────────────────────────────────────────────────────────────

DEFAULT_POOL_SIZE = 5
# (upper bound exclusive, concurrency); counts beyond the last bound use MAX_CONCURRENCY
CONCURRENCY_TIERS: Tuple[Tuple[int, int], ...] = ((5, 1), (15, 5))
MAX_CONCURRENCY = 10


# ──────────────────────────────────────────────────────────────────────────────
# ENUMERATIONS
# ──────────────────────────────────────────────────────────────────────────────


class Operator(str, Enum):
    """Comparison applied between an observed value and a check's FindData.

    The operator names the finding: a check passes when the comparison
    does NOT hold. Exists/NotExists are the exception and name the compliant
    state of the probed object.
    """

    GREATER_THAN = "GreaterThan"
    LESS_THAN = "LessThan"
    EQUAL_TO = "EqualTo"
    NOT_EQUAL_TO = "NotEqualTo"
    CONTAINS = "Contains"
    NOT_CONTAINS = "NotContains"
    EXISTS = "Exists"
    NOT_EXISTS = "NotExists"

    @classmethod
    def parse(cls, value: object) -> Optional["Operator"]:
        """Resolve an operator name, ignoring case and surrounding blanks.

        Returns:
            The matching Operator, or None for unknown names
        """
        if isinstance(value, Operator):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None

    @property
    def is_numeric(self) -> bool:
        return self in (Operator.GREATER_THAN, Operator.LESS_THAN)

    @property
    def is_presence(self) -> bool:
        return self in (Operator.EXISTS, Operator.NOT_EXISTS)


class CheckType(str, Enum):
    """Backend a check is probed with (the bank's CheckType discriminator)."""

    SHELL = "Shell"
    REGISTRY = "Registry"
    FILE = "File"


class ErrorKind(str, Enum):
    """Why a probe could not produce a trustworthy observation.

    Carried on results; none of these are raised as exceptions.
    """

    SPAWN_FAILURE = "SpawnFailure"
    STREAM_TIMEOUT = "StreamTimeout"
    PARSE_FAILURE = "ParseFailure"
    UNKNOWN_OPERATOR = "UnknownOperator"
    UNSUPPORTED_OPERATOR = "UnsupportedOperator"
    MISSING_DATA = "MissingData"
    INVALID_TARGET = "InvalidTarget"
    PROBE_ERROR = "ProbeError"


class WorkerState(str, Enum):
    """Lifecycle of a ShellWorker."""

    UNINITIALIZED = "Uninitialized"
    READY = "Ready"
    BUSY = "Busy"
    DISPOSED = "Disposed"
