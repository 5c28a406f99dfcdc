"""Core infrastructure modules.

Provides foundational components including constants and enumerations,
configuration, logging, shutdown coordination and platform detection.
"""

from __future__ import annotations

from stewart.core.constants import (
    VERSION,
    BUILD_DATE,
    APP_NAME,
    Operator,
    CheckType,
    ErrorKind,
    WorkerState,
    COMMAND_TIMEOUT,
    ERROR_TIMEOUT,
    MAX_ERROR_LINES,
    EXIT_GRACE,
    DRAIN_TIMEOUT,
    DEFAULT_POOL_SIZE,
    CONCURRENCY_TIERS,
    MAX_CONCURRENCY,
)
from stewart.core.state import GlobalState, GLOBAL_STATE
from stewart.core.deps import Deps
from stewart.core.config import Cfg, CFG
from stewart.core.logging import Log, LOG

__all__ = [
    "VERSION",
    "BUILD_DATE",
    "APP_NAME",
    "Operator",
    "CheckType",
    "ErrorKind",
    "WorkerState",
    "COMMAND_TIMEOUT",
    "ERROR_TIMEOUT",
    "MAX_ERROR_LINES",
    "EXIT_GRACE",
    "DRAIN_TIMEOUT",
    "DEFAULT_POOL_SIZE",
    "CONCURRENCY_TIERS",
    "MAX_CONCURRENCY",
    "GlobalState",
    "GLOBAL_STATE",
    "Deps",
    "Cfg",
    "CFG",
    "Log",
    "LOG",
]
