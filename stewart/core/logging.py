"""Logging for the audit engine.

Records go to stderr (warnings and above, or everything with ``verbose()``)
and to a rotating ``<name>.log`` under ``Cfg.LOG_DIR``. Each thread carries
its own context (run ID, worker, check) that prefixes its lines, so output
from concurrent probes stays attributable.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import threading
from contextlib import contextmanager, suppress
from typing import Any, Dict, Iterator, Optional

FILE_FORMAT = "[%(asctime)s] [%(levelname)-8s] [%(threadName)s] %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(message)s"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class Log:
    """
    Named logger with thread-local context.

    ``Log(name)`` returns the same instance for the same name.

    Example:
        >>> with LOG.scope(worker=3, check="PS-001"):
        ...     LOG.d("> Get-Service")
        # [worker=3, check=PS-001] > Get-Service

    Thread-safe: Yes
    """

    _instances: Dict[str, "Log"] = {}
    _lock = threading.RLock()

    def __new__(cls, name: str) -> "Log":
        with cls._lock:
            inst = cls._instances.get(name)
            if inst is None:
                inst = super().__new__(cls)
                inst._build(name)
                cls._instances[name] = inst
            return inst

    def _build(self, name: str) -> None:
        self.name = name
        self._ctx = threading.local()
        self.log = logging.getLogger(name)
        self.log.setLevel(logging.INFO)
        self.log.handlers.clear()
        self.log.propagate = False

        self.console = logging.StreamHandler(sys.stderr)
        self.console.setLevel(logging.WARNING)
        self.console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        self.log.addHandler(self.console)

        handler = self._file_handler()
        if handler is not None:
            self.log.addHandler(handler)

    def _file_handler(self) -> Optional[logging.Handler]:
        # Import here to avoid circular dependency
        from stewart.core.config import Cfg

        if Cfg.LOG_DIR is None:
            return None
        # A read-only log directory must not stop an audit
        with suppress(OSError):
            handler = logging.handlers.RotatingFileHandler(
                str(Cfg.LOG_DIR / f"{self.name}.log"),
                maxBytes=MAX_LOG_BYTES,
                backupCount=LOG_BACKUPS,
                encoding="utf-8",
                delay=True,
            )
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter(FILE_FORMAT, "%Y-%m-%d %H:%M:%S"))
            return handler
        return None

    def verbose(self, on: bool = True) -> None:
        """Send debug records to the console too (``on=False`` restores the defaults)."""
        self.log.setLevel(logging.DEBUG if on else logging.INFO)
        self.console.setLevel(logging.DEBUG if on else logging.WARNING)

    # ------------------------------------------------------------------ context
    @property
    def _data(self) -> Dict[str, Any]:
        data = getattr(self._ctx, "data", None)
        if data is None:
            data = self._ctx.data = {}
        return data

    def ctx(self, **kw: Any) -> None:
        """Tag this thread's subsequent lines with ``kw``."""
        self._data.update(kw)

    def clear(self) -> None:
        self._data.clear()

    @contextmanager
    def scope(self, **kw: Any) -> Iterator[None]:
        """Tag lines with ``kw`` for the duration of the block, then restore the previous tags."""
        saved = dict(self._data)
        self._data.update(kw)
        try:
            yield
        finally:
            self._ctx.data = saved

    def _context_str(self) -> str:
        data = self._data
        if not data:
            return ""
        return "[" + ", ".join(f"{k}={v}" for k, v in data.items()) + "] "

    # ------------------------------------------------------------------ records
    def _log(self, level: int, message: str, exc: bool = False) -> None:
        if not self.log.isEnabledFor(level):
            return
        self.log.log(level, self._context_str() + str(message), exc_info=exc)

    def d(self, msg: str) -> None:
        self._log(logging.DEBUG, msg)

    def i(self, msg: str) -> None:
        self._log(logging.INFO, msg)

    def w(self, msg: str) -> None:
        self._log(logging.WARNING, msg)

    def e(self, msg: str, exc: bool = False) -> None:
        """Log an error; ``exc=True`` attaches the active traceback."""
        self._log(logging.ERROR, msg, exc)

    def c(self, msg: str, exc: bool = False) -> None:
        self._log(logging.CRITICAL, msg, exc)

    debug = d
    info = i
    warning = w
    error = e
    critical = c


LOG = Log("stewart")
