"""Process-wide shutdown coordination.

Child shells and staged temp files must not outlive the interpreter, whether
it exits normally, on SIGINT/SIGTERM, or through an unhandled exception. Worker
pools register their ``dispose`` here while alive; the atomic writer registers
its temp files while they are staged.
"""

from __future__ import annotations

import atexit
import signal
import sys
import threading
from contextlib import suppress
from pathlib import Path
from typing import Callable, List, Optional

from stewart.core.logging import LOG

# Conventional shell exit status for death by signal: 128 + signal number
_EXIT_CODES = {signal.SIGINT: 130, signal.SIGTERM: 143}


class GlobalState:
    """
    Singleton that runs shutdown work exactly once.

    ``shutdown`` is set as soon as cleanup starts; ``retry`` polls it to stop
    waiting on locked files.

    Thread-safe: Yes
    """

    shutdown: threading.Event
    temps: List[Path]
    cleanups: List[Callable[[], None]]

    _instance: Optional["GlobalState"] = None
    _lock = threading.RLock()

    def __new__(cls) -> "GlobalState":
        with cls._lock:
            if cls._instance is None:
                inst = super().__new__(cls)
                inst.shutdown = threading.Event()
                inst.temps = []
                inst.cleanups = []
                atexit.register(inst.cleanup)
                inst._trap_signals()
                cls._instance = inst
        return cls._instance

    def _on_signal(self, signum, frame) -> None:
        LOG.w(f"Received {signal.Signals(signum).name}, releasing workers")
        self.cleanup()
        sys.exit(_EXIT_CODES.get(signum, 1))

    def _trap_signals(self) -> None:
        # Only the main thread may install handlers; imports from other threads skip this
        if threading.current_thread() is not threading.main_thread():
            return
        for signum in _EXIT_CODES:
            with suppress(OSError, ValueError):
                signal.signal(signum, self._on_signal)

    def add_temp(self, path: Path) -> None:
        with self._lock:
            self.temps.append(path)

    def discard_temp(self, path: Path) -> None:
        with self._lock, suppress(ValueError):
            self.temps.remove(path)

    def add_cleanup(self, func: Callable[[], None]) -> None:
        """Call ``func`` at shutdown unless it is removed first."""
        with self._lock:
            self.cleanups.append(func)

    def remove_cleanup(self, func: Callable[[], None]) -> None:
        with self._lock, suppress(ValueError):
            self.cleanups.remove(func)

    def cleanup(self) -> None:
        """Run cleanups newest first, then delete staged temp files. Later calls do nothing."""
        with self._lock:
            if self.shutdown.is_set():
                return
            self.shutdown.set()
            # dispose() unregisters itself, so work from a detached copy outside the lock
            funcs, self.cleanups = self.cleanups[::-1], []
            temps, self.temps = self.temps, []

        for func in funcs:
            try:
                func()
            except Exception as exc:
                LOG.w(f"Cleanup {getattr(func, '__qualname__', func)} failed: {exc}")

        for temp in temps:
            with suppress(OSError):
                temp.unlink()


GLOBAL_STATE = GlobalState()
