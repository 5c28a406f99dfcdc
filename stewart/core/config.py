"""
Stewart Configuration.

Locates the application tree (logs, backups, audit store) and holds the
retention limits. ``STEWART_HOME`` overrides the home directory search.
"""

from __future__ import annotations

import os
import platform
import sys
import tempfile
import threading
from contextlib import suppress
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

HOME_ENV = "STEWART_HOME"


class Cfg:
    """
    Application configuration and directory management.

    Layout under the first writable home::

        <home>/.stewart/
            logs/          rotating stewart.log
            backups/       copies taken before files are rewritten or deleted
            audit.json     exemptions and recorded runs

    Thread-safe: Yes (uses RLock for initialization)
    """

    IS_WIN = platform.system() == "Windows"
    IS_LIN = platform.system() == "Linux"
    IS_MAC = platform.system() == "Darwin"
    PY_VER = sys.version_info
    MIN_PY = (3, 9)

    HOME: Optional[Path] = None
    APP_DIR: Optional[Path] = None
    LOG_DIR: Optional[Path] = None
    BACKUP_DIR: Optional[Path] = None
    STORE_FILE: Optional[Path] = None

    KEEP_BACKUPS = 30
    KEEP_LOGS = 15

    _lock = threading.RLock()
    _done = False

    @staticmethod
    def _candidates() -> Iterator[Path]:
        override = os.environ.get(HOME_ENV)
        if override:
            yield Path(override).expanduser()
        with suppress(RuntimeError, KeyError):
            yield Path.home()
        for env_var in ("USERPROFILE", "HOME"):
            value = os.environ.get(env_var)
            if value and os.path.isdir(value):
                yield Path(value)
        yield Path(tempfile.gettempdir()) / "stewart_user"

    @staticmethod
    def _writable(directory: Path) -> bool:
        probe = directory / f".stewart_probe_{os.getpid()}"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            probe.write_text("ok", encoding="utf-8")
            probe.unlink()
        except OSError:
            return False
        return True

    @classmethod
    def init(cls) -> None:
        """Pick the first writable home and create the application tree under it."""
        with cls._lock:
            if cls._done:
                return

            tried: List[str] = []
            for candidate in cls._candidates():
                tried.append(str(candidate))
                if cls._writable(candidate):
                    cls.HOME = candidate
                    break
            else:
                raise RuntimeError(
                    f"No writable home directory (tried {', '.join(tried)}); set {HOME_ENV} to a writable path"
                )

            cls.APP_DIR = cls.HOME / ".stewart"
            cls.LOG_DIR = cls.APP_DIR / "logs"
            cls.BACKUP_DIR = cls.APP_DIR / "backups"
            cls.STORE_FILE = cls.APP_DIR / "audit.json"
            for directory in (cls.LOG_DIR, cls.BACKUP_DIR):
                directory.mkdir(parents=True, exist_ok=True)

            cls._done = True

    @classmethod
    def check(cls) -> Tuple[bool, List[str]]:
        """Verify the interpreter and that the application tree is still writable."""
        errs: List[str] = []
        if cls.PY_VER < cls.MIN_PY:
            errs.append(f"Python {cls.MIN_PY[0]}.{cls.MIN_PY[1]}+ required")
        if cls.APP_DIR is None or not os.access(cls.APP_DIR, os.W_OK):
            errs.append(f"No write permission: {cls.APP_DIR}")
        return not errs, errs

    @classmethod
    def cleanup_old(cls) -> Tuple[int, int]:
        """Prune backups and rotated logs beyond the retention limits.

        Returns:
            (backups removed, logs removed)
        """
        return (
            cls._prune(cls.BACKUP_DIR, "*.bak", cls.KEEP_BACKUPS),
            cls._prune(cls.LOG_DIR, "*.log.*", cls.KEEP_LOGS),
        )

    @staticmethod
    def _prune(directory: Optional[Path], pattern: str, keep: int) -> int:
        if directory is None or not directory.is_dir():
            return 0
        newest_first = sorted(directory.glob(pattern), key=lambda p: p.stat().st_mtime, reverse=True)
        removed = 0
        for old in newest_first[keep:]:
            with suppress(OSError):
                old.unlink()
                removed += 1
        return removed


CFG = Cfg
Cfg.init()
