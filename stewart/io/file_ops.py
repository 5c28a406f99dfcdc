"""
File operations for checked and remediated files.

Reads decode with the file's own encoding (BOM first, then a strict trial of
``ENCODINGS``) and report which one matched, so remediation can write a file
back the way it found it. Writes stage a sibling temp file and replace the
target in one step; deletes and rewrites can copy the old file into
``Cfg.BACKUP_DIR`` first.
"""

from __future__ import annotations

import codecs
import os
import shutil
import tempfile
import time
from contextlib import contextmanager, suppress
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Generator, IO, NamedTuple, Optional, Tuple, Union

from stewart.core.config import Cfg
from stewart.core.constants import ENCODINGS, MAX_RETRIES, RETRY_DELAY
from stewart.core.logging import LOG
from stewart.core.state import GLOBAL_STATE
from stewart.exceptions import FileError

PathLike = Union[str, Path]

_BOMS = (
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)


class Decoded(NamedTuple):
    text: str
    encoding: str


def retry(
    attempts: int = MAX_RETRIES,
    delay: float = RETRY_DELAY,
    exceptions: Tuple[type, ...] = (PermissionError, BlockingIOError),
):
    """Retry on transient lock errors, doubling the delay each time.

    Gives up early with InterruptedError once shutdown has started.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            wait = delay
            for attempt in range(attempts):
                if GLOBAL_STATE.shutdown.is_set():
                    raise InterruptedError("Shutdown requested")
                try:
                    return func(*args, **kwargs)
                except exceptions as err:
                    if attempt == attempts - 1:
                        raise
                    LOG.d(f"{func.__name__}: {err}; retrying in {wait:.2f}s")
                    time.sleep(wait)
                    wait *= 2
            raise ValueError(f"attempts must be positive, got {attempts}")

        return wrapper

    return decorator


@retry()
def _replace(staged: Path, target: Path) -> None:
    # Indexers and antivirus briefly lock freshly written files on Windows
    staged.replace(target)


def _stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")


class FO:
    """Encoding-aware reads, staged writes and backed-up deletes."""

    @staticmethod
    def backup(target: PathLike) -> Optional[Path]:
        """Copy ``target`` into the backup directory; None if there is nothing to copy.

        Only the newest ``Cfg.KEEP_BACKUPS`` copies per file stem are kept.
        """
        target = Path(target).expanduser()
        if not target.is_file():
            return None
        copy = Cfg.BACKUP_DIR / f"{target.stem}_{_stamp()}{target.suffix}.bak"
        try:
            shutil.copy(str(target), str(copy))
        except OSError as exc:
            raise FileError(f"Backup failed: {exc}", {"target": target, "backup": copy}) from exc
        LOG.d(f"Backed up {target} -> {copy.name}")

        # Copies carry the current mtime, unlike copy2
        with suppress(OSError):
            older = sorted(Cfg.BACKUP_DIR.glob(f"{target.stem}_*.bak"), key=lambda p: p.stat().st_mtime, reverse=True)
            for stale in older[Cfg.KEEP_BACKUPS:]:
                with suppress(OSError):
                    stale.unlink()
        return copy

    @staticmethod
    @contextmanager
    def atomic(target: PathLike, enc: str = "utf-8") -> Generator[IO[str], None, None]:
        """Write ``target`` through a temp file that replaces it when the block succeeds.

        ``target`` is untouched until the block exits cleanly. Newlines are
        written exactly as given.

        Raises:
            FileError: If staging, writing or the final replace fails
        """
        target = Path(target).expanduser()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(dir=str(target.parent), prefix=".stewart_tmp_", suffix=".tmp")
        except OSError as exc:
            raise FileError(f"Cannot stage write: {exc}", {"target": target}) from exc

        staged = Path(name)
        GLOBAL_STATE.add_temp(staged)
        try:
            with os.fdopen(fd, "w", encoding=enc, newline="") as handle:
                yield handle
                handle.flush()
                with suppress(OSError):
                    os.fsync(handle.fileno())
            _replace(staged, target)
        except Exception as exc:
            with suppress(OSError):
                staged.unlink()
            raise FileError(f"Write failed: {exc}", {"target": target, "encoding": enc}) from exc
        finally:
            GLOBAL_STATE.discard_temp(staged)

    @staticmethod
    def write(target: PathLike, text: str, *, enc: str = "utf-8", bak: bool = True) -> Path:
        """Replace ``target`` with ``text``, backing up the previous content if asked."""
        target = Path(target).expanduser()
        if bak:
            FO.backup(target)
        with FO.atomic(target, enc) as handle:
            handle.write(text)
        return target

    @staticmethod
    def remove(target: PathLike, *, bak: bool = True) -> bool:
        """Delete ``target``. Returns False if it was not there."""
        target = Path(target).expanduser()
        if not target.is_file():
            return False
        if bak:
            FO.backup(target)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise FileError(f"Delete failed: {exc}", {"target": target}) from exc
        return True

    @staticmethod
    def decode(path: PathLike) -> Decoded:
        """Read ``path`` and return its text with the encoding that decoded it.

        A byte-order mark decides the encoding outright; otherwise each of
        ``ENCODINGS`` is tried strictly in order. Line endings are preserved.

        Raises:
            FileError: If the file cannot be read or no encoding fits
        """
        path = Path(path).expanduser()
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise FileError(f"Cannot read file: {exc}", {"path": path}) from exc

        candidates = [enc for bom, enc in _BOMS if raw.startswith(bom)][:1] + list(ENCODINGS)
        for encoding in candidates:
            try:
                return Decoded(raw.decode(encoding), encoding)
            except UnicodeDecodeError:
                continue
        raise FileError("Unable to decode file with any known encoding", {"path": path, "tried": candidates})

    @staticmethod
    def read(path: PathLike) -> str:
        return FO.decode(path).text


__all__ = ["Decoded", "FO", "retry"]
