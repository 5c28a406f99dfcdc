"""Optional platform facility detection."""

from __future__ import annotations
from contextlib import suppress
from typing import Optional
import shutil


class Deps:
    """Detects what the current host can probe.

    Registry checks need ``winreg`` (Windows only); shell checks need a
    PowerShell executable on Windows or a POSIX ``sh`` elsewhere.
    """

    HAS_WINREG = False
    POWERSHELL: Optional[str] = None
    POSIX_SH: Optional[str] = None

    @classmethod
    def check(cls) -> None:
        """Check for available optional facilities."""
        with suppress(ImportError):
            import winreg  # noqa: F401

            cls.HAS_WINREG = True

        cls.POWERSHELL = shutil.which("powershell") or shutil.which("pwsh")
        cls.POSIX_SH = shutil.which("sh")

    @classmethod
    def get_winreg(cls):
        """Return the winreg module, or None off Windows."""
        if not cls.HAS_WINREG:
            return None
        import winreg

        return winreg

    @classmethod
    def summary(cls) -> str:
        return (
            f"winreg={'yes' if cls.HAS_WINREG else 'no'}, "
            f"powershell={cls.POWERSHELL or 'missing'}, sh={cls.POSIX_SH or 'missing'}"
        )


# Automatically check dependencies on import
Deps.check()
