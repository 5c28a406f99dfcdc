"""Registry probe.

Keys are written the way policy documents write them: a hive (full name or
its short form) followed by a backslash separated subkey, e.g.
``HKLM\\SOFTWARE\\Policies\\Microsoft\\Windows\\System``. The PowerShell
drive form ``HKLM:\\...`` and forward slashes are accepted too.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple, Union

from stewart.checks.models import CheckResult, RegistryCheck, SecureResult
from stewart.checks.operators import evaluate, parse_int
from stewart.core.constants import CheckType, ErrorKind, Operator
from stewart.core.deps import Deps
from stewart.core.logging import LOG
from stewart.exceptions import ValidationError
from stewart.probes.base import Probe

HIVE_ALIASES = {
    "HKCR": "HKEY_CLASSES_ROOT",
    "HKCU": "HKEY_CURRENT_USER",
    "HKLM": "HKEY_LOCAL_MACHINE",
    "HKU": "HKEY_USERS",
    "HKCC": "HKEY_CURRENT_CONFIG",
}
HIVES = frozenset(HIVE_ALIASES.values())

RegData = Union[int, str]


def resolve_hive(name: str) -> Optional[str]:
    """Return the fully-qualified hive name for a short or full root, else None."""
    root = (name or "").strip().rstrip(":").upper()
    if root.startswith("REGISTRY::"):
        root = root[len("REGISTRY::"):]
    if root in HIVES:
        return root
    return HIVE_ALIASES.get(root)


def split_key(key: str) -> Tuple[str, str]:
    """Split a registry path into ``(hive, subkey)``.

    Raises:
        ValidationError: If the root is not one of the five standard hives
    """
    path = (key or "").strip().replace("/", "\\").strip("\\")
    head, _, subkey = path.partition("\\")
    hive = resolve_hive(head)
    if hive is None:
        raise ValidationError("Unknown registry hive", {"key": key})
    return hive, subkey.strip("\\")


def format_data(data: Any) -> str:
    """Render registry data as the text operators compare against."""
    if data is None:
        return ""
    if isinstance(data, (list, tuple)):
        return "\n".join(str(item) for item in data)
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).hex()
    return str(data)


class RegistryBackend:
    """Minimal key/value store interface the probe talks to."""

    def read(self, hive: str, subkey: str, name: str) -> Tuple[bool, Any]:
        """Return ``(found, data)``; a missing key or value is ``(False, None)``."""
        raise NotImplementedError

    def write(self, hive: str, subkey: str, name: str, data: RegData) -> None:
        raise NotImplementedError

    def delete(self, hive: str, subkey: str, name: str) -> bool:
        """Delete a value; returns False when it was not there."""
        raise NotImplementedError


class WinRegBackend(RegistryBackend):
    """The Windows registry through :mod:`winreg`."""

    def __init__(self, module=None):
        self.winreg = module or Deps.get_winreg()
        if self.winreg is None:
            raise ValidationError("winreg is not available on this platform")

    def _root(self, hive: str):
        return getattr(self.winreg, hive)

    def read(self, hive: str, subkey: str, name: str) -> Tuple[bool, Any]:
        reg = self.winreg
        try:
            with reg.OpenKey(self._root(hive), subkey) as key:
                data, _kind = reg.QueryValueEx(key, name)
        except FileNotFoundError:
            return False, None
        return True, data

    def write(self, hive: str, subkey: str, name: str, data: RegData) -> None:
        reg = self.winreg
        with reg.CreateKeyEx(self._root(hive), subkey, 0, reg.KEY_SET_VALUE) as key:
            if isinstance(data, int) and 0 <= data <= 0xFFFFFFFF:
                reg.SetValueEx(key, name, 0, reg.REG_DWORD, data)
            else:
                reg.SetValueEx(key, name, 0, reg.REG_SZ, str(data))

    def delete(self, hive: str, subkey: str, name: str) -> bool:
        reg = self.winreg
        try:
            with reg.OpenKey(self._root(hive), subkey, 0, reg.KEY_SET_VALUE) as key:
                reg.DeleteValue(key, name)
        except FileNotFoundError:
            return False
        return True


def default_backend() -> Optional[RegistryBackend]:
    return WinRegBackend() if Deps.HAS_WINREG else None


class RegistryProbe(Probe):
    """
    Reads (and remediates) registry values.

    Absence of the key or of the value is the "target absent" state; the
    shared evaluator decides what that means for each operator.

    Thread-safe: Yes (no state beyond the backend)
    """

    kind = CheckType.REGISTRY

    def __init__(self, backend: Optional[RegistryBackend] = None):
        self.backend = backend if backend is not None else default_backend()

    def _check(self, check: RegistryCheck) -> CheckResult:
        try:
            hive, subkey = split_key(check.key)
        except ValidationError as exc:
            return CheckResult.failure(check, ErrorKind.INVALID_TARGET, (str(exc),))
        if self.backend is None:
            return CheckResult.failure(check, ErrorKind.PROBE_ERROR, ("Registry is not available on this host",))

        present, data = self.backend.read(hive, subkey, check.value)
        observed = format_data(data) if present else ""
        LOG.d(f"{check.id}: {hive}\\{subkey}!{check.value} -> {observed if present else '<absent>'}")

        verdict = evaluate(check.operator, present, observed, check.find_data)
        if not verdict.ok:
            return CheckResult.failure(check, verdict.error, observed=observed)
        return CheckResult(check=check, observed=observed, check_pass=verdict.check_pass, probe_succeeded=True)

    def _secure(self, check: RegistryCheck) -> SecureResult:
        op = Operator.parse(check.operator)
        if op is None:
            return SecureResult.failure(check, ErrorKind.UNKNOWN_OPERATOR, (f"Unknown operator: {check.operator}",))
        try:
            hive, subkey = split_key(check.key)
        except ValidationError as exc:
            return SecureResult.failure(check, ErrorKind.INVALID_TARGET, (str(exc),))
        if self.backend is None:
            return SecureResult.failure(check, ErrorKind.PROBE_ERROR, ("Registry is not available on this host",))

        if op is Operator.NOT_EXISTS:
            removed = self.backend.delete(hive, subkey, check.value)
            LOG.i(f"{check.id}: {'deleted' if removed else 'already absent'} {hive}\\{subkey}!{check.value}")
            return SecureResult(check=check, secured=True)

        secure_value = (check.secure_value or "").strip()
        if not secure_value:
            return SecureResult.failure(check, ErrorKind.MISSING_DATA, ("Check has no SecureValue",))
        number = parse_int(secure_value)
        self.backend.write(hive, subkey, check.value, number if number is not None else secure_value)
        LOG.i(f"{check.id}: set {hive}\\{subkey}!{check.value} = {secure_value}")
        return SecureResult(check=check, secured=True)
