"""Vulnerability bank loader.

A bank is a JSON array of check records (or an object with a ``checks``
array). Each record names its backend in ``CheckType``::

    [
      {"ID": "OS-001", "CheckType": "Registry", "Description": "...",
       "Key": "HKLM\\\\SOFTWARE\\\\Policies\\\\X", "Value": "Enabled",
       "FindData": "", "Operator": "Exists", "SecureValue": "1"},
      {"ID": "PS-004", "CheckType": "PowerShell", "CheckCommand": "...",
       "SecureCommand": "...", "FindData": "0", "Operator": "EqualTo"}
    ]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Type, Union

from stewart.checks.models import Check, FileCheck, RegistryCheck, ShellCheck
from stewart.core.constants import MAX_BANK_SIZE
from stewart.core.logging import LOG
from stewart.exceptions import BankError, FileError
from stewart.io.file_ops import FO

# CheckType discriminator -> variant ("PowerShell" is the historical name for shell checks)
CHECK_TYPES: Dict[str, Type[Check]] = {
    "powershell": ShellCheck,
    "shell": ShellCheck,
    "registry": RegistryCheck,
    "file": FileCheck,
}

# Bank key -> dataclass field; snake_case spellings are accepted as well
FIELD_KEYS: Dict[str, str] = {
    "ID": "id",
    "Description": "description",
    "FindData": "find_data",
    "Operator": "operator",
    "CheckCommand": "check_command",
    "SecureCommand": "secure_command",
    "Key": "key",
    "Value": "value",
    "SecureValue": "secure_value",
    "Path": "path",
    "SecureText": "secure_text",
}

VARIANT_FIELDS = {
    ShellCheck: ("check_command", "secure_command"),
    RegistryCheck: ("key", "value", "secure_value"),
    FileCheck: ("path", "secure_text"),
}
COMMON_FIELDS = ("id", "description", "find_data", "operator")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def build_check(record: Dict[str, Any]) -> Optional[Check]:
    """Turn one bank record into a typed check, or None if it is not a recognisable check."""
    if not isinstance(record, dict):
        return None
    kind = _text(record.get("CheckType", record.get("check_type"))).strip().lower()
    cls = CHECK_TYPES.get(kind)
    if cls is None:
        return None

    values: Dict[str, str] = {}
    for bank_key, attr in FIELD_KEYS.items():
        if bank_key in record:
            values[attr] = _text(record[bank_key])
        elif attr in record:
            values[attr] = _text(record[attr])

    values["id"] = values.get("id", "").strip()
    if not values["id"]:
        return None

    allowed = COMMON_FIELDS + VARIANT_FIELDS[cls]
    return cls(**{attr: val for attr, val in values.items() if attr in allowed})


def build_bank(records: Iterable[Any], source: str = "<memory>") -> Dict[str, Check]:
    """Build an ID -> check mapping; unknown records are skipped, the last duplicate ID wins."""
    bank: Dict[str, Check] = {}
    skipped = 0
    for index, record in enumerate(records):
        check = build_check(record)
        if check is None:
            skipped += 1
            kind = record.get("CheckType") if isinstance(record, dict) else type(record).__name__
            LOG.w(f"{source}: skipping record {index} (CheckType={kind!r})")
            continue
        if check.id in bank:
            LOG.d(f"{source}: duplicate ID {check.id}, keeping the later record")
        bank[check.id] = check

    if skipped:
        LOG.w(f"{source}: {skipped} record(s) skipped")
    return bank


def load_bank(path: Union[str, Path]) -> Dict[str, Check]:
    """Load a vulnerability bank from a JSON file.

    Raises:
        BankError: If the file cannot be read or parsed, or holds no usable checks
    """
    path = Path(path)
    try:
        size = path.stat().st_size
    except OSError as exc:
        raise BankError(f"Cannot open bank: {exc}", {"path": path}) from exc
    if size > MAX_BANK_SIZE:
        raise BankError("Bank file is too large", {"path": path, "size": size})

    try:
        data = json.loads(FO.read(path))
    except FileError as exc:
        raise BankError(f"Cannot read bank: {exc.msg}", {"path": path}) from exc
    except json.JSONDecodeError as exc:
        raise BankError(f"Malformed bank JSON: {exc}", {"path": path}) from exc

    records: List[Any]
    if isinstance(data, dict) and isinstance(data.get("checks"), list):
        records = data["checks"]
    elif isinstance(data, list):
        records = data
    else:
        raise BankError("Bank must be a JSON array of checks", {"path": path})

    bank = build_bank(records, source=path.name)
    if not bank:
        raise BankError("Bank contains no usable checks", {"path": path})

    LOG.i(f"Loaded {len(bank)} check(s) from {path}")
    return bank
