"""File probe: compares file contents against a check's FindData.

A missing file is the "target absent" state. GreaterThan/LessThan have no
meaning for file text and are rejected; numeric file checks belong in a shell
command.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from stewart.checks.models import CheckResult, FileCheck, SecureResult
from stewart.checks.operators import evaluate
from stewart.core.constants import CheckType, ErrorKind, Operator
from stewart.core.logging import LOG
from stewart.io.file_ops import FO
from stewart.probes.base import Probe


def _target(check: FileCheck) -> Optional[Path]:
    text = (check.path or "").strip()
    return Path(text).expanduser() if text else None


class FileProbe(Probe):
    """
    Reads (and remediates) local files.

    Remediation:
        Exists       create the file with SecureText
        NotExists    delete the file (a backup copy is kept)
        EqualTo      overwrite the content with SecureText (the required value)
        NotEqualTo   overwrite the content with SecureText
        Contains     replace every FindData occurrence with SecureText
        NotContains  append SecureText

    Thread-safe: Yes (no shared state)
    """

    kind = CheckType.FILE

    def __init__(self, backup: bool = True):
        self.backup = backup

    def _check(self, check: FileCheck) -> CheckResult:
        path = _target(check)
        if path is None:
            return CheckResult.failure(check, ErrorKind.INVALID_TARGET, ("Check has no Path",))
        op = Operator.parse(check.operator)
        if op is not None and op.is_numeric:
            return CheckResult.failure(
                check, ErrorKind.UNSUPPORTED_OPERATOR, (f"{op.value} is not supported for file checks",)
            )

        present = path.is_file()
        observed = FO.read(path) if present and not (op and op.is_presence) else ""
        LOG.d(f"{check.id}: {path} {'present' if present else 'absent'}")

        verdict = evaluate(check.operator, present, observed, check.find_data)
        if not verdict.ok:
            return CheckResult.failure(check, verdict.error, observed=observed)
        return CheckResult(check=check, observed=observed, check_pass=verdict.check_pass, probe_succeeded=True)

    def _secure(self, check: FileCheck) -> SecureResult:
        op = Operator.parse(check.operator)
        if op is None:
            return SecureResult.failure(check, ErrorKind.UNKNOWN_OPERATOR, (f"Unknown operator: {check.operator}",))
        if op.is_numeric:
            return SecureResult.failure(
                check, ErrorKind.UNSUPPORTED_OPERATOR, (f"{op.value} is not supported for file checks",)
            )
        path = _target(check)
        if path is None:
            return SecureResult.failure(check, ErrorKind.INVALID_TARGET, ("Check has no Path",))

        present = path.is_file()
        secure_text = check.secure_text or ""

        if op is Operator.NOT_EXISTS:
            if present:
                FO.remove(path, bak=self.backup)
                LOG.i(f"{check.id}: deleted {path}")
            return SecureResult(check=check, secured=True)

        if op is Operator.EXISTS:
            if not present:
                FO.write(path, secure_text, bak=False)
                LOG.i(f"{check.id}: created {path}")
            return SecureResult(check=check, secured=True)

        if op is Operator.CONTAINS:
            if not present:
                return SecureResult(check=check, secured=True)
            find = (check.find_data or "").strip()
            if not find:
                return SecureResult.failure(check, ErrorKind.MISSING_DATA, ("Check has no FindData",))
            text, enc = FO.decode(path)
            if find in text:
                FO.write(path, text.replace(find, secure_text), enc=enc, bak=self.backup)
                LOG.i(f"{check.id}: replaced {text.count(find)} occurrence(s) in {path}")
            return SecureResult(check=check, secured=True)

        if op is Operator.EQUAL_TO and not present:
            return SecureResult(check=check, secured=True)
        if not secure_text.strip():
            return SecureResult.failure(check, ErrorKind.MISSING_DATA, ("Check has no SecureText",))

        if op in (Operator.EQUAL_TO, Operator.NOT_EQUAL_TO) or not present:
            enc = FO.decode(path).encoding if present else "utf-8"
            FO.write(path, secure_text, enc=enc, bak=self.backup)
            LOG.i(f"{check.id}: wrote {path}")
            return SecureResult(check=check, secured=True)

        # NotContains on an existing file
        text, enc = FO.decode(path)
        if secure_text.strip() not in text:
            newline = "\r\n" if "\r\n" in text else "\n"
            separator = "" if not text or text.endswith("\n") else newline
            FO.write(path, f"{text}{separator}{secure_text}", enc=enc, bak=self.backup)
            LOG.i(f"{check.id}: appended to {path}")
        return SecureResult(check=check, secured=True)
