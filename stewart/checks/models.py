"""Check and result models.

A check is a closed tagged union over three variants, one per probe backend.
Results are created fresh by every probe invocation and never mutated
afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from stewart.core.constants import CheckType, ErrorKind


@dataclass(frozen=True)
class Check:
    """
    Common fields of every vulnerability check.

    Attributes:
        id: Unique key within a loaded bank (e.g. "OS-001")
        description: Human readable summary
        find_data: Value that, matched through ``operator``, constitutes a finding
        operator: Operator name as written in the bank; unknown names are
            reported by the evaluator rather than rejected here

    Thread-safe: Yes (immutable after creation)
    """

    kind: ClassVar[CheckType]

    id: str
    description: str = ""
    find_data: str = ""
    operator: str = ""

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "ID": self.id,
            "CheckType": self.kind.value,
            "Description": self.description,
            "FindData": self.find_data,
            "Operator": self.operator,
        }
        data.update(self._probe_fields())
        return data

    def _probe_fields(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class ShellCheck(Check):
    """Check observed by running ``check_command`` in an interactive shell."""

    kind: ClassVar[CheckType] = CheckType.SHELL

    check_command: str = ""
    secure_command: str = ""

    def _probe_fields(self) -> Dict[str, Any]:
        return {"CheckCommand": self.check_command, "SecureCommand": self.secure_command}


@dataclass(frozen=True)
class RegistryCheck(Check):
    """Check observed by reading ``value`` under registry ``key``."""

    kind: ClassVar[CheckType] = CheckType.REGISTRY

    key: str = ""
    value: str = ""
    secure_value: str = ""

    def _probe_fields(self) -> Dict[str, Any]:
        return {"Key": self.key, "Value": self.value, "SecureValue": self.secure_value}


@dataclass(frozen=True)
class FileCheck(Check):
    """Check observed by reading the file at ``path``."""

    kind: ClassVar[CheckType] = CheckType.FILE

    path: str = ""
    secure_text: str = ""

    def _probe_fields(self) -> Dict[str, Any]:
        return {"Path": self.path, "SecureText": self.secure_text}


AnyCheck = Union[ShellCheck, RegistryCheck, FileCheck]


@dataclass(frozen=True)
class CheckResult:
    """
    Outcome of probing one check.

    ``check_pass`` and ``probe_succeeded`` are independent: a probe can
    complete cleanly and still report a finding.

    Attributes:
        check: The check that was probed
        observed: Value the probe observed (command output, registry data, file text)
        check_pass: True when no finding is present
        probe_succeeded: False when the probe itself could not complete
        timed_out: True when the shell output deadline elapsed
        errors: Diagnostic lines (shell stderr or exception text)
        error_kind: Why the probe failed, if it did

    Thread-safe: Yes (immutable after creation)
    """

    check: Check
    observed: str = ""
    check_pass: bool = False
    probe_succeeded: bool = False
    timed_out: bool = False
    errors: Tuple[str, ...] = field(default_factory=tuple)
    error_kind: Optional[ErrorKind] = None

    @property
    def id(self) -> str:
        return self.check.id

    @property
    def backend(self) -> CheckType:
        return self.check.kind

    @classmethod
    def failure(
        cls,
        check: Check,
        kind: ErrorKind,
        errors: Tuple[str, ...] = (),
        *,
        observed: str = "",
        timed_out: bool = False,
    ) -> "CheckResult":
        """Build a failed-probe result (never a pass)."""
        return cls(
            check=check,
            observed=observed,
            check_pass=False,
            probe_succeeded=False,
            timed_out=timed_out,
            errors=tuple(errors),
            error_kind=kind,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "backend": self.backend.value,
            "observed": self.observed,
            "check_pass": self.check_pass,
            "probe_succeeded": self.probe_succeeded,
            "timed_out": self.timed_out,
            "errors": list(self.errors),
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


@dataclass(frozen=True)
class SecureResult:
    """
    Outcome of one remediation attempt.

    Attributes:
        check: The check whose remediation was applied
        secured: True when the remediation completed without errors
        timed_out: True when the shell output deadline elapsed
        errors: Diagnostic lines
        error_kind: Why the attempt failed, if it did the probe's fault
    """

    check: Check
    secured: bool = False
    timed_out: bool = False
    errors: Tuple[str, ...] = field(default_factory=tuple)
    error_kind: Optional[ErrorKind] = None

    @property
    def id(self) -> str:
        return self.check.id

    @property
    def backend(self) -> CheckType:
        return self.check.kind

    @classmethod
    def failure(
        cls,
        check: Check,
        kind: Optional[ErrorKind],
        errors: Tuple[str, ...] = (),
        *,
        timed_out: bool = False,
    ) -> "SecureResult":
        return cls(check=check, secured=False, timed_out=timed_out, errors=tuple(errors), error_kind=kind)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "backend": self.backend.value,
            "secured": self.secured,
            "timed_out": self.timed_out,
            "errors": list(self.errors),
            "error_kind": self.error_kind.value if self.error_kind else None,
        }
