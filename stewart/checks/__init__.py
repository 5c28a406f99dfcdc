"""Check model: variants, results and operator evaluation.

Key Components:
    - Check / ShellCheck / RegistryCheck / FileCheck: the tagged check union
    - CheckResult / SecureResult: immutable per-probe outcomes
    - evaluate: operator semantics shared by every backend

Usage:
    from stewart.checks import RegistryCheck, evaluate

    check = RegistryCheck(id="OS-001", key=r"HKLM\\Software\\Policies\\X", value="Enabled",
                          operator="EqualTo", find_data="0")
    evaluate(check.operator, True, "1", check.find_data).check_pass   # False - finding
"""

from __future__ import annotations

from stewart.checks.models import (
    AnyCheck,
    Check,
    CheckResult,
    FileCheck,
    RegistryCheck,
    SecureResult,
    ShellCheck,
)
from stewart.checks.operators import Evaluation, evaluate, parse_int

__all__ = [
    "AnyCheck",
    "Check",
    "CheckResult",
    "FileCheck",
    "RegistryCheck",
    "SecureResult",
    "ShellCheck",
    "Evaluation",
    "evaluate",
    "parse_int",
]
