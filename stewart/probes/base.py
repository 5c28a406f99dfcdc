"""Common shape of the stateless probes (registry, file)."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Sequence, TypeVar

from stewart.checks.models import Check, CheckResult, SecureResult
from stewart.core.constants import CheckType, ErrorKind
from stewart.core.logging import LOG
from stewart.exceptions import ValidationError

T = TypeVar("T")
R = TypeVar("R")


def fan_out(func: Callable[[T], R], items: Iterable[T], width: int = 1) -> List[R]:
    """Apply ``func`` to every item with at most ``width`` calls in flight.

    Results keep the order of ``items``. ``width`` of 1 runs inline on the
    calling thread.
    """
    if width < 1:
        raise ValidationError("Fan-out width must be at least 1", {"width": width})
    items = list(items)
    if width == 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=min(width, len(items)), thread_name_prefix="st3wart-probe") as ex:
        return list(ex.map(func, items))


class Probe:
    """
    Stateless per-check probe.

    Subclasses implement ``_check`` and ``_secure``. The public entry points
    convert any exception into a failed result so one bad check never aborts
    a batch.
    """

    kind: CheckType

    def check(self, check: Check) -> CheckResult:
        try:
            return self._check(check)
        except Exception as exc:
            LOG.e(f"{self.kind.value} probe for {check.id} failed: {exc}", exc=True)
            return CheckResult.failure(check, ErrorKind.PROBE_ERROR, (str(exc),))

    def secure(self, check: Check) -> SecureResult:
        try:
            return self._secure(check)
        except Exception as exc:
            LOG.e(f"{self.kind.value} remediation for {check.id} failed: {exc}", exc=True)
            return SecureResult.failure(check, ErrorKind.PROBE_ERROR, (str(exc),))

    def run(self, checks: Sequence[Check], pool_size: int = 1) -> List[CheckResult]:
        return fan_out(self.check, checks, pool_size)

    def secure_all(self, checks: Sequence[Check], pool_size: int = 1) -> List[SecureResult]:
        return fan_out(self.secure, checks, pool_size)

    def _check(self, check: Check) -> CheckResult:
        raise NotImplementedError

    def _secure(self, check: Check) -> SecureResult:
        raise NotImplementedError
