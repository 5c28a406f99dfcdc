"""Dispatch coordinator.

Splits a mixed list of checks by backend, sizes each backend's concurrency,
runs the three backends side by side and concatenates their results. Results
come back in no particular order; each one carries its check (and so its ID
and backend).
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Mapping, Optional, Union

from stewart.checks.models import Check, CheckResult, FileCheck, RegistryCheck, SecureResult, ShellCheck
from stewart.core.constants import CONCURRENCY_TIERS, MAX_CONCURRENCY
from stewart.core.logging import LOG
from stewart.exceptions import ValidationError
from stewart.probes.files import FileProbe
from stewart.probes.registry import RegistryProbe
from stewart.shell.dialect import ShellDialect
from stewart.shell.pool import WorkerPool

PoolFactory = Callable[[int], WorkerPool]
Checks = Union[Iterable[Check], Mapping[str, Check]]

# Registry reads are in-process and cheap; they run one after another
REGISTRY_CONCURRENCY = 1


def tier_concurrency(count: int) -> int:
    """Concurrency budget for ``count`` checks: <5 -> 1, <15 -> 5, otherwise 10."""
    for bound, width in CONCURRENCY_TIERS:
        if count < bound:
            return width
    return MAX_CONCURRENCY


@dataclass
class Partition:
    """Checks grouped by backend."""

    shell: List[ShellCheck] = field(default_factory=list)
    registry: List[RegistryCheck] = field(default_factory=list)
    files: List[FileCheck] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.shell) + len(self.registry) + len(self.files)


def partition(checks: Checks) -> Partition:
    """Group checks by variant.

    Raises:
        ValidationError: If an item is not one of the three check variants
    """
    if isinstance(checks, Mapping):
        checks = checks.values()
    parts = Partition()
    for check in checks:
        if isinstance(check, ShellCheck):
            parts.shell.append(check)
        elif isinstance(check, RegistryCheck):
            parts.registry.append(check)
        elif isinstance(check, FileCheck):
            parts.files.append(check)
        else:
            raise ValidationError("Not a typed check", {"item": type(check).__name__})
    return parts


class DispatchCoordinator:
    """
    Runs a check list (or its remediations) against all three backends at once.

    Args:
        pool_factory: Builds an uninitialized WorkerPool of the given size
        registry_probe: Registry backend probe
        file_probe: File backend probe
        dialect: Shell dialect for the default pool factory
        timeout: Per-command shell deadline for the default pool factory

    Raises from check()/secure():
        PoolError: When no shell worker can be started (no partial results)
    """

    def __init__(
        self,
        *,
        pool_factory: Optional[PoolFactory] = None,
        registry_probe: Optional[RegistryProbe] = None,
        file_probe: Optional[FileProbe] = None,
        dialect: Optional[ShellDialect] = None,
        timeout: Optional[float] = None,
    ):
        if pool_factory is None:
            pool_factory = lambda size: WorkerPool(size, dialect=dialect, timeout=timeout)  # noqa: E731
        self._pool_factory = pool_factory
        self.registry_probe = registry_probe if registry_probe is not None else RegistryProbe()
        self.file_probe = file_probe if file_probe is not None else FileProbe()

    def check(self, checks: Checks) -> List[CheckResult]:
        """Probe every check and return one result per check."""
        return self._dispatch(checks, secure=False)

    def secure(self, checks: Checks) -> List[SecureResult]:
        """Apply every check's remediation and return one result per check."""
        return self._dispatch(checks, secure=True)

    def _dispatch(self, checks: Checks, secure: bool) -> list:
        parts = partition(checks)
        action = "secure" if secure else "check"
        LOG.i(
            f"Dispatching {len(parts)} {action}(s): shell={len(parts.shell)} "
            f"registry={len(parts.registry)} file={len(parts.files)}"
        )
        if not len(parts):
            return []

        shell_width = tier_concurrency(len(parts.shell))
        pool = self._start_pool(shell_width) if parts.shell else None

        try:
            with ThreadPoolExecutor(max_workers=3, thread_name_prefix="st3wart-dispatch") as ex:
                jobs = []
                if parts.shell:
                    run_shell = pool.execute_secure_batch if secure else pool.execute_batch
                    jobs.append(ex.submit(run_shell, parts.shell, shell_width))
                if parts.registry:
                    run_registry = self.registry_probe.secure_all if secure else self.registry_probe.run
                    jobs.append(ex.submit(run_registry, parts.registry, REGISTRY_CONCURRENCY))
                if parts.files:
                    run_files = self.file_probe.secure_all if secure else self.file_probe.run
                    jobs.append(ex.submit(run_files, parts.files, tier_concurrency(len(parts.files))))

                results = []
                for job in jobs:
                    results.extend(job.result())
        finally:
            if pool is not None:
                pool.dispose()

        LOG.i(f"Dispatch complete: {len(results)} result(s)")
        return results

    def _start_pool(self, size: int) -> WorkerPool:
        pool = self._pool_factory(size)
        try:
            pool.initialize()
        except Exception:
            pool.dispose()
            raise
        return pool
