"""Worker pool: a fleet of shell workers behind a counting semaphore.

Capacity always equals the number of workers that actually started. A caller
takes one unit of capacity, then one idle worker; both are returned on every
exit path. The idle queue never holds more workers than there are units, so a
worker is handed to at most one caller at a time.
"""

from __future__ import annotations

import queue
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, List, Optional

from stewart.checks.models import CheckResult, SecureResult, ShellCheck
from stewart.core.constants import DEFAULT_POOL_SIZE, ErrorKind
from stewart.core.logging import LOG
from stewart.core.state import GLOBAL_STATE
from stewart.exceptions import PoolError, ValidationError
from stewart.shell.dialect import ShellDialect
from stewart.shell.worker import ShellWorker

WorkerFactory = Callable[[], ShellWorker]


class WorkerPool:
    """
    Bounded dispatch surface over ``size`` shell workers.

    Args:
        size: Requested number of workers
        worker_factory: Builds one uninitialized worker (defaults to ShellWorker)
        dialect: Shell dialect for the default factory
        timeout: Per-command stdout deadline for the default factory

    Example:
        >>> with WorkerPool(2) as pool:
        ...     results = pool.execute_batch(checks)

    Thread-safe: Yes
    """

    def __init__(
        self,
        size: int = DEFAULT_POOL_SIZE,
        *,
        worker_factory: Optional[WorkerFactory] = None,
        dialect: Optional[ShellDialect] = None,
        timeout: Optional[float] = None,
    ):
        if size < 1:
            raise ValidationError("Pool size must be at least 1", {"size": size})
        self.size = size
        if worker_factory is None:
            options = {} if timeout is None else {"timeout": timeout}
            worker_factory = lambda: ShellWorker(dialect, **options)  # noqa: E731
        self._factory = worker_factory

        self._workers: List[ShellWorker] = []
        self._idle: "queue.Queue[ShellWorker]" = queue.Queue()
        self._slots = threading.Semaphore(0)
        self._lock = threading.RLock()
        self._initialized = False
        self._disposed = False

    # ----------------------------------------------------------------- lifecycle
    def initialize(self) -> int:
        """Spawn the workers concurrently and keep the ones that started.

        Returns:
            Effective capacity (number of live workers)

        Raises:
            PoolError: If no worker could be started or the pool is disposed
        """
        with self._lock:
            if self._disposed:
                raise PoolError("Pool is disposed")
            if self._initialized:
                return self.capacity

            with ThreadPoolExecutor(max_workers=self.size, thread_name_prefix="st3wart-spawn") as ex:
                started = list(ex.map(lambda _: self._start_one(), range(self.size)))

            live = [worker for worker in started if worker is not None]
            if not live:
                raise PoolError("No shell worker could be started", {"requested": self.size})

            self._workers = live
            for worker in live:
                self._idle.put(worker)
            self._slots.release(len(live))
            self._initialized = True
            GLOBAL_STATE.add_cleanup(self.dispose)

        if len(live) < self.size:
            LOG.w(f"Worker pool degraded: {len(live)} of {self.size} shells started")
        else:
            LOG.i(f"Worker pool ready with {len(live)} shell(s)")
        return len(live)

    def _start_one(self) -> Optional[ShellWorker]:
        worker = None
        try:
            worker = self._factory()
            if worker.initialize():
                return worker
        except Exception as exc:
            LOG.w(f"Worker start failed: {exc}")
        if worker is not None:
            worker.dispose()
        return None

    def dispose(self) -> None:
        """Dispose every live worker and wake any caller waiting for capacity. Idempotent."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            workers, self._workers = self._workers, []

        GLOBAL_STATE.remove_cleanup(self.dispose)
        for worker in workers:
            try:
                worker.dispose()
            except Exception as exc:
                LOG.w(f"Disposing {worker!r} failed: {exc}")
        # Waiters wake, see the pool is gone and pass the unit on
        self._slots.release(max(len(workers), 1))
        LOG.d(f"Worker pool disposed ({len(workers)} worker(s))")

    @property
    def capacity(self) -> int:
        """Number of live workers (0 before initialization and after disposal)."""
        return len(self._workers)

    @property
    def idle_count(self) -> int:
        return self._idle.qsize()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def __enter__(self) -> "WorkerPool":
        self.initialize()
        return self

    def __exit__(self, *exc) -> None:
        self.dispose()

    # ----------------------------------------------------------------- dispatch
    def _ensure_ready(self) -> None:
        if self._disposed:
            raise PoolError("Pool is disposed")
        if not self._initialized:
            raise PoolError("Pool is not initialized")

    @contextmanager
    def _lease(self) -> Iterator[ShellWorker]:
        """Hold one capacity unit and one idle worker for the duration of the block."""
        self._ensure_ready()
        self._slots.acquire()
        if self._disposed:
            self._slots.release()
            raise PoolError("Pool was disposed while waiting for a worker")
        try:
            worker = self._idle.get_nowait()
        except queue.Empty:
            self._slots.release()
            raise PoolError("Capacity and idle workers are out of step") from None
        try:
            yield worker
        finally:
            self._idle.put(worker)
            self._slots.release()

    def execute(self, check: ShellCheck, timeout: Optional[float] = None) -> CheckResult:
        """Run one check on the next idle worker, blocking while the pool is saturated."""
        with self._lease() as worker:
            return worker.execute(check, timeout)

    def execute_secure(self, check: ShellCheck, timeout: Optional[float] = None) -> SecureResult:
        """Run one remediation command on the next idle worker."""
        with self._lease() as worker:
            return worker.execute_secure(check, timeout)

    def execute_batch(
        self,
        checks: Iterable[ShellCheck],
        max_concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[CheckResult]:
        """Run many checks, at most ``max_concurrency`` at once (default: pool capacity).

        Results are in completion order; correlate them by ``result.id``.
        """
        return self._batch(
            checks, max_concurrency, lambda check: self.execute(check, timeout), CheckResult.failure
        )

    def execute_secure_batch(
        self,
        checks: Iterable[ShellCheck],
        max_concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[SecureResult]:
        return self._batch(
            checks, max_concurrency, lambda check: self.execute_secure(check, timeout), SecureResult.failure
        )

    def _batch(self, checks, max_concurrency, run, failure) -> list:
        checks = list(checks)
        if not checks:
            return []
        self._ensure_ready()
        width = self.capacity if max_concurrency is None else max_concurrency
        if width < 1:
            raise ValidationError("Batch concurrency must be at least 1", {"max_concurrency": width})

        results = []
        with ThreadPoolExecutor(max_workers=min(width, len(checks)), thread_name_prefix="st3wart-batch") as ex:
            futures = {ex.submit(run, check): check for check in checks}
            for future in as_completed(futures):
                check = futures[future]
                try:
                    results.append(future.result())
                except Exception as exc:
                    LOG.e(f"Shell probe for {check.id} raised: {exc}")
                    results.append(failure(check, ErrorKind.PROBE_ERROR, (str(exc),)))
        return results

    def __repr__(self) -> str:
        return f"WorkerPool(size={self.size}, capacity={self.capacity}, disposed={self._disposed})"
