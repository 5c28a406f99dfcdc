"""Interactive shell worker.

One long-lived shell process per worker. Commands are framed with a
process-unique sentinel: after each command the worker asks the shell to echo
the sentinel on stdout and stderr, then reads each stream until the sentinel
shows up or its deadline elapses.

Lines are pumped off both pipes by daemon reader threads into queues, so
every read is a ``queue.get`` racing a deadline. A read that loses the race
abandons the stream for that command; the sentinel is still owed, and the
worker drains it (or replaces its process) before it frames the next command.

Thread-safe: Yes (one command in flight per worker, enforced by a lock)
"""

from __future__ import annotations

import itertools
import os
import queue
import signal
import subprocess
import threading
import time
import uuid
from contextlib import suppress
from dataclasses import dataclass, field
from typing import IO, List, Optional

from stewart.checks.models import CheckResult, SecureResult, ShellCheck
from stewart.checks.operators import evaluate
from stewart.core.config import Cfg
from stewart.core.constants import (
    COMMAND_TIMEOUT,
    DRAIN_TIMEOUT,
    ERROR_TIMEOUT,
    EXIT_GRACE,
    MAX_ERROR_LINES,
    SENTINEL_PREFIX,
    ErrorKind,
    WorkerState,
)
from stewart.core.logging import LOG
from stewart.exceptions import WorkerError
from stewart.shell.dialect import ShellDialect, default_dialect

_EOF = object()
_TIMEOUT = object()


def _pump(stream: IO[str], sink: "queue.Queue[object]") -> None:
    """Copy lines from a pipe into a queue until end-of-stream."""
    # The pipe is closed under the reader when a worker is torn down
    with suppress(OSError, ValueError):
        for line in stream:
            sink.put(line.rstrip("\r\n"))
    sink.put(_EOF)


@dataclass
class _Exchange:
    """Raw outcome of one framed command."""

    output: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    timed_out: bool = False
    ended: bool = False
    spawn_failed: bool = False


class ShellWorker:
    """
    One persistent interactive shell.

    Lifecycle: Uninitialized -> Ready -> Busy -> Ready ... -> Disposed.

    Args:
        dialect: Shell dialect (PowerShell on Windows, ``sh`` elsewhere)
        timeout: Seconds allowed for stdout to reach the sentinel
        error_timeout: Seconds allowed per stderr line
        max_error_lines: Stderr lines kept per command
        exit_grace: Seconds the shell gets to honour ``exit`` on disposal
        drain_timeout: Seconds allowed to flush stale output before respawning

    Example:
        >>> with ShellWorker() as worker:
        ...     result = worker.execute(ShellCheck(id="T-1", check_command="echo 5",
        ...                                        operator="GreaterThan", find_data="3"))
        >>> result.check_pass
        False
    """

    _ids = itertools.count(1)

    def __init__(
        self,
        dialect: Optional[ShellDialect] = None,
        *,
        timeout: float = COMMAND_TIMEOUT,
        error_timeout: float = ERROR_TIMEOUT,
        max_error_lines: int = MAX_ERROR_LINES,
        exit_grace: float = EXIT_GRACE,
        drain_timeout: float = DRAIN_TIMEOUT,
    ):
        self.dialect = dialect or default_dialect()
        self.timeout = timeout
        self.error_timeout = error_timeout
        self.max_error_lines = max_error_lines
        self.exit_grace = exit_grace
        self.drain_timeout = drain_timeout

        self.wid = next(ShellWorker._ids)
        self.token = f"{SENTINEL_PREFIX}{uuid.uuid4().hex}###"
        self.state = WorkerState.UNINITIALIZED
        self.spawns = 0

        self._lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._proc: Optional[subprocess.Popen] = None
        self._out: "queue.Queue[object]" = queue.Queue()
        self._err: "queue.Queue[object]" = queue.Queue()
        self._readers: List[threading.Thread] = []
        self._pending_out = 0
        self._pending_err = 0
        self._eof = False

    # ----------------------------------------------------------------- lifecycle
    def initialize(self) -> bool:
        """Start the shell and define the session sentinel.

        Returns:
            True when the shell is ready; False when it could not be started
            (the worker is then unusable and holds no resources)
        """
        with self._state_lock:
            if self.state is WorkerState.DISPOSED:
                return False
            if self.state is not WorkerState.UNINITIALIZED:
                return True
            if self._spawn():
                self.state = WorkerState.READY
                return True
            self.state = WorkerState.DISPOSED
            return False

    def dispose(self) -> None:
        """Exit the shell (killing it after the grace period) and release its pipes. Idempotent."""
        with self._state_lock:
            if self.state is WorkerState.DISPOSED and self._proc is None:
                return
            self.state = WorkerState.DISPOSED
        self._terminate()
        LOG.d(f"Worker {self.wid}: disposed")

    @property
    def alive(self) -> bool:
        return self.state in (WorkerState.READY, WorkerState.BUSY)

    @property
    def pid(self) -> Optional[int]:
        proc = self._proc
        return proc.pid if proc else None

    def __enter__(self) -> "ShellWorker":
        if not self.initialize():
            raise WorkerError("Shell could not be started", {"shell": self.dialect.executable})
        return self

    def __exit__(self, *exc) -> None:
        self.dispose()

    # ----------------------------------------------------------------- checks
    def execute(self, check: ShellCheck, timeout: Optional[float] = None) -> CheckResult:
        """Run the check's command and evaluate its output.

        A timed-out command always fails the probe (``probe_succeeded`` False),
        whether or not error lines were seen.

        Raises:
            WorkerError: If the worker is not initialized or already disposed
        """
        command = (check.check_command or "").strip()
        if not command:
            return CheckResult.failure(check, ErrorKind.MISSING_DATA, ("Check has no CheckCommand",))

        try:
            ex = self._run(command, timeout, check.id)
        except WorkerError:
            raise
        except Exception as exc:
            LOG.e(f"Worker {self.wid}: {check.id} failed: {exc}", exc=True)
            return CheckResult.failure(check, ErrorKind.PROBE_ERROR, (str(exc),))

        errors = tuple(ex.errors)
        output = "\n".join(ex.output).rstrip("\r\n")

        if ex.spawn_failed:
            return CheckResult.failure(check, ErrorKind.SPAWN_FAILURE, errors or ("Shell could not be started",))
        if ex.timed_out:
            LOG.w(f"Worker {self.wid}: {check.id} timed out waiting for output")
            return CheckResult.failure(check, ErrorKind.STREAM_TIMEOUT, errors, observed=output, timed_out=True)
        if ex.ended:
            return CheckResult.failure(
                check,
                ErrorKind.PROBE_ERROR,
                errors + ("Shell exited before the command completed",),
                observed=output,
            )

        verdict = evaluate(check.operator, bool(output.strip()), output, check.find_data)
        if not verdict.ok:
            return CheckResult.failure(check, verdict.error, errors, observed=output)

        return CheckResult(
            check=check,
            observed=output,
            check_pass=verdict.check_pass,
            probe_succeeded=not errors,
            errors=errors,
            error_kind=ErrorKind.PROBE_ERROR if errors else None,
        )

    def execute_secure(self, check: ShellCheck, timeout: Optional[float] = None) -> SecureResult:
        """Run the check's remediation command; success means no error lines were seen."""
        command = (check.secure_command or "").strip()
        if not command:
            return SecureResult.failure(check, ErrorKind.MISSING_DATA, ("Check has no SecureCommand",))

        try:
            ex = self._run(command, timeout, check.id)
        except WorkerError:
            raise
        except Exception as exc:
            LOG.e(f"Worker {self.wid}: securing {check.id} failed: {exc}", exc=True)
            return SecureResult.failure(check, ErrorKind.PROBE_ERROR, (str(exc),))

        errors = tuple(ex.errors)
        if ex.spawn_failed:
            return SecureResult.failure(check, ErrorKind.SPAWN_FAILURE, errors or ("Shell could not be started",))
        if ex.timed_out:
            return SecureResult.failure(check, ErrorKind.STREAM_TIMEOUT, errors, timed_out=True)
        if ex.ended:
            return SecureResult.failure(check, ErrorKind.PROBE_ERROR, errors + ("Shell exited before the command completed",))
        return SecureResult(
            check=check,
            secured=not errors,
            errors=errors,
            error_kind=ErrorKind.PROBE_ERROR if errors else None,
        )

    # ----------------------------------------------------------------- protocol
    def _guard(self) -> None:
        if self.state is WorkerState.DISPOSED:
            raise WorkerError("Worker is disposed", {"worker": self.wid})
        if self.state is WorkerState.UNINITIALIZED:
            raise WorkerError("Worker is not initialized", {"worker": self.wid})

    def _run(self, command: str, timeout: Optional[float], check_id: str) -> _Exchange:
        self._guard()
        with self._lock, LOG.scope(worker=self.wid, check=check_id):
            self._guard()
            self.state = WorkerState.BUSY
            try:
                LOG.d(f"> {command[:160]}")
                return self._exchange(command, self.timeout if timeout is None else timeout)
            finally:
                if self.state is WorkerState.BUSY:
                    self.state = WorkerState.READY

    def _exchange(self, command: str, timeout: float) -> _Exchange:
        if not self._ready_for_command():
            return _Exchange(spawn_failed=True)

        try:
            self._send(command)
            self._send(self.dialect.echo_sentinel())
        except (OSError, ValueError) as exc:
            self._eof = True
            return _Exchange(errors=[f"Cannot write to shell: {exc}"], ended=True)
        self._pending_out += 1
        self._pending_err += 1

        ex = _Exchange()
        deadline = time.monotonic() + timeout
        while True:
            item = self._next(self._out, deadline)
            if item is _TIMEOUT:
                ex.timed_out = True
                break
            if item is _EOF:
                self._eof = True
                ex.ended = True
                break
            tail = self._sentinel_tail(item)
            if tail is not None:
                self._pending_out -= 1
                if tail:
                    ex.output.append(tail)
                break
            ex.output.append(item)

        ex.errors = self._read_errors()
        return ex

    def _read_errors(self) -> List[str]:
        errors: List[str] = []
        while len(errors) < self.max_error_lines:
            item = self._next(self._err, time.monotonic() + self.error_timeout)
            if item is _TIMEOUT:
                break
            if item is _EOF:
                self._eof = True
                break
            tail = self._sentinel_tail(item)
            if tail is not None:
                self._pending_err -= 1
                if tail:
                    errors.append(tail)
                break
            errors.append(item)
        return errors

    def _ready_for_command(self) -> bool:
        """Make sure no stale bytes precede the next command's frame."""
        proc = self._proc
        if proc is None or self._eof or proc.poll() is not None:
            return self._respawn("shell exited")
        if self._pending_out or self._pending_err:
            if not self._drain():
                return self._respawn("stale output could not be drained")
        return True

    def _drain(self) -> bool:
        deadline = time.monotonic() + self.drain_timeout
        dropped = 0
        for source in ("out", "err"):
            sink = self._out if source == "out" else self._err
            while getattr(self, f"_pending_{source}"):
                item = self._next(sink, deadline)
                if item is _TIMEOUT or item is _EOF:
                    return False
                if self._sentinel_tail(item) is not None:
                    setattr(self, f"_pending_{source}", getattr(self, f"_pending_{source}") - 1)
                else:
                    dropped += 1
        LOG.d(f"Worker {self.wid}: drained {dropped} stale line(s)")
        return True

    def _respawn(self, reason: str) -> bool:
        LOG.w(f"Worker {self.wid}: {reason}; replacing shell process")
        self._terminate()
        return self._spawn()

    def _sentinel_tail(self, line: object) -> Optional[str]:
        """Text before the sentinel on ``line``, or None if ``line`` does not end the frame.

        Output without a trailing newline shares its last line with the sentinel.
        """
        if not isinstance(line, str):
            return None
        line = line.rstrip()
        if not line.endswith(self.token):
            return None
        return line[: -len(self.token)]

    @staticmethod
    def _next(sink: "queue.Queue[object]", deadline: float) -> object:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return _TIMEOUT
        try:
            return sink.get(timeout=remaining)
        except queue.Empty:
            return _TIMEOUT

    def _send(self, line: str) -> None:
        stdin = self._proc.stdin
        stdin.write(line + "\n")
        stdin.flush()

    # ----------------------------------------------------------------- process
    def _spawn(self) -> bool:
        kwargs = {
            "stdin": subprocess.PIPE,
            "stdout": subprocess.PIPE,
            "stderr": subprocess.PIPE,
            "text": True,
            "encoding": self.dialect.encoding,
            "errors": "replace",
            "bufsize": 1,
        }
        if Cfg.IS_WIN:
            kwargs["creationflags"] = getattr(subprocess, "CREATE_NO_WINDOW", 0)
        else:
            # Own process group so disposal also reaps whatever the shell started
            kwargs["start_new_session"] = True

        try:
            proc = subprocess.Popen(self.dialect.argv, **kwargs)
        except (OSError, ValueError) as exc:
            LOG.w(f"Worker {self.wid}: cannot start {self.dialect.executable}: {exc}")
            return False

        self._proc = proc
        self._out, self._err = queue.Queue(), queue.Queue()
        self._pending_out = self._pending_err = 0
        self._eof = False
        self._readers = [
            self._start_reader(proc.stdout, self._out, "out"),
            self._start_reader(proc.stderr, self._err, "err"),
        ]

        try:
            self._send(self.dialect.define_sentinel(self.token))
        except (OSError, ValueError) as exc:
            LOG.w(f"Worker {self.wid}: shell rejected session setup: {exc}")
            self._terminate()
            return False

        self.spawns += 1
        LOG.d(f"Worker {self.wid}: started {self.dialect.name} (pid {proc.pid})")
        return True

    def _start_reader(self, stream: IO[str], sink: "queue.Queue[object]", label: str) -> threading.Thread:
        thread = threading.Thread(
            target=_pump,
            args=(stream, sink),
            name=f"st3wart-worker{self.wid}-{label}",
            daemon=True,
        )
        thread.start()
        return thread

    def _terminate(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None:
            return

        if proc.poll() is None:
            with suppress(OSError, ValueError):
                self._proc_send(proc, self.dialect.exit_command())
            try:
                proc.wait(timeout=self.exit_grace)
            except subprocess.TimeoutExpired:
                LOG.d(f"Worker {self.wid}: shell ignored exit, killing pid {proc.pid}")
        self._kill(proc)

        for thread in self._readers:
            thread.join(timeout=1.0)
        self._readers = []

        for stream in (proc.stdin, proc.stdout, proc.stderr):
            if stream is not None:
                with suppress(OSError, ValueError):
                    stream.close()

    def _kill(self, proc: subprocess.Popen) -> None:
        if Cfg.IS_WIN:
            with suppress(OSError):
                proc.kill()
        else:
            # Children left behind by the shell would keep the pipes open
            with suppress(OSError):
                os.killpg(proc.pid, signal.SIGKILL)
        with suppress(subprocess.TimeoutExpired):
            proc.wait(timeout=self.exit_grace)

    @staticmethod
    def _proc_send(proc: subprocess.Popen, line: str) -> None:
        proc.stdin.write(line + "\n")
        proc.stdin.flush()

    def __repr__(self) -> str:
        return f"ShellWorker(id={self.wid}, state={self.state.value}, dialect={self.dialect.name})"
