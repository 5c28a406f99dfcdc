"""Tests for ShellWorker against a real POSIX shell."""

import time
import unittest

import pytest

from stewart.checks.models import ShellCheck
from stewart.core.config import Cfg
from stewart.core.constants import ErrorKind, WorkerState
from stewart.core.deps import Deps
from stewart.exceptions import WorkerError
from stewart.shell.dialect import PosixDialect
from stewart.shell.worker import ShellWorker

needs_sh = unittest.skipIf(Cfg.IS_WIN or not Deps.POSIX_SH, "needs a POSIX sh")


def make_worker(**kw) -> ShellWorker:
    kw.setdefault("timeout", 5.0)
    kw.setdefault("error_timeout", 0.5)
    kw.setdefault("exit_grace", 0.5)
    return ShellWorker(PosixDialect(), **kw)


def shell(cid: str, command: str, operator: str = "Exists", find: str = "", secure: str = "") -> ShellCheck:
    return ShellCheck(id=cid, check_command=command, operator=operator, find_data=find, secure_command=secure)


@needs_sh
@pytest.mark.posix_shell
class TestWorkerExecute(unittest.TestCase):

    def setUp(self):
        self.worker = make_worker()
        self.assertTrue(self.worker.initialize())

    def tearDown(self):
        self.worker.dispose()

    def test_lifecycle_states(self):
        self.assertIs(self.worker.state, WorkerState.READY)
        self.worker.execute(shell("T-0", "echo 1"))
        self.assertIs(self.worker.state, WorkerState.READY)
        self.assertTrue(self.worker.alive)

    def test_output_evaluated(self):
        result = self.worker.execute(shell("T-1", "echo 5", "GreaterThan", "3"))
        self.assertEqual(result.observed, "5")
        self.assertFalse(result.check_pass)
        self.assertTrue(result.probe_succeeded)
        self.assertFalse(result.timed_out)

    def test_multiline_output(self):
        result = self.worker.execute(shell("T-2", "printf 'a\\nb\\n'", "Contains", "b"))
        self.assertEqual(result.observed, "a\nb")
        self.assertFalse(result.check_pass)

    def test_stderr_collected_as_errors(self):
        result = self.worker.execute(shell("T-3", "echo oops >&2; echo 1", "EqualTo", "1"))
        self.assertEqual(result.errors, ("oops",))
        self.assertTrue(result.check_pass)
        self.assertFalse(result.probe_succeeded)
        self.assertEqual(result.error_kind, ErrorKind.PROBE_ERROR)

    def test_stderr_capped(self):
        result = self.worker.execute(shell("T-4", "for i in 1 2 3 4 5 6 7 8; do echo e$i >&2; done; echo x"))
        self.assertEqual(len(result.errors), self.worker.max_error_lines)
        # The surplus lines are drained before the next command
        follow = self.worker.execute(shell("T-4b", "echo clean"))
        self.assertEqual(follow.observed, "clean")
        self.assertEqual(follow.errors, ())

    def test_empty_output_is_absent(self):
        result = self.worker.execute(shell("T-5", "true", "Exists"))
        self.assertFalse(result.check_pass)
        self.assertTrue(result.probe_succeeded)

    def test_session_state_persists(self):
        self.worker.execute(shell("T-6a", "ST3WART_X=42"))
        result = self.worker.execute(shell("T-6b", "echo $ST3WART_X", "EqualTo", "42"))
        self.assertEqual(result.observed, "42")

    def test_parse_failure(self):
        result = self.worker.execute(shell("T-7", "echo abc", "GreaterThan", "10"))
        self.assertFalse(result.check_pass)
        self.assertFalse(result.probe_succeeded)
        self.assertEqual(result.error_kind, ErrorKind.PARSE_FAILURE)

    def test_unknown_operator(self):
        result = self.worker.execute(shell("T-8", "echo 1", "Matches", "1"))
        self.assertEqual(result.error_kind, ErrorKind.UNKNOWN_OPERATOR)

    def test_missing_command(self):
        result = self.worker.execute(shell("T-9", "   "))
        self.assertEqual(result.error_kind, ErrorKind.MISSING_DATA)
        self.assertFalse(result.probe_succeeded)

    def test_sentinel_is_per_worker(self):
        other = make_worker()
        self.assertNotEqual(self.worker.token, other.token)

    def test_stdout_without_trailing_newline(self):
        result = self.worker.execute(shell("T-12", "printf 5", "GreaterThan", "3"))
        self.assertFalse(result.timed_out)
        self.assertEqual(result.observed, "5")
        self.assertTrue(result.probe_succeeded)
        self.assertFalse(result.check_pass)
        follow = self.worker.execute(shell("T-12b", "echo next"))
        self.assertEqual(follow.observed, "next")
        self.assertEqual(self.worker.spawns, 1)

    def test_unterminated_last_line_after_others(self):
        result = self.worker.execute(shell("T-13", "printf 'a\\nb'", "Contains", "b"))
        self.assertEqual(result.observed, "a\nb")
        self.assertFalse(result.timed_out)

    def test_stderr_without_trailing_newline(self):
        result = self.worker.execute(shell("T-14", "printf err >&2; echo 1", "EqualTo", "1"))
        self.assertFalse(result.timed_out)
        self.assertEqual(result.errors, ("err",))
        self.assertEqual(result.observed, "1")
        follow = self.worker.execute(shell("T-14b", "echo clean"))
        self.assertEqual(follow.errors, ())
        self.assertEqual(self.worker.spawns, 1)


@needs_sh
@pytest.mark.posix_shell
class TestWorkerTimeouts(unittest.TestCase):
    """A timed-out command must never bleed into the next command's output."""

    def test_timeout_then_drain(self):
        worker = make_worker(timeout=0.3, error_timeout=0.2)
        self.assertTrue(worker.initialize())
        try:
            slow = worker.execute(shell("T-10", "sleep 1; echo late", "EqualTo", "late"))
            self.assertTrue(slow.timed_out)
            self.assertFalse(slow.probe_succeeded)
            self.assertFalse(slow.check_pass)
            self.assertEqual(slow.error_kind, ErrorKind.STREAM_TIMEOUT)

            follow = worker.execute(shell("T-11", "echo 7", "EqualTo", "7"), timeout=5.0)
            self.assertEqual(follow.observed, "7")
            self.assertTrue(follow.probe_succeeded)
            self.assertEqual(worker.spawns, 1)
        finally:
            worker.dispose()

    def test_undrainable_worker_is_respawned(self):
        worker = make_worker(timeout=0.2, error_timeout=0.1, drain_timeout=0.3, exit_grace=0.2)
        self.assertTrue(worker.initialize())
        try:
            first_pid = worker.pid
            stuck = worker.execute(shell("T-12", "sleep 30; echo never"))
            self.assertTrue(stuck.timed_out)

            follow = worker.execute(shell("T-13", "echo fresh", "EqualTo", "fresh"), timeout=5.0)
            self.assertEqual(follow.observed, "fresh")
            self.assertEqual(worker.spawns, 2)
            self.assertNotEqual(worker.pid, first_pid)
        finally:
            worker.dispose()

    def test_exited_shell_is_respawned(self):
        worker = make_worker()
        self.assertTrue(worker.initialize())
        try:
            gone = worker.execute(shell("T-14", "exit 3"))
            self.assertFalse(gone.probe_succeeded)
            self.assertEqual(gone.error_kind, ErrorKind.PROBE_ERROR)

            follow = worker.execute(shell("T-15", "echo back"))
            self.assertEqual(follow.observed, "back")
            self.assertEqual(worker.spawns, 2)
        finally:
            worker.dispose()


@needs_sh
@pytest.mark.posix_shell
class TestWorkerSecure(unittest.TestCase):

    def setUp(self):
        self.worker = make_worker()
        self.worker.initialize()

    def tearDown(self):
        self.worker.dispose()

    def test_secure_without_errors(self):
        result = self.worker.execute_secure(shell("S-1", "echo 1", secure="echo fixed"))
        self.assertTrue(result.secured)
        self.assertEqual(result.errors, ())

    def test_secure_with_errors(self):
        result = self.worker.execute_secure(shell("S-2", "echo 1", secure="echo denied >&2"))
        self.assertFalse(result.secured)
        self.assertEqual(result.errors, ("denied",))

    def test_secure_without_command(self):
        result = self.worker.execute_secure(shell("S-3", "echo 1"))
        self.assertFalse(result.secured)
        self.assertEqual(result.error_kind, ErrorKind.MISSING_DATA)


class TestWorkerLifecycle(unittest.TestCase):

    def test_spawn_failure(self):
        worker = ShellWorker(PosixDialect(executable="/nonexistent/st3wart-sh"))
        self.assertFalse(worker.initialize())
        self.assertIs(worker.state, WorkerState.DISPOSED)
        self.assertIsNone(worker.pid)
        worker.dispose()

    def test_execute_before_initialize(self):
        worker = ShellWorker(PosixDialect(executable="/bin/sh"))
        with self.assertRaises(WorkerError):
            worker.execute(shell("L-1", "echo 1"))

    @needs_sh
    def test_dispose_is_idempotent(self):
        worker = make_worker()
        self.assertTrue(worker.initialize())
        worker.dispose()
        worker.dispose()
        self.assertIs(worker.state, WorkerState.DISPOSED)
        self.assertIsNone(worker.pid)
        with self.assertRaises(WorkerError):
            worker.execute(shell("L-2", "echo 1"))

    @needs_sh
    def test_dispose_reaps_background_children(self):
        worker = make_worker(exit_grace=0.2)
        worker.initialize()
        start = time.monotonic()
        worker.execute(shell("L-3", "sleep 30 &"))
        worker.dispose()
        self.assertLess(time.monotonic() - start, 10)

    @needs_sh
    def test_context_manager(self):
        with make_worker() as worker:
            self.assertTrue(worker.alive)
        self.assertIs(worker.state, WorkerState.DISPOSED)

    def test_context_manager_spawn_failure(self):
        with self.assertRaises(WorkerError):
            with ShellWorker(PosixDialect(executable="/nonexistent/st3wart-sh")):
                pass


if __name__ == "__main__":
    unittest.main()
