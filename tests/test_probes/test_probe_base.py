"""Tests for the shared probe plumbing."""

import threading
import time
import unittest

from stewart.checks.models import FileCheck
from stewart.core.constants import CheckType, ErrorKind
from stewart.exceptions import ValidationError
from stewart.probes.base import Probe, fan_out


class TestFanOut(unittest.TestCase):

    def test_inline_when_width_is_one(self):
        seen = []
        fan_out(lambda item: seen.append(threading.current_thread()), range(3))
        self.assertEqual(set(seen), {threading.current_thread()})

    def test_order_preserved(self):
        def slow_square(n):
            time.sleep(0.01 * (5 - n))
            return n * n

        self.assertEqual(fan_out(slow_square, range(5), width=5), [0, 1, 4, 9, 16])

    def test_width_bounds_concurrency(self):
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def work(_):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.02)
            with lock:
                state["active"] -= 1

        fan_out(work, range(12), width=3)
        self.assertLessEqual(state["peak"], 3)

    def test_empty(self):
        self.assertEqual(fan_out(str, [], width=4), [])

    def test_invalid_width(self):
        with self.assertRaises(ValidationError):
            fan_out(str, [1], width=0)


class ExplodingProbe(Probe):
    kind = CheckType.FILE

    def _check(self, check):
        raise OSError("disk on fire")

    def _secure(self, check):
        raise OSError("still on fire")


class TestProbeContainment(unittest.TestCase):

    def test_check_exception_becomes_result(self):
        result = ExplodingProbe().check(FileCheck(id="FS-X"))
        self.assertFalse(result.check_pass)
        self.assertFalse(result.probe_succeeded)
        self.assertEqual(result.error_kind, ErrorKind.PROBE_ERROR)
        self.assertEqual(result.errors, ("disk on fire",))

    def test_secure_exception_becomes_result(self):
        result = ExplodingProbe().secure(FileCheck(id="FS-X"))
        self.assertFalse(result.secured)
        self.assertEqual(result.errors, ("still on fire",))

    def test_batch_continues_past_failures(self):
        results = ExplodingProbe().run([FileCheck(id=f"FS-{i}") for i in range(4)], pool_size=2)
        self.assertEqual(len(results), 4)
        self.assertTrue(all(r.error_kind is ErrorKind.PROBE_ERROR for r in results))


if __name__ == "__main__":
    unittest.main()
