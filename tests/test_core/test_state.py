"""Tests for GlobalState singleton."""

import os
import tempfile
import threading
import unittest
from pathlib import Path

from stewart.core.state import GLOBAL_STATE, GlobalState


class TestGlobalState(unittest.TestCase):
    """Test GlobalState singleton."""

    def test_singleton(self):
        self.assertIs(GlobalState(), GlobalState())
        self.assertIs(GlobalState(), GLOBAL_STATE)

    def test_temp_tracking(self):
        state = GlobalState()
        handle, name = tempfile.mkstemp()
        tmp = Path(name)
        try:
            state.add_temp(tmp)
            self.assertIn(tmp, state.temps)
            state.discard_temp(tmp)
            self.assertNotIn(tmp, state.temps)
            # Discarding twice is harmless
            state.discard_temp(tmp)
        finally:
            os.close(handle)
            tmp.unlink()

    def test_cleanup_callback_registration(self):
        state = GlobalState()

        def callback():
            pass

        state.add_cleanup(callback)
        self.assertIn(callback, state.cleanups)
        state.remove_cleanup(callback)
        self.assertNotIn(callback, state.cleanups)
        state.remove_cleanup(callback)


class TestCleanup(unittest.TestCase):
    """cleanup() on a detached instance; the process-wide one must stay live."""

    def setUp(self):
        self.state = object.__new__(GlobalState)
        self.state.shutdown = threading.Event()
        self.state.temps = []
        self.state.cleanups = []

    def test_runs_newest_first_even_when_callbacks_unregister(self):
        order = []

        def make(name):
            def dispose():
                order.append(name)
                self.state.remove_cleanup(dispose)

            return dispose

        for name in ("pool-a", "pool-b", "pool-c"):
            self.state.add_cleanup(make(name))
        self.state.cleanup()
        self.assertEqual(order, ["pool-c", "pool-b", "pool-a"])
        self.assertTrue(self.state.shutdown.is_set())

    def test_failing_callback_does_not_stop_the_rest(self):
        ran = []

        def broken():
            raise RuntimeError("shell already gone")

        self.state.add_cleanup(lambda: ran.append(1))
        self.state.add_cleanup(broken)
        self.state.cleanup()
        self.assertEqual(ran, [1])

    def test_removes_staged_temps_once(self):
        handle, name = tempfile.mkstemp()
        os.close(handle)
        staged = Path(name)
        self.state.add_temp(staged)
        self.state.add_temp(Path(name + ".gone"))
        self.state.cleanup()
        self.assertFalse(staged.exists())

        calls = []
        self.state.add_cleanup(lambda: calls.append(1))
        self.state.cleanup()
        self.assertEqual(calls, [])


if __name__ == "__main__":
    unittest.main()
