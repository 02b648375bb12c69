"""Unit tests for cleanup callbacks run on fatal errors."""

import unittest

from utils.error_tracker import ErrorTracker


class TestCleanup(unittest.TestCase):
    def setUp(self):
        ErrorTracker.clear_cleanup()

    def tearDown(self):
        ErrorTracker.clear_cleanup()

    def test_callbacks_run_in_order(self):
        calls = []
        ErrorTracker.register_cleanup(lambda: calls.append("a"))
        ErrorTracker.register_cleanup(lambda: calls.append("b"))
        ErrorTracker._run_cleanup()
        self.assertEqual(calls, ["a", "b"])

    def test_failing_callback_does_not_stop_others(self):
        calls = []

        def boom():
            raise RuntimeError("boom")

        ErrorTracker.register_cleanup(boom)
        ErrorTracker.register_cleanup(lambda: calls.append("after"))
        ErrorTracker._run_cleanup()
        self.assertEqual(calls, ["after"])

    def test_report_without_traceback(self):
        ErrorTracker.report(ValueError("not raised"))


if __name__ == "__main__":
    unittest.main()
