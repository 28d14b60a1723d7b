import unittest

from zkcron.client import CallResult, CallStatus
from zkcron.retry import RetryPolicy


class ScriptedOp:
    def __init__(self, *statuses):
        self.statuses = list(statuses)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        status = self.statuses.pop(0) if self.statuses else self.last
        self.last = status
        return CallResult(status, "value" if status is CallStatus.OK else None)


class TestRetryPolicy(unittest.TestCase):
    def setUp(self):
        self.sleeps = []
        self.policy = RetryPolicy(max_attempts=5, delay_seconds=0.25, sleep=self.sleeps.append)

    def test_success_passes_through(self):
        op = ScriptedOp(CallStatus.OK)
        result = self.policy.call(op)
        self.assertTrue(result.ok)
        self.assertEqual(result.value, "value")
        self.assertEqual(result.attempts, 1)
        self.assertEqual(self.sleeps, [])

    def test_transient_then_success(self):
        op = ScriptedOp(CallStatus.CONNECTION_LOSS, CallStatus.CONNECTION_LOSS, CallStatus.OK)
        result = self.policy.call(op)
        self.assertTrue(result.ok)
        self.assertEqual(result.attempts, 3)
        self.assertEqual(self.sleeps, [0.25, 0.25])

    def test_transient_is_bounded(self):
        op = ScriptedOp(CallStatus.CONNECTION_LOSS)
        result = self.policy.call(op)
        self.assertEqual(result.status, CallStatus.CONNECTION_LOSS)
        self.assertEqual(op.calls, 5)
        self.assertEqual(result.attempts, 5)
        self.assertEqual(len(self.sleeps), 4)

    def test_permanent_is_not_retried(self):
        for status in (CallStatus.NO_NODE, CallStatus.AUTH_FAILED, CallStatus.SESSION_EXPIRED):
            op = ScriptedOp(status)
            result = self.policy.call(op)
            self.assertEqual(result.status, status)
            self.assertEqual(op.calls, 1)
            self.assertEqual(result.attempts, 1)
        self.assertEqual(self.sleeps, [])

    def test_arguments_are_forwarded(self):
        seen = []

        def op(path, watch=None):
            seen.append((path, watch))
            return CallResult(CallStatus.OK)

        self.policy.call(op, "/locks", watch=print)
        self.assertEqual(seen, [("/locks", print)])

    def test_rejects_zero_attempts(self):
        with self.assertRaises(ValueError):
            RetryPolicy(max_attempts=0, delay_seconds=0)


if __name__ == "__main__":
    unittest.main()
