import unittest
from datetime import timedelta

from notification.retry_queue import BACKOFF_SCHEDULE, backoff_delay, schedule_from_seconds


class TestBackoffDelay(unittest.TestCase):

    def test_schedule_values(self):
        expected = [
            timedelta(minutes=1),
            timedelta(minutes=5),
            timedelta(minutes=15),
            timedelta(hours=1),
            timedelta(hours=6),
        ]
        self.assertEqual([backoff_delay(k) for k in range(5)], expected)

    def test_caps_at_last_step(self):
        self.assertEqual(backoff_delay(5), timedelta(hours=6))
        self.assertEqual(backoff_delay(50), timedelta(hours=6))

    def test_monotonic_non_decreasing(self):
        delays = [backoff_delay(k) for k in range(10)]
        self.assertEqual(delays, sorted(delays))

    def test_negative_count_rejected(self):
        with self.assertRaises(ValueError):
            backoff_delay(-1)

    def test_custom_schedule(self):
        schedule = schedule_from_seconds([10, 20])
        self.assertEqual(schedule, (timedelta(seconds=10), timedelta(seconds=20)))
        self.assertEqual(backoff_delay(0, schedule), timedelta(seconds=10))
        self.assertEqual(backoff_delay(7, schedule), timedelta(seconds=20))

    def test_default_schedule_has_five_steps(self):
        self.assertEqual(len(BACKOFF_SCHEDULE), 5)


if __name__ == "__main__":
    unittest.main()
