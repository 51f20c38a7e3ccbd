import unittest

from app.services.freshness import describe_last_updated, is_stale


class FreshnessTest(unittest.TestCase):
    def test_last_updated_labels(self):
        now = 1_700_000_000
        self.assertEqual(describe_last_updated(None, now), "Never")
        self.assertEqual(describe_last_updated(now - 5, now), "Just now")
        self.assertEqual(describe_last_updated(now - 59, now), "Just now")
        self.assertEqual(describe_last_updated(now - 60, now), "1m ago")
        self.assertEqual(describe_last_updated(now - 3599, now), "59m ago")
        self.assertEqual(describe_last_updated(now - 7300, now), "2h ago")

    def test_future_timestamp_reads_as_just_now(self):
        self.assertEqual(describe_last_updated(1_700_000_100, 1_700_000_000), "Just now")

    def test_staleness(self):
        now = 1_700_000_000
        self.assertTrue(is_stale(None, 60, now))
        self.assertFalse(is_stale(now - 60, 60, now))
        self.assertTrue(is_stale(now - 61, 60, now))


if __name__ == "__main__":
    unittest.main()
