"""Unit tests for the sliding-window RateLimiter."""

import unittest

from warden.services.throttle import RateLimiter


class ManualClock:
    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


class TestRateLimiter(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = ManualClock()
        self.limiter = RateLimiter(3, 60, clock=self.clock)

    def test_allows_up_to_limit_then_rejects(self) -> None:
        for _ in range(3):
            self.assertEqual(self.limiter.hit("1.2.3.4"), (True, 0.0))
        allowed, retry_after = self.limiter.hit("1.2.3.4")
        self.assertFalse(allowed)
        self.assertAlmostEqual(retry_after, 60.0)

    def test_keys_are_independent(self) -> None:
        for _ in range(3):
            self.limiter.hit("a")
        self.assertTrue(self.limiter.hit("b")[0])

    def test_window_slides(self) -> None:
        self.limiter.hit("a")
        self.clock.value += 30
        self.limiter.hit("a")
        self.limiter.hit("a")
        self.assertFalse(self.limiter.hit("a")[0])
        self.clock.value += 31
        allowed, _ = self.limiter.hit("a")
        self.assertTrue(allowed)
        self.assertFalse(self.limiter.hit("a")[0])

    def test_rejected_hits_are_not_counted(self) -> None:
        for _ in range(10):
            self.limiter.hit("a")
        self.clock.value += 61
        self.assertTrue(self.limiter.hit("a")[0])

    def test_reset_and_prune(self) -> None:
        for _ in range(3):
            self.limiter.hit("a")
        self.limiter.hit("b")
        self.limiter.reset("a")
        self.assertTrue(self.limiter.hit("a")[0])
        self.clock.value += 120
        self.assertEqual(self.limiter.prune(), 2)
        self.limiter.hit("c")
        self.limiter.reset()
        self.assertEqual(self.limiter.prune(), 0)

    def test_idle_keys_are_dropped_once_max_keys_is_reached(self) -> None:
        limiter = RateLimiter(3, 60, clock=self.clock, max_keys=2)
        limiter.hit("a")
        limiter.hit("b")
        self.clock.value += 61
        limiter.hit("c")
        self.assertEqual(len(limiter), 1)

    def test_active_keys_survive_pruning(self) -> None:
        limiter = RateLimiter(1, 60, clock=self.clock, max_keys=2)
        limiter.hit("a")
        limiter.hit("b")
        limiter.hit("c")
        self.assertEqual(len(limiter), 3)
        self.assertFalse(limiter.hit("a")[0])

    def test_rejects_bad_configuration(self) -> None:
        with self.assertRaises(ValueError):
            RateLimiter(0, 60)
        with self.assertRaises(ValueError):
            RateLimiter(1, 0)
        with self.assertRaises(ValueError):
            RateLimiter(1, 60, max_keys=0)


if __name__ == "__main__":
    unittest.main()
