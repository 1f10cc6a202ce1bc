"""
Unit tests for concurrency strategies.
"""

import threading
import time
import unittest

from strategies import BoundedParallelStrategy, SequentialStrategy, build_strategy


class TestStrategies(unittest.TestCase):
    """Test ordering and worker bounds."""

    def test_sequential_runs_in_order(self):
        seen = []

        results = SequentialStrategy().run(lambda x: seen.append(x) or x * 2, [1, 2, 3])

        self.assertEqual(seen, [1, 2, 3])
        self.assertEqual(results, [2, 4, 6])

    def test_parallel_results_keep_input_order(self):
        def task(x):
            time.sleep(0.01 * (5 - x))
            return x

        results = BoundedParallelStrategy(4).run(task, [1, 2, 3, 4, 5])

        self.assertEqual(results, [1, 2, 3, 4, 5])

    def test_parallel_never_covers_whole_fleet(self):
        strategy = BoundedParallelStrategy(10)
        self.assertEqual(strategy.workers_for(1), 1)
        self.assertEqual(strategy.workers_for(2), 1)
        self.assertEqual(strategy.workers_for(4), 3)
        self.assertEqual(strategy.workers_for(50), 10)

    def test_parallel_concurrency_is_bounded(self):
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def task(x):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.02)
            with lock:
                state["active"] -= 1
            return x

        BoundedParallelStrategy(2).run(task, list(range(6)))

        self.assertLessEqual(state["peak"], 2)

    def test_build_strategy(self):
        self.assertIsInstance(build_strategy(1), SequentialStrategy)
        self.assertIsInstance(build_strategy(3), BoundedParallelStrategy)


if __name__ == "__main__":
    unittest.main()
