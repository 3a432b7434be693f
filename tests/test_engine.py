"""Unit tests for the Monte Carlo estimator."""

import asyncio
import random
import unittest
from typing import List, Tuple

from minestats.engine import (
    AnalysisStep,
    SimulationCancelled,
    adjusted_threshold,
    rank_cells,
    run_adaptive_simulation,
    run_monte_carlo_simulation,
    run_simulation,
    top_suggestions,
    training_bonus,
)


class _Recorder:
    def __init__(self) -> None:
        self.events: List[Tuple[int, AnalysisStep]] = []

    def __call__(self, progress: int, step: AnalysisStep) -> None:
        self.events.append((progress, step))

    @property
    def percentages(self) -> List[int]:
        return [progress for progress, _ in self.events]


class TestThresholdAdjustment(unittest.TestCase):
    def test_training_bonus(self) -> None:
        self.assertEqual(training_bonus(0), 0.0)
        self.assertAlmostEqual(training_bonus(4), 0.02)
        self.assertAlmostEqual(training_bonus(10), 0.05)
        self.assertAlmostEqual(training_bonus(40), 0.05)

    def test_adjusted_threshold(self) -> None:
        self.assertAlmostEqual(adjusted_threshold(0.97, 0), 0.97)
        self.assertAlmostEqual(adjusted_threshold(0.97, 4), 0.95)
        self.assertAlmostEqual(adjusted_threshold(0.97, 10), 0.92)
        self.assertAlmostEqual(adjusted_threshold(0.92, 10), 0.90)
        self.assertAlmostEqual(adjusted_threshold(0.5, 0), 0.90)


class TestRunSimulation(unittest.TestCase):
    """Tests for the blocking run_simulation entry point."""

    def test_reference_scenario_uses_fallback(self) -> None:
        result = run_simulation(3, 1000, 0.97, [], 0, rng=random.Random(1))

        self.assertAlmostEqual(result.threshold, 0.97)
        self.assertEqual(result.iterations, 1000)
        self.assertTrue(result.fallback_used)
        self.assertEqual(len(result.safe_cells), 5)
        for value in result.confidence_map.values():
            self.assertAlmostEqual(value, 0.88, delta=0.06)

    def test_deterministic_with_seed(self) -> None:
        history = [(0, 1, 2), (5, 6, 7)]
        a = run_simulation(3, 500, 0.97, history, 3, rng=random.Random(42))
        b = run_simulation(3, 500, 0.97, history, 3, rng=random.Random(42))

        self.assertEqual(a, b)
        self.assertEqual(a.safe_cells, b.safe_cells)
        self.assertEqual(a.confidence_map, b.confidence_map)

    def test_confidence_map_is_total_and_bounded(self) -> None:
        result = run_simulation(7, 300, 0.97, rng=random.Random(2))
        self.assertEqual(sorted(result.confidence_map), list(range(25)))
        for value in result.confidence_map.values():
            self.assertGreaterEqual(value, 0.0)
            self.assertLessEqual(value, 1.0)

    def test_safe_cells_never_empty(self) -> None:
        result = run_simulation(20, 200, 1.0, rng=random.Random(3))
        self.assertTrue(result.fallback_used)
        self.assertEqual(len(result.safe_cells), 5)
        self.assertEqual(len(set(result.safe_cells)), 5)

    def test_fallback_picks_highest_confidence(self) -> None:
        result = run_simulation(12, 400, 1.0, rng=random.Random(4))
        ranked = rank_cells(result.confidence_map, range(25))
        self.assertEqual(result.safe_cells, ranked[:5])

    def test_safe_cells_sorted(self) -> None:
        result = run_simulation(1, 1000, 0.9, rng=random.Random(5))

        self.assertFalse(result.fallback_used)
        self.assertEqual(len(result.safe_cells), 25)
        keys = [(-result.confidence_map[c], c) for c in result.safe_cells]
        self.assertEqual(keys, sorted(keys))
        for cell in result.safe_cells:
            self.assertGreaterEqual(result.confidence_map[cell], result.threshold)

    def test_iterations_not_divisible_by_batches(self) -> None:
        result = run_simulation(3, 1003, 0.97, rng=random.Random(6))
        self.assertEqual(result.iterations, 1003)
        # Every draw marks exactly N - M cells as safe.
        self.assertAlmostEqual(sum(result.confidence_map.values()), 22.0, places=6)

    def test_fewer_iterations_than_batches(self) -> None:
        result = run_simulation(3, 7, 0.97, rng=random.Random(6))
        self.assertAlmostEqual(sum(result.confidence_map.values()), 22.0, places=6)

    def test_patterns_avoided_counted(self) -> None:
        # Every 24-mine draw overlaps a 24-mine history pattern by >= 23 cells.
        result = run_simulation(24, 50, 0.97, [tuple(range(24))], rng=random.Random(7))
        self.assertEqual(result.patterns_avoided, 50)

    def test_no_history_avoids_nothing(self) -> None:
        result = run_simulation(3, 200, 0.97, rng=random.Random(8))
        self.assertEqual(result.patterns_avoided, 0)
        self.assertEqual(result.training_bonus, 0.0)

    def test_training_bonus_reported_as_percentage(self) -> None:
        result = run_simulation(3, 100, 0.97, training_level=4, rng=random.Random(9))
        self.assertAlmostEqual(result.training_bonus, 2.0)
        self.assertAlmostEqual(result.threshold, 0.95)

    def test_invalid_configuration_fails_before_sampling(self) -> None:
        recorder = _Recorder()
        for mines, iterations in ((0, 100), (-1, 100), (25, 100), (30, 100), (3, 0), (3, -5)):
            with self.assertRaises(ValueError):
                run_simulation(mines, iterations, 0.97, on_progress=recorder)
        with self.assertRaises(ValueError):
            run_simulation(3, 100, 1.5, on_progress=recorder)
        self.assertEqual(recorder.events, [])

    def test_progress_events(self) -> None:
        recorder = _Recorder()
        run_simulation(3, 100, 0.97, [(0, 1, 2)], 2, recorder, rng=random.Random(10))

        percentages = recorder.percentages
        self.assertEqual(percentages, sorted(percentages))
        self.assertEqual(percentages[0], 5)
        self.assertEqual(percentages[-1], 100)
        self.assertIn(10, percentages)
        self.assertIn(82, percentages)
        for batch in range(1, 11):
            self.assertIn(20 + batch * 6, percentages)

        types = {step.type for _, step in recorder.events}
        self.assertTrue(types <= {"info", "process", "success", "warning"})
        self.assertEqual(recorder.events[-1][1].type, "success")
        self.assertIn("warning", types)

    def test_progress_without_history_or_training(self) -> None:
        recorder = _Recorder()
        run_simulation(1, 100, 0.9, on_progress=recorder, rng=random.Random(11))
        self.assertNotIn(10, recorder.percentages)
        self.assertNotIn(82, recorder.percentages)
        self.assertNotIn("warning", {step.type for _, step in recorder.events})

    def test_cancellation(self) -> None:
        with self.assertRaises(SimulationCancelled):
            run_simulation(3, 100, should_cancel=lambda: True)

        calls = []

        def cancel_at_third_batch() -> bool:
            calls.append(1)
            return len(calls) == 3

        recorder = _Recorder()
        with self.assertRaises(SimulationCancelled):
            run_simulation(3, 100, on_progress=recorder, should_cancel=cancel_at_third_batch)
        self.assertEqual(len(calls), 3)
        self.assertNotIn(100, recorder.percentages)

    def test_legacy_entry_point(self) -> None:
        result = asyncio.run(run_monte_carlo_simulation(3, 200, rng=random.Random(12)))
        self.assertEqual(result.patterns_avoided, 0)
        self.assertEqual(result.training_bonus, 0.0)
        self.assertEqual(len(result.safe_cells), 5)


class TestTopSuggestions(unittest.TestCase):
    def test_count_and_exclusion(self) -> None:
        result = run_simulation(3, 200, 0.97, rng=random.Random(13))
        ranked = result.safe_cells

        self.assertEqual(top_suggestions(result, 3), ranked[:3])
        self.assertEqual(top_suggestions(result, 10, exclude=[ranked[0]]), ranked[1:])
        self.assertEqual(top_suggestions(result, 0), [])


class TestAsyncRun(unittest.IsolatedAsyncioTestCase):
    """Tests for the cooperative behavior of run_adaptive_simulation."""

    async def test_yields_between_batches(self) -> None:
        ticks = {"n": 0}
        done = asyncio.Event()

        async def ticker() -> None:
            while not done.is_set():
                ticks["n"] += 1
                await asyncio.sleep(0)

        observed: List[int] = []
        task = asyncio.create_task(ticker())
        try:
            await run_adaptive_simulation(
                3,
                500,
                0.97,
                on_progress=lambda progress, step: observed.append(ticks["n"]),
                rng=random.Random(14),
            )
        finally:
            done.set()
            await task

        self.assertGreater(len(observed), 10)
        self.assertGreater(observed[-1], observed[0])

    async def test_concurrent_runs_are_independent(self) -> None:
        a, b = await asyncio.gather(
            run_adaptive_simulation(3, 300, rng=random.Random(15)),
            run_adaptive_simulation(3, 300, rng=random.Random(15)),
        )
        self.assertEqual(a, b)


if __name__ == "__main__":
    unittest.main()
