# -*- coding: utf-8 -*-

from __future__ import annotations

import unittest

from symptom_tracker.analytics.combinations import (
    IndividualCorrelation,
    MealEvent,
    detect_combinations,
    food_pairs,
    pair_key,
)
from symptom_tracker.analytics.confidence import determine_confidence
from symptom_tracker.analytics.dose_response import compute_dose_response, normalize_portion_size
from symptom_tracker.analytics.windows import (
    TimeRange,
    WindowScore,
    best_window,
    chi_square,
    chi_square_to_p_value,
    compute_consistency,
    compute_pair_with_data,
    window_by_label,
)
from symptom_tracker.timeutil import DAY_MS, HOUR_MS

BASE = 1_700_000_000_000


class TestWindowScoring(unittest.TestCase):
    def test_chi_square(self) -> None:
        self.assertEqual(chi_square(0, 0, 0, 0), 0.0)
        self.assertAlmostEqual(chi_square(10, 0, 0, 10), 20.0)
        self.assertEqual(chi_square_to_p_value(20.0), 0.001)
        self.assertEqual(chi_square_to_p_value(7.0), 0.01)
        self.assertEqual(chi_square_to_p_value(4.0), 0.05)
        self.assertEqual(chi_square_to_p_value(3.0), 0.10)
        self.assertEqual(chi_square_to_p_value(1.5), 0.20)
        self.assertEqual(chi_square_to_p_value(0.1), 0.30)

    def test_window_lookup(self) -> None:
        window = window_by_label("2-4h")
        self.assertEqual(window.start_ms, 2 * HOUR_MS)
        self.assertEqual(window.end_ms, 4 * HOUR_MS)
        with self.assertRaises(ValueError):
            window_by_label("5h")

    def test_consistency(self) -> None:
        causes = [BASE, BASE + DAY_MS, BASE + 2 * DAY_MS, BASE + 3 * DAY_MS]
        effects = [BASE + 3 * HOUR_MS, BASE + DAY_MS + 3 * HOUR_MS, BASE + 2 * DAY_MS + 3 * HOUR_MS]
        self.assertAlmostEqual(compute_consistency(causes, effects, window_by_label("2-4h")), 0.75)
        self.assertEqual(compute_consistency([], effects, window_by_label("2-4h")), 0.0)

    def test_scores_every_window(self) -> None:
        causes = [BASE + i * DAY_MS for i in range(10)]
        effects = [c + 3 * HOUR_MS for c in causes]
        time_range = TimeRange(start=BASE - DAY_MS, end=BASE + 12 * DAY_MS)

        scores = {s.window: s for s in compute_pair_with_data(causes, effects, time_range)}
        self.assertEqual(list(scores), ["15m", "30m", "1h", "2-4h", "6-12h", "24h", "48h", "72h"])
        self.assertTrue(all(s.sample_size == 10 for s in scores.values()))

        # Windows that miss every effect: table [[0, 10], [10, 10]].
        self.assertAlmostEqual(scores["15m"].score, 7.5)
        self.assertEqual(scores["15m"].p_value, 0.01)
        # Every effect matched leaves an empty baseline row.
        self.assertEqual(scores["2-4h"].score, 0.0)
        self.assertEqual(scores["2-4h"].p_value, 0.30)

        best = best_window(list(scores.values()))
        self.assertEqual(best.window, "15m")

    def test_events_outside_range_are_ignored(self) -> None:
        causes = [BASE - 5 * DAY_MS, BASE]
        time_range = TimeRange(start=BASE - DAY_MS, end=BASE + DAY_MS)
        scores = compute_pair_with_data(causes, [BASE + HOUR_MS], time_range)
        self.assertTrue(all(s.sample_size == 1 for s in scores))

    def test_best_window_tie_breaks_on_sample_size(self) -> None:
        a = WindowScore(window="1h", score=2.0, sample_size=3, p_value=0.2)
        b = WindowScore(window="24h", score=2.0, sample_size=5, p_value=0.2)
        self.assertIs(best_window([a, b]), b)
        self.assertIsNone(best_window([]))


class TestConfidence(unittest.TestCase):
    def test_weakest_factor_wins(self) -> None:
        self.assertEqual(determine_confidence(10, 0.9, 0.001), "high")
        self.assertEqual(determine_confidence(4, 0.9, 0.001), "medium")
        self.assertEqual(determine_confidence(10, 0.6, 0.001), "medium")
        self.assertEqual(determine_confidence(10, 0.9, 0.03), "medium")
        self.assertEqual(determine_confidence(2, 0.9, 0.001), "low")
        self.assertEqual(determine_confidence(10, 0.9, 0.2), "low")


class TestDoseResponse(unittest.TestCase):
    def test_normalize_portion_size(self) -> None:
        self.assertEqual(normalize_portion_size("small"), 1)
        self.assertEqual(normalize_portion_size(" Large "), 3)
        with self.assertLogs("symptom_tracker.analytics.dose_response", level="WARNING"):
            self.assertEqual(normalize_portion_size("huge"), 2)

    def test_insufficient_data(self) -> None:
        result = compute_dose_response([1, 2, 3], [2, 4, 6])
        self.assertEqual(result.confidence, "insufficient")
        self.assertIn("minimum 5", result.message)

    def test_strong_relationship(self) -> None:
        portions = [1, 2, 3] * 4
        severities = [2 * p + 1 for p in portions]
        result = compute_dose_response(portions, severities)
        self.assertAlmostEqual(result.slope, 2.0)
        self.assertEqual(result.confidence, "high")
        self.assertEqual(result.sample_size, 12)
        self.assertTrue(result.message.startswith("Larger portions correlate with more severe symptoms"))
        self.assertIn("High confidence", result.message)

    def test_same_portion_everywhere_fails_gracefully(self) -> None:
        result = compute_dose_response([2] * 6, [1, 2, 3, 4, 5, 6])
        self.assertEqual(result.confidence, "insufficient")
        self.assertTrue(result.message.startswith("Analysis failed"))

    def test_length_mismatch(self) -> None:
        with self.assertRaises(ValueError):
            compute_dose_response([1, 2], [1])


class TestCombinations(unittest.TestCase):
    def test_pairs_are_sorted_and_unique(self) -> None:
        self.assertEqual(food_pairs(["b", "a", "a", "c"]), [("a", "b"), ("a", "c"), ("b", "c")])
        self.assertEqual(pair_key(["rice", "dairy"]), "dairy+rice")

    def test_synergy_detected(self) -> None:
        meals = []
        symptoms = []
        for i in range(6):
            ts = BASE + i * DAY_MS
            meals.append(MealEvent(meal_id=f"combo-{i}", food_ids=["dairy", "coffee"], timestamp=ts, food_names=["Dairy", "Coffee"]))
            symptoms.append(ts + 2 * HOUR_MS)
        for i in range(6, 12):
            ts = BASE + i * DAY_MS
            meals.append(MealEvent(meal_id=f"solo-{i}", food_ids=["dairy"], timestamp=ts, food_names=["Dairy"]))
        individual = [
            IndividualCorrelation(food_id="dairy", food_name="Dairy", symptom_id="s", symptom_name="S", correlation=0.5),
        ]

        found = detect_combinations(meals, symptoms, individual, now_ms=BASE)
        self.assertEqual(len(found), 1)
        combo = found[0]
        self.assertEqual(combo.food_ids, ["coffee", "dairy"])
        self.assertEqual(combo.food_names, ["Coffee", "Dairy"])
        self.assertAlmostEqual(combo.combination_correlation, 1.0)
        self.assertAlmostEqual(combo.individual_max, 0.5)
        self.assertTrue(combo.synergistic)
        self.assertAlmostEqual(combo.synergy_delta, 0.5)
        self.assertEqual(combo.sample_size, 6)
        self.assertEqual(combo.computed_at, BASE)
        self.assertEqual(combo.to_dict()["symptom_id"], "any-symptom")

    def test_min_sample_size_gate(self) -> None:
        meals = [MealEvent(meal_id="m1", food_ids=["a", "b"], timestamp=BASE)]
        self.assertEqual(detect_combinations(meals, [BASE + HOUR_MS], []), [])
        self.assertEqual(detect_combinations([], [BASE], []), [])


if __name__ == "__main__":
    unittest.main()
