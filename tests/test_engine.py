# -*- coding: utf-8 -*-

from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from db_case import TempDatabaseCase
from symptom_tracker.analytics import storage as correlation_store
from symptom_tracker.analytics.engine import (
    CORRELATION_TYPES,
    CorrelationRecord,
    determine_confidence,
    find_significant_correlations,
    get_analysis_statistics,
    meets_significance_criteria,
)
from symptom_tracker.analytics.extractor import (
    _daily,
    align_time_series,
    flare_series_from_flares,
    food_series_from_events,
)
from symptom_tracker.journal import storage as journal

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _record(**overrides) -> CorrelationRecord:
    values = dict(
        user_id="u1",
        type="food-symptom",
        item1="f1",
        item2="Bloating",
        coefficient=0.8,
        strength="strong",
        significance=0.001,
        sample_size=15,
        lag_hours=0,
        confidence="medium",
        time_range="30d",
        calculated_at="2024-03-01T12:00:00.000000+00:00",
    )
    values.update(overrides)
    return CorrelationRecord(**values)


class TestExtractor(unittest.TestCase):
    def test_daily_aggregation(self) -> None:
        records = [("2024-01-01", 1.0), ("2024-01-01", 3.0), ("2024-01-02", 5.0)]
        self.assertEqual(_daily(records, "sum"), {"2024-01-01": 4.0, "2024-01-02": 5.0})
        self.assertEqual(_daily(records, "mean"), {"2024-01-01": 2.0, "2024-01-02": 5.0})
        self.assertEqual(_daily([], "sum"), {})

    def test_food_series_counts_meals(self) -> None:
        events = [
            {"timestamp": "2024-01-01T08:00:00+00:00", "food_ids": ["a", "b"]},
            {"timestamp": "2024-01-01T19:00:00+00:00", "food_ids": ["a"]},
            {"timestamp": "2024-01-02T08:00:00+00:00", "food_ids": ["b"]},
        ]
        self.assertEqual(food_series_from_events(events, "a"), {"2024-01-01": 2.0})

    def test_align_with_lag(self) -> None:
        s1 = {"2024-01-01": 1.0, "2024-01-02": 2.0}
        s2 = {"2024-01-02": 5.0}
        self.assertEqual(align_time_series(s1, s2, 24), ([1.0], [5.0]))
        self.assertEqual(align_time_series(s1, s2, 6), ([2.0], [5.0]))
        self.assertEqual(align_time_series(s1, {}, 0), ([], []))

    def test_flare_series(self) -> None:
        flares = [
            {
                "created_at": "2024-01-01T09:00:00+00:00",
                "updated_at": "2024-01-03T09:00:00+00:00",
                "initial_severity": 7,
                "current_severity": 3,
            }
        ]
        series = flare_series_from_flares(flares, "2024-01-01T00:00:00Z", "2024-01-05T00:00:00Z")
        self.assertEqual(series, {"2024-01-01": 7.0, "2024-01-03": 3.0})
        self.assertEqual(flare_series_from_flares(flares, "2024-01-02T00:00:00Z", "2024-01-02T23:00:00Z"), {})


class TestEngineRules(unittest.TestCase):
    def test_confidence(self) -> None:
        self.assertEqual(determine_confidence(30, 0.001), "high")
        self.assertEqual(determine_confidence(15, 0.001), "medium")
        self.assertEqual(determine_confidence(15, 0.2), "low")

    def test_significance_criteria(self) -> None:
        self.assertTrue(meets_significance_criteria(_record()))
        self.assertFalse(meets_significance_criteria(_record(coefficient=0.2)))
        self.assertFalse(meets_significance_criteria(_record(sample_size=9)))
        self.assertFalse(meets_significance_criteria(_record(significance=0.05)))
        self.assertTrue(meets_significance_criteria(_record(coefficient=-0.5)))


class TestCorrelationEngine(TempDatabaseCase):
    def _seed(self) -> None:
        journal.create_food(user_id="u1", name="Dairy", food_id="f1")
        first = NOW - timedelta(days=20)
        for i in range(15):
            day = first + timedelta(days=i)
            servings = i % 3 + 1
            for n in range(servings):
                journal.create_food_event(user_id="u1", food_ids=["f1"], timestamp=day.replace(hour=8 + n))
            journal.create_symptom_instance(
                user_id="u1", name="Bloating", severity=2 * servings + 1, timestamp=day.replace(hour=20)
            )

    def test_finds_same_day_correlation(self) -> None:
        self._seed()
        with self.assertLogs("symptom_tracker.analytics.engine", level="INFO"):
            found = find_significant_correlations("u1", "30d", now=NOW)

        same_day = [r for r in found if r.lag_hours == 0]
        self.assertEqual(len(same_day), 1)
        record = same_day[0]
        self.assertEqual((record.type, record.item1, record.item2), ("food-symptom", "f1", "Bloating"))
        self.assertAlmostEqual(record.coefficient, 1.0)
        self.assertEqual(record.sample_size, 15)
        self.assertEqual(record.strength, "strong")
        self.assertEqual(record.time_range, "30d")
        self.assertEqual(found, sorted(found, key=lambda r: abs(r.coefficient), reverse=True))

    def test_too_few_days_yields_nothing(self) -> None:
        self._seed()
        self.assertEqual(find_significant_correlations("u1", "7d", now=NOW), [])

    def test_statistics(self) -> None:
        self._seed()
        stats = get_analysis_statistics("u1", "30d", now=NOW)
        self.assertEqual(set(stats), {"total_pairs", "significant_count", "by_type", "by_strength"})
        self.assertEqual(set(stats["by_type"]), set(CORRELATION_TYPES))
        self.assertGreaterEqual(stats["total_pairs"], stats["significant_count"])
        self.assertGreaterEqual(stats["by_type"]["food-symptom"], 1)


class TestCorrelationStore(TempDatabaseCase):
    def test_upsert_replaces_same_key(self) -> None:
        first = correlation_store.upsert_correlation(_record(coefficient=0.5))
        second = correlation_store.upsert_correlation(_record(coefficient=0.9))
        self.assertEqual(first["id"], second["id"])
        self.assertEqual(second["coefficient"], 0.9)

        correlation_store.upsert_correlation(_record(lag_hours=24, coefficient=-0.4))
        rows = correlation_store.list_correlations("u1")
        self.assertEqual([r["coefficient"] for r in rows], [0.9, -0.4])
        self.assertEqual(len(correlation_store.list_correlations("u1", min_abs_coefficient=0.5)), 1)
        self.assertEqual(correlation_store.list_correlations("u1", type="trigger-symptom"), [])

    def test_purge_and_lookup(self) -> None:
        old = correlation_store.upsert_correlation(_record(calculated_at="2024-01-01T00:00:00.000000+00:00"))
        correlation_store.upsert_correlation(_record(lag_hours=6))

        self.assertEqual(correlation_store.get_correlation(user_id="u1", correlation_id=old["id"])["lag_hours"], 0)
        self.assertEqual(correlation_store.delete_older_than("u1", "2024-02-01T00:00:00Z"), 1)
        self.assertEqual(len(correlation_store.list_correlations("u1")), 1)
        self.assertEqual(correlation_store.delete_all("u1"), 1)


if __name__ == "__main__":
    unittest.main()
