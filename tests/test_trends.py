# -*- coding: utf-8 -*-

from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from db_case import TempDatabaseCase
from symptom_tracker.analytics.cache import AnalysisResultCache, CorrelationCache
from symptom_tracker.analytics.trends import MetricSeries, TrendAnalysisService, parse_granularity, parse_time_range
from symptom_tracker.journal import storage as journal
from symptom_tracker.timeutil import date_key, to_ms

NOW = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)


class TestTrendHelpers(unittest.TestCase):
    def test_parse_time_range_snaps_to_days(self) -> None:
        start, end = parse_time_range("7d", NOW)
        self.assertEqual(start, datetime(2024, 2, 28, tzinfo=timezone.utc))
        self.assertEqual(end.date(), NOW.date())
        self.assertEqual((end.hour, end.minute), (23, 59))
        with self.assertRaises(ValueError):
            parse_time_range("fortnight", NOW)

    def test_granularity(self) -> None:
        self.assertEqual(parse_granularity("symptom-frequency:weekly"), "weekly")
        self.assertEqual(parse_granularity("symptom-frequency:monthly"), "monthly")
        self.assertEqual(parse_granularity("symptom-frequency"), "daily")

    def test_interpretation(self) -> None:
        interpret = TrendAnalysisService.generate_interpretation
        self.assertEqual(
            interpret({"slope": 1.0, "r_squared": 0.99}, 13),
            {"direction": "Insufficient data", "confidence": "N/A"},
        )
        self.assertEqual(
            interpret({"slope": 0.5, "r_squared": 0.95}, 14),
            {"direction": "worsening", "confidence": "very-high"},
        )
        self.assertEqual(
            interpret({"slope": -0.5, "r_squared": 0.75}, 20),
            {"direction": "improving", "confidence": "high"},
        )
        self.assertEqual(
            interpret({"slope": 0.05, "r_squared": 0.6}, 20),
            {"direction": "stable", "confidence": "moderate"},
        )
        self.assertEqual(interpret({"slope": 0.0, "r_squared": 0.1}, 20)["confidence"], "low")


class TestTrendSeries(TempDatabaseCase):
    def setUp(self) -> None:
        super().setUp()
        self.service = TrendAnalysisService(cache=AnalysisResultCache(ttl_hours=24))

    def test_direct_metric_and_cache(self) -> None:
        for i in range(20):
            day = NOW - timedelta(days=19 - i)
            journal.create_daily_entry(
                user_id="u1",
                date=date_key(day),
                overall_health=2 + i * 0.25,
                energy_level=5,
                sleep_quality=5,
                stress_level=5,
            )

        series = self.service.fetch_metric_series("u1", "overallHealth", "30d", now=NOW)
        self.assertEqual(len(series.points), 20)
        self.assertEqual(series.metadata["label"], "Overall Health")
        self.assertEqual(series.points, sorted(series.points))

        trend = self.service.compute_trend("u1", "overallHealth", "30d", series=series)
        self.assertGreater(trend["slope"], 0)
        self.assertAlmostEqual(trend["r_squared"], 1.0, places=6)

        # Cached fit wins over a different series until invalidated.
        cached = self.service.compute_trend("u1", "overallHealth", "30d", series=MetricSeries())
        self.assertEqual(cached, trend)
        self.assertEqual(self.service.cache.invalidate_cache("u1"), 1)
        self.assertIsNone(self.service.compute_trend("u1", "overallHealth", "30d", series=MetricSeries()))

    def test_symptom_severity_and_frequency(self) -> None:
        monday = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)
        journal.create_symptom_instance(user_id="u1", name="Bloating", severity=4, timestamp=monday)
        journal.create_symptom_instance(user_id="u1", name="Bloating", severity=6, timestamp=monday + timedelta(days=1))
        journal.create_symptom_instance(user_id="u1", name="Headache", severity=8, timestamp=monday)

        severity = self.service.fetch_metric_series("u1", "symptom:bloating", "7d", now=NOW)
        self.assertEqual([y for _, y in severity.points], [4.0, 6.0])
        self.assertEqual(severity.metadata["label"], "Symptom Severity (bloating)")

        every = self.service.fetch_metric_series("u1", "symptom:all", "7d", now=NOW)
        self.assertEqual(len(every.points), 3)

        daily = self.service.fetch_metric_series("u1", "symptom-frequency", "7d", now=NOW)
        self.assertEqual([b["count"] for b in daily.raw], [2, 1])
        self.assertEqual(daily.metadata["summary"]["total_occurrences"], 3)

        weekly = self.service.fetch_metric_series("u1", "symptom-frequency:weekly", "7d", now=NOW)
        self.assertEqual(len(weekly.raw), 1)
        # Weeks start on Sunday.
        self.assertEqual(weekly.raw[0]["timestamp"], to_ms(datetime(2024, 3, 3, tzinfo=timezone.utc)))

    def test_flare_severity(self) -> None:
        flare = journal.create_flare(
            user_id="u1", body_region_id="knee", initial_severity=8, start_date=NOW - timedelta(days=3)
        )
        journal.add_flare_severity_update(
            user_id="u1", flare_id=flare["id"], severity=4, timestamp=NOW - timedelta(days=1)
        )
        series = self.service.fetch_metric_series("u1", "flare-severity", "7d", now=NOW)
        self.assertEqual([y for _, y in series.points], [8.0, 4.0])
        self.assertEqual(series.metadata["summary"]["average_severity"], 6.0)

    def test_medication_adherence(self) -> None:
        journal.create_medication(
            user_id="u1",
            name="Prednisone",
            schedule=[{"time": "08:00", "days_of_week": list(range(7))}],
            medication_id="m1",
        )
        for offset in (0, 1, 2, 3):
            journal.create_medication_event(
                user_id="u1", medication_id="m1", taken=True, timestamp=NOW - timedelta(days=offset, hours=4)
            )

        series = self.service.fetch_metric_series("u1", "medication-adherence", "7d", now=NOW)
        summary = series.metadata["summary"]
        self.assertEqual(len(series.points), 8)
        self.assertEqual(summary["total_scheduled"], 8)
        self.assertEqual(summary["total_taken"], 4)
        self.assertEqual(summary["overall_adherence"], 50.0)
        self.assertEqual(series.points[-1][1], 100.0)
        self.assertEqual(series.points[0][1], 0.0)

    def test_unknown_metric(self) -> None:
        with self.assertLogs("symptom_tracker.analytics.trends", level="WARNING"):
            series = self.service.fetch_metric_series("u1", "bogus", "7d", now=NOW)
        self.assertEqual(series.points, [])
        self.assertIsNone(self.service.compute_trend("u1", "bogus", "7d", series=series))


class TestCaches(TempDatabaseCase):
    def test_correlation_cache_roundtrip_and_invalidation(self) -> None:
        cache = CorrelationCache(ttl_hours=24)
        cache.set("u1", "dairy", "Bloating", {"score": 1})
        cache.set("u1", "rice", "Bloating", {"score": 2})
        cache.set("u1", "dairy", "Headache", {"score": 3})

        self.assertEqual(cache.get("u1", "dairy", "Bloating"), {"score": 1})
        self.assertIsNone(cache.get("u1", "dairy", "Bloating", time_range="other"))
        self.assertIsNone(cache.get("u2", "dairy", "Bloating"))

        self.assertEqual(cache.invalidate_by_food("u1", "dairy"), 2)
        self.assertEqual(cache.invalidate_by_symptom("u1", "Bloating"), 1)
        self.assertEqual(cache.get_stats("u1"), {"total": 0, "expired": 0, "active": 0})

    def test_invalidation_matches_whole_ids(self) -> None:
        cache = CorrelationCache(ttl_hours=24)
        cache.set("u1", "a:b", "c", {"score": 1})
        cache.set("u1", "a", "b:c", {"score": 2})
        cache.set("u1", "b", "Gas:Bloating", {"score": 3})
        cache.set("u1", "rice", "Bloating", {"score": 4})

        self.assertEqual(cache.get("u1", "a:b", "c"), {"score": 1})
        self.assertEqual(cache.get("u1", "a", "b:c"), {"score": 2})

        self.assertEqual(cache.invalidate_by_food("u1", "b"), 1)
        self.assertIsNone(cache.get("u1", "b", "Gas:Bloating"))
        self.assertEqual(cache.get("u1", "a:b", "c"), {"score": 1})

        self.assertEqual(cache.invalidate_by_symptom("u1", "Bloating"), 1)
        self.assertEqual(cache.invalidate_by_symptom("u1", "c"), 1)
        self.assertEqual(cache.get("u1", "a", "b:c"), {"score": 2})

    def test_expiry(self) -> None:
        cache = CorrelationCache()
        cache.set("u1", "dairy", "Bloating", {"score": 1}, ttl_hours=-1)
        cache.set("u1", "rice", "Bloating", {"score": 2})
        self.assertEqual(cache.get_stats("u1"), {"total": 2, "expired": 1, "active": 1})

        self.assertIsNone(cache.get("u1", "dairy", "Bloating"))
        self.assertEqual(cache.get_stats("u1")["total"], 1)

        cache.set("u1", "dairy", "Bloating", {"score": 1}, ttl_hours=-1)
        self.assertEqual(cache.cleanup_expired("u1"), 1)

    def test_trend_cache_leaves_correlations_alone(self) -> None:
        trends = AnalysisResultCache(ttl_hours=-1)
        correlations = CorrelationCache(ttl_hours=-1)
        trends.save_result("u1", "overallHealth", "30d", {"slope": 1})
        correlations.set("u1", "dairy", "Bloating", {"score": 1})

        self.assertEqual(trends.cleanup_expired("u1"), 1)
        self.assertEqual(correlations.get_stats("u1")["total"], 1)
        self.assertEqual(trends.invalidate_cache("u1"), 0)
        self.assertIsNone(trends.get_result("u1", "overallHealth", "30d"))


if __name__ == "__main__":
    unittest.main()
