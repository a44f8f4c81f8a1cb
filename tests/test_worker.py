# -*- coding: utf-8 -*-

from __future__ import annotations

import threading
import unittest
from datetime import timedelta
from unittest import mock

from db_case import TempDatabaseCase
from symptom_tracker.analytics import storage as correlation_store
from symptom_tracker.analytics import worker
from symptom_tracker.analytics.cache import analysis_result_cache, correlation_cache
from symptom_tracker.analytics.worker import DONE, FAILED, AnalysisWorkerPool, RecalculationScheduler
from symptom_tracker.journal import storage as journal
from symptom_tracker.timeutil import start_of_day, utc_now


class TestWorkerPool(unittest.TestCase):
    def setUp(self) -> None:
        self.pool = AnalysisWorkerPool(max_workers=2)

    def tearDown(self) -> None:
        self.pool.shutdown(wait=True)

    def test_same_key_returns_active_job(self) -> None:
        release = threading.Event()

        def slow(value: int) -> int:
            release.wait(5)
            return value * 2

        first = self.pool.submit("k", slow, 21, kind="test", user_id="u1")
        second = self.pool.submit("k", slow, 99)
        self.assertIs(first, second)
        self.assertEqual([j.id for j in self.pool.active_jobs()], [first.id])

        release.set()
        finished = self.pool.wait(first.id, timeout=5)
        self.assertEqual(finished.status, DONE)
        self.assertEqual(finished.result, 42)
        self.assertIsNotNone(finished.finished_at)
        self.assertEqual(finished.to_dict()["user_id"], "u1")

        third = self.pool.submit("k", slow, 1)
        self.assertNotEqual(third.id, first.id)
        self.pool.wait(third.id, timeout=5)

    def test_failed_job_records_error(self) -> None:
        def broken() -> None:
            raise ValueError("boom")

        with self.assertLogs("symptom_tracker.analytics.worker", level="ERROR"):
            job = self.pool.submit("bad", broken)
            finished = self.pool.wait(job.id, timeout=5)
        self.assertEqual(finished.status, FAILED)
        self.assertEqual(finished.error, "boom")
        self.assertEqual(list(self.pool.active_jobs()), [])

    def test_unknown_job(self) -> None:
        self.assertIsNone(self.pool.get_job("missing"))
        self.assertIsNone(self.pool.wait("missing", timeout=0.01))


class TestRecalculationScheduler(TempDatabaseCase):
    def setUp(self) -> None:
        super().setUp()
        self.pool = AnalysisWorkerPool(max_workers=1)
        self.scheduler = RecalculationScheduler(self.pool)

    def tearDown(self) -> None:
        self.scheduler.shutdown()
        self.pool.shutdown(wait=True)
        super().tearDown()

    def _seed(self) -> None:
        journal.create_food(user_id="u1", name="Dairy", food_id="f1")
        first = start_of_day(utc_now()) - timedelta(days=17)
        for i in range(15):
            day = first + timedelta(days=i)
            servings = i % 3 + 1
            for n in range(servings):
                journal.create_food_event(user_id="u1", food_ids=["f1"], timestamp=day + timedelta(hours=8 + n))
            journal.create_symptom_instance(
                user_id="u1", name="Bloating", severity=2 * servings + 1, timestamp=day + timedelta(hours=20)
            )

    def test_recalculate_then_fresh_then_forced(self) -> None:
        self._seed()
        summary = self.scheduler.recalculate("u1")
        self.assertEqual(summary["status"], "completed")
        self.assertEqual(set(summary["stored"]), {"7d", "30d", "90d"})
        self.assertGreaterEqual(summary["stored"]["30d"], 1)
        self.assertTrue(correlation_store.list_correlations("u1", time_range="30d"))
        self.assertIsNotNone(self.scheduler.get_last_calculated("u1"))
        self.assertFalse(self.scheduler.is_calculating("u1"))

        skipped = self.scheduler.recalculate("u1")
        self.assertEqual(skipped, {"user_id": "u1", "status": "skipped", "reason": "cache fresh"})

        forced = self.scheduler.recalculate("u1", force=True)
        self.assertEqual(forced["status"], "completed")

    def test_already_calculating_and_initialize(self) -> None:
        worker._set_calculating("u1", True)
        skipped = self.scheduler.recalculate("u1", force=True)
        self.assertEqual(skipped["reason"], "already calculating")

        with self.assertLogs("symptom_tracker.analytics.worker", level="INFO"):
            self.assertEqual(self.scheduler.initialize(), 1)
        self.assertFalse(self.scheduler.is_calculating("u1"))
        self.assertEqual(self.scheduler.initialize(), 0)

    def test_force_recalculation_runs_in_pool(self) -> None:
        self._seed()
        self.scheduler.schedule("u1", delay_sec=3600)
        self.assertTrue(self.scheduler.pending("u1"))

        job = self.scheduler.force_recalculation("u1")
        self.assertFalse(self.scheduler.pending("u1"))
        self.assertEqual(job.key, "recalculate:u1")

        finished = self.pool.wait(job.id, timeout=30)
        self.assertEqual(finished.status, DONE)
        self.assertEqual(finished.result["status"], "completed")

    def test_schedule_replaces_timer(self) -> None:
        self.scheduler.schedule("u1", delay_sec=3600)
        self.scheduler.schedule("u1", delay_sec=3600)
        self.assertTrue(self.scheduler.pending("u1"))
        self.scheduler.shutdown()
        self.assertFalse(self.scheduler.pending("u1"))

    def test_clear_user_data(self) -> None:
        self._seed()
        self.scheduler.recalculate("u1")
        correlation_cache.set("u1", "f1", "Bloating", {"score": 1})

        self.scheduler.clear_user_data("u1")
        self.assertEqual(correlation_store.list_correlations("u1"), [])
        self.assertIsNone(self.scheduler.get_last_calculated("u1"))
        self.assertEqual(correlation_cache.get_stats("u1")["total"], 0)


class TestJournalNotifications(TempDatabaseCase):
    def test_invalidates_caches_and_schedules(self) -> None:
        analysis_result_cache.save_result("u1", "overallHealth", "30d", {"slope": 1})
        correlation_cache.set("u1", "f1", "Headache", {"score": 1})
        correlation_cache.set("u1", "f2", "Bloating", {"score": 1})
        correlation_cache.set("u1", "f3", "Nausea", {"score": 1})

        with mock.patch.object(worker.scheduler, "on_data_logged") as on_data_logged:
            worker.notify_journal_write("u1", "food_event", food_ids=["f1"], symptom_name="Bloating")

        on_data_logged.assert_called_once_with("u1")
        self.assertIsNone(analysis_result_cache.get_result("u1", "overallHealth", "30d"))
        self.assertIsNone(correlation_cache.get("u1", "f1", "Headache"))
        self.assertIsNone(correlation_cache.get("u1", "f2", "Bloating"))
        self.assertEqual(correlation_cache.get("u1", "f3", "Nausea"), {"score": 1})


if __name__ == "__main__":
    unittest.main()
