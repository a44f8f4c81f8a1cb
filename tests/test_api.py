# -*- coding: utf-8 -*-

from __future__ import annotations

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

USER = "api-user"
ENV_VARS = ("SYMTRACK_DATA_ROOT", "SYMTRACK_DB_PATH", "SYMTRACK_RECALC_DEBOUNCE_SEC")


def _purge_package() -> dict:
    removed = {}
    for name in list(sys.modules.keys()):
        if name == "symptom_tracker" or name.startswith("symptom_tracker."):
            removed[name] = sys.modules.pop(name)
    return removed


class TestApi(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls._tmp = Path(tempfile.mkdtemp(prefix="symtrack-api-test-"))
        cls._old_env = {name: os.environ.get(name) for name in ENV_VARS}
        data_root = cls._tmp / "data"
        os.environ["SYMTRACK_DATA_ROOT"] = str(data_root)
        os.environ["SYMTRACK_DB_PATH"] = str(data_root / "symptom_tracker.db")
        # Keep debounced recalculation from firing mid-test.
        os.environ["SYMTRACK_RECALC_DEBOUNCE_SEC"] = "3600"

        # Ensure settings/app reflect the env vars above.
        cls._saved_modules = _purge_package()

        from symptom_tracker.api import app  # noqa: WPS433 (import inside test for env control)
        from symptom_tracker.demo import seed_demo_data  # noqa: WPS433
        from symptom_tracker.journal import storage  # noqa: WPS433

        seed_demo_data("demo-user", days=60)
        cls.dairy_id = next(f["id"] for f in storage.list_foods("demo-user") if f["name"] == "Dairy")
        cls.app = app
        cls.client = TestClient(app, headers={"X-User-Id": USER})
        cls.demo = TestClient(app, headers={"X-User-Id": "demo-user"})

    @classmethod
    def tearDownClass(cls) -> None:
        from symptom_tracker.analytics.worker import scheduler, worker_pool  # noqa: WPS433

        scheduler.shutdown()
        worker_pool.shutdown(wait=True)
        for client in (cls.client, cls.demo):
            try:
                client.close()
            except Exception:
                pass

        _purge_package()
        sys.modules.update(cls._saved_modules)
        for name, value in cls._old_env.items():
            if value is None:
                os.environ.pop(name, None)
            else:
                os.environ[name] = value
        shutil.rmtree(cls._tmp, ignore_errors=True)

    def _wait(self, job_id: str) -> dict:
        from symptom_tracker.analytics.worker import worker_pool  # noqa: WPS433

        worker_pool.wait(job_id, timeout=60)
        resp = self.demo.get(f"/api/analytics/jobs/{job_id}")
        self.assertEqual(resp.status_code, 200)
        return resp.json()

    def test_identity_required(self) -> None:
        anonymous = TestClient(self.app)
        resp = anonymous.get("/api/journal/symptoms")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["detail"], "Not authenticated")

        resp = anonymous.get("/api/journal/symptoms", headers={"X-User-Id": "x" * 200})
        self.assertEqual(resp.status_code, 401)

        resp = anonymous.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertEqual(payload["status"], "ok")
        self.assertGreaterEqual(payload["schema_version"], 1)
        anonymous.close()

    def test_journal_flow(self) -> None:
        from symptom_tracker.analytics.worker import scheduler  # noqa: WPS433

        resp = self.client.post("/api/journal/foods", json={"name": "Milk", "category": "dairy"})
        self.assertEqual(resp.status_code, 200)
        food_id = resp.json()["id"]

        resp = self.client.post("/api/journal/food-events", json={"food_ids": ["nope"]})
        self.assertEqual(resp.status_code, 404)

        resp = self.client.post(
            "/api/journal/food-events",
            json={
                "food_ids": [food_id],
                "meal_type": "lunch",
                "portion_map": {food_id: "large"},
                "timestamp": "2024-03-04T12:00:00Z",
            },
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["timestamp"], "2024-03-04T12:00:00.000000+00:00")
        self.assertTrue(scheduler.pending(USER))

        resp = self.client.post(
            "/api/journal/symptoms",
            json={"name": "Bloating", "severity": 6, "timestamp": "2024-03-04T15:00:00Z"},
        )
        self.assertEqual(resp.status_code, 200)
        resp = self.client.post("/api/journal/symptoms", json={"name": "Bloating", "severity": 11})
        self.assertEqual(resp.status_code, 422)

        resp = self.client.get(
            "/api/journal/symptoms",
            params={"start": "2024-03-04T00:00:00Z", "end": "2024-03-05T00:00:00Z"},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([s["name"] for s in resp.json()["items"]], ["Bloating"])

        resp = self.client.get("/api/journal/symptoms", params={"start": "2024-03-05", "end": "2024-03-04"})
        self.assertEqual(resp.status_code, 400)

        for mood in (2, 4):
            resp = self.client.put(
                "/api/journal/daily-logs",
                json={"date": "2024-03-04", "mood": mood, "sleep_hours": 7, "sleep_quality": 3, "stress_level": 4},
            )
            self.assertEqual(resp.status_code, 200)
        resp = self.client.get("/api/journal/daily-logs", params={"start": "2024-03-04", "end": "2024-03-04"})
        self.assertEqual([log["mood"] for log in resp.json()["items"]], [4])

        resp = self.client.post(
            "/api/journal/medications",
            json={"name": "Prednisone", "dosage": "5mg", "schedule": [{"time": "08:00", "days_of_week": [1, 3]}]},
        )
        self.assertEqual(resp.status_code, 200)
        medication_id = resp.json()["id"]
        resp = self.client.post(
            "/api/journal/medication-events",
            json={"medication_id": medication_id, "taken": False, "timestamp": "2024-03-04T08:00:00Z"},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["taken"])

        resp = self.client.post("/api/journal/triggers", json={"name": "Stress", "category": "emotional"})
        trigger_id = resp.json()["id"]
        resp = self.client.post(
            "/api/journal/trigger-events",
            json={"trigger_id": trigger_id, "intensity": "high", "timestamp": "2024-03-04T09:00:00Z"},
        )
        self.assertEqual(resp.status_code, 200)

        resp = self.client.post(
            "/api/journal/flares",
            json={"body_region_id": "left-knee", "initial_severity": 7, "start_date": "2024-03-04T09:00:00Z"},
        )
        self.assertEqual(resp.status_code, 200)
        flare_id = resp.json()["id"]
        resp = self.client.post(
            f"/api/journal/flares/{flare_id}/severity",
            json={"severity": 2, "status": "resolved", "timestamp": "2024-03-08T09:00:00Z"},
        )
        self.assertEqual(resp.status_code, 200)
        flare = resp.json()
        self.assertEqual(flare["status"], "resolved")
        self.assertEqual(len(flare["severity_history"]), 2)

        other = TestClient(self.app, headers={"X-User-Id": "someone-else"})
        resp = other.post(f"/api/journal/flares/{flare_id}/severity", json={"severity": 3})
        self.assertEqual(resp.status_code, 404)
        other.close()

    def test_trends(self) -> None:
        resp = self.demo.get("/api/analytics/trends", params={"metric": "overallHealth", "time_range": "30d"})
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertEqual(payload["label"], "Overall Health")
        self.assertGreaterEqual(len(payload["points"]), 14)
        self.assertIsNotNone(payload["trend"])
        self.assertIn(payload["interpretation"]["direction"], ("improving", "worsening", "stable"))

        resp = self.demo.get("/api/analytics/trends", params={"metric": "medication-adherence"})
        self.assertEqual(resp.status_code, 200)
        self.assertIn("overall_adherence", resp.json()["metadata"]["summary"])

        resp = self.demo.get("/api/analytics/trends", params={"metric": "overallHealth", "time_range": "soon"})
        self.assertEqual(resp.status_code, 400)

    def test_recalculate_and_stored_correlations(self) -> None:
        resp = self.demo.post("/api/analytics/recalculate", json={"force": True})
        self.assertEqual(resp.status_code, 200)
        job = resp.json()["job"]
        self.assertFalse(resp.json()["scheduled"])

        finished = self._wait(job["id"])
        self.assertEqual(finished["status"], "done")
        self.assertEqual(finished["result"]["status"], "completed")

        resp = self.demo.get("/api/analytics/correlations")
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertIsNotNone(payload["last_calculated"])
        self.assertFalse(payload["is_calculating"])
        self.assertEqual(
            set(payload["by_type"]),
            {"food-symptom", "trigger-symptom", "medication-symptom", "food-flare", "trigger-flare"},
        )
        for item in payload["items"]:
            self.assertIsNotNone(item["priority_score"])
            single = self.demo.get(f"/api/analytics/correlations/{item['id']}")
            self.assertEqual(single.status_code, 200)
            break

        resp = self.demo.get("/api/analytics/correlations", params={"type": "bogus"})
        self.assertEqual(resp.status_code, 400)
        resp = self.demo.get("/api/analytics/correlations/missing")
        self.assertEqual(resp.status_code, 404)

        resp = self.demo.post("/api/analytics/recalculate", json={"delay_sec": 3600})
        self.assertTrue(resp.json()["scheduled"])

    def test_food_correlation_and_cache(self) -> None:
        params = {"food_id": self.dairy_id, "symptom": "Bloating", "time_range": "30d"}
        resp = self.demo.get("/api/analytics/correlations/food", params=params)
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertGreater(payload["sample_size"], 0)
        self.assertEqual(len(payload["window_scores"]), 8)
        self.assertIsNotNone(payload["dose_response"])

        resp = self.demo.get("/api/analytics/cache/stats")
        self.assertEqual(resp.status_code, 200)
        self.assertGreaterEqual(resp.json()["total"], 1)

        resp = self.demo.post("/api/analytics/cache/cleanup")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(set(resp.json()), {"correlation_removed", "trend_removed"})

        params.update(start="2024-02-01", end="2024-01-01")
        resp = self.demo.get("/api/analytics/correlations/food", params=params)
        self.assertEqual(resp.status_code, 400)

    def test_relative_range_reuses_cache_entry(self) -> None:
        client = TestClient(self.app, headers={"X-User-Id": "cache-user"})
        params = {"food_id": "oats", "symptom": "Bloating", "time_range": "30d"}
        first = client.get("/api/analytics/correlations/food", params=params)
        second = client.get("/api/analytics/correlations/food", params=params)
        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.json()["computed_at"], first.json()["computed_at"])

        resp = client.get("/api/analytics/cache/stats")
        self.assertEqual(resp.json()["total"], 1)
        client.close()

    def test_inline_analyses(self) -> None:
        resp = self.demo.get("/api/analytics/combinations", params={"symptom": "Bloating", "time_range": "30d"})
        self.assertEqual(resp.status_code, 200)
        self.assertIn("combinations", resp.json()["result"])

        resp = self.demo.get(
            "/api/analytics/daily-log",
            params={"metric": "sleep_hours", "symptom_id": "Fatigue", "threshold": 6, "time_range": "30d"},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertGreater(resp.json()["sample_size"], 0)

        resp = self.demo.get(
            "/api/analytics/daily-log",
            params={"metric": "sleep_hours", "symptom_id": "Fatigue", "threshold": 6, "operator": "=="},
        )
        self.assertEqual(resp.status_code, 400)

        resp = self.demo.get("/api/analytics/treatments", params={"time_range": "90d"})
        self.assertEqual(resp.status_code, 200)
        self.assertIsInstance(resp.json()["result"], list)

        resp = self.demo.get("/api/analytics/temporal", params={"time_range": "30d"})
        self.assertEqual(resp.status_code, 200)
        self.assertIsInstance(resp.json()["result"], list)

        resp = self.demo.get("/api/analytics/patterns", params={"time_range": "30d"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(set(resp.json()["result"]), {"sequences", "day_of_week", "event_count"})

    def test_background_jobs(self) -> None:
        resp = self.demo.get("/api/analytics/statistics", params={"time_range": "30d", "background": "true"})
        self.assertEqual(resp.status_code, 200)
        job = resp.json()["job"]
        self.assertIsNotNone(job)
        self.assertIsNone(resp.json()["result"])

        finished = self._wait(job["id"])
        self.assertEqual(finished["status"], "done")
        self.assertIn("total_pairs", finished["result"])

        resp = self.client.get(f"/api/analytics/jobs/{job['id']}")
        self.assertEqual(resp.status_code, 404)
        resp = self.demo.get("/api/analytics/jobs/unknown")
        self.assertEqual(resp.status_code, 404)

    def test_combination_jobs_keyed_by_parameters(self) -> None:
        base = {"symptom": "Bloating", "time_range": "30d", "background": "true"}
        jobs = [
            self.demo.get("/api/analytics/combinations", params={**base, "min_sample_size": 2}).json()["job"],
            self.demo.get("/api/analytics/combinations", params={**base, "min_sample_size": 5}).json()["job"],
            self.demo.get(
                "/api/analytics/combinations",
                params={**base, "start": "2024-01-01", "end": "2024-02-01", "min_sample_size": 2},
            ).json()["job"],
        ]
        self.assertEqual(len({job["key"] for job in jobs}), 3)
        self.assertEqual(len({job["id"] for job in jobs}), 3)

        for job in jobs:
            finished = self._wait(job["id"])
            self.assertEqual(finished["status"], "done")
            self.assertIn("combinations", finished["result"])

    def test_treatment_alerts(self) -> None:
        from symptom_tracker.analytics import storage as analytics_store  # noqa: WPS433
        from symptom_tracker.analytics.treatment import TreatmentEffectiveness  # noqa: WPS433
        from symptom_tracker.timeutil import DAY_MS, to_ms, utc_now  # noqa: WPS433

        now_ms = to_ms(utc_now())
        for days_ago in (20, 10, 0):
            analytics_store.save_treatment_effectiveness(
                TreatmentEffectiveness(
                    treatment_id="m-low",
                    user_id="alert-user",
                    treatment_type="medication",
                    treatment_name="Antacid",
                    effectiveness_score=12.0,
                    trend_direction="stable",
                    sample_size=3,
                    time_range={"start": now_ms - 90 * DAY_MS, "end": now_ms},
                    last_calculated=now_ms - days_ago * DAY_MS,
                    confidence="low",
                    cycles=[],
                )
            )

        client = TestClient(self.app, headers={"X-User-Id": "alert-user"})
        resp = client.get("/api/analytics/treatments/alerts", params={"refresh": "true"})
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertEqual(payload["created"], 1)
        self.assertEqual([a["alert_type"] for a in payload["items"]], ["low_effectiveness"])
        alert_id = payload["items"][0]["id"]

        resp = self.client.post(f"/api/analytics/treatments/alerts/{alert_id}/dismiss")
        self.assertEqual(resp.status_code, 404)

        resp = client.post(f"/api/analytics/treatments/alerts/{alert_id}/dismiss")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["dismissed"])

        resp = client.get("/api/analytics/treatments/alerts")
        self.assertEqual(resp.json(), {"items": [], "created": 0})
        client.close()

        resp = self.demo.get("/api/analytics/treatments/alerts", params={"refresh": "true"})
        self.assertEqual(resp.status_code, 200)
        self.assertIsInstance(resp.json()["items"], list)


if __name__ == "__main__":
    unittest.main()
