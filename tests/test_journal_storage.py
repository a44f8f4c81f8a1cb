# -*- coding: utf-8 -*-

from __future__ import annotations

import sqlite3
import unittest
from datetime import datetime, timedelta, timezone
from unittest import mock

from fastapi import HTTPException

from db_case import TempDatabaseCase
from symptom_tracker import app_db
from symptom_tracker.app_db import LATEST_VERSION, connect, init_app_db, schema_version
from symptom_tracker.config import settings
from symptom_tracker.journal import storage as journal

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


class TestMigrations(TempDatabaseCase):
    def test_schema_is_current_and_idempotent(self) -> None:
        self.assertEqual(schema_version(settings.db_path), LATEST_VERSION)
        self.assertEqual(init_app_db(settings.db_path), LATEST_VERSION)

    def test_failed_migration_rolls_back_entirely(self) -> None:
        broken = app_db.MIGRATIONS + [
            (LATEST_VERSION + 1, ["CREATE TABLE half_applied (id TEXT PRIMARY KEY);", "THIS IS NOT SQL;"]),
        ]
        with mock.patch.object(app_db, "MIGRATIONS", broken):
            with self.assertLogs("symptom_tracker.app_db", level="ERROR"):
                with self.assertRaises(sqlite3.OperationalError):
                    init_app_db(settings.db_path)

        self.assertEqual(schema_version(settings.db_path), LATEST_VERSION)
        conn = connect(settings.db_path)
        try:
            found = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'half_applied'"
            ).fetchone()
        finally:
            conn.close()
        self.assertIsNone(found)


class TestJournalStorage(TempDatabaseCase):
    def test_symptom_range_is_inclusive(self) -> None:
        journal.create_symptom_instance(user_id="u1", name="Bloating", severity=4, timestamp=T0)
        journal.create_symptom_instance(user_id="u1", name="Headache", severity=6, timestamp=T0 + timedelta(hours=2))
        journal.create_symptom_instance(user_id="u2", name="Bloating", severity=9, timestamp=T0)

        found = journal.find_symptom_instances_by_date_range("u1", T0, T0 + timedelta(hours=2))
        self.assertEqual([s["name"] for s in found], ["Bloating", "Headache"])

        only = journal.find_symptom_instances_by_date_range("u1", T0, T0 + timedelta(days=1), name="Headache")
        self.assertEqual(len(only), 1)
        self.assertEqual(only[0]["severity"], 6.0)
        self.assertEqual(journal.list_tracked_symptoms("u1"), ["Bloating", "Headache"])

    def test_foods_and_meals(self) -> None:
        journal.create_food(user_id="u1", name="Dairy", category="dairy", allergen_tags=["milk"], food_id="f-dairy")
        journal.create_food(user_id="u1", name="Rice", food_id="f-rice")
        meal = journal.create_food_event(
            user_id="u1",
            food_ids=["f-dairy", "f-rice"],
            meal_type="lunch",
            portion_map={"f-dairy": "large"},
            timestamp=T0,
        )
        self.assertTrue(meal["meal_id"].startswith("meal-"))
        self.assertEqual(meal["portion_map"], {"f-dairy": "large"})

        self.assertEqual(journal.get_food(user_id="u1", food_id="f-dairy")["allergen_tags"], ["milk"])
        self.assertEqual(journal.food_name_map("u1"), {"f-dairy": "Dairy", "f-rice": "Rice"})
        self.assertEqual(journal.list_tracked_foods("u1"), ["f-dairy", "f-rice"])

        with self.assertRaises(HTTPException) as ctx:
            journal.get_food(user_id="u2", food_id="f-dairy")
        self.assertEqual(ctx.exception.status_code, 404)

        with self.assertRaises(HTTPException) as ctx:
            journal.create_food_event(user_id="u1", food_ids=[], timestamp=T0)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_trigger_and_medication_events_need_owner(self) -> None:
        journal.create_trigger(user_id="u1", name="Stress", trigger_id="t-stress")
        journal.create_medication(user_id="u1", name="Prednisone", medication_id="m-pred")

        journal.create_trigger_event(user_id="u1", trigger_id="t-stress", timestamp=T0)
        journal.create_medication_event(user_id="u1", medication_id="m-pred", taken=False, timestamp=T0)

        self.assertEqual(journal.list_tracked_triggers("u1"), ["t-stress"])
        events = journal.find_medication_events_by_date_range("u1", T0, T0)
        self.assertEqual(len(events), 1)
        self.assertFalse(events[0]["taken"])

        with self.assertRaises(HTTPException):
            journal.create_trigger_event(user_id="u2", trigger_id="t-stress", timestamp=T0)
        with self.assertRaises(HTTPException):
            journal.create_medication_event(user_id="u2", medication_id="m-pred", timestamp=T0)

    def test_daily_log_upsert(self) -> None:
        journal.upsert_daily_log(user_id="u1", date="2024-03-04", mood=2, sleep_hours=5.0, sleep_quality=2, stress_level=7)
        updated = journal.upsert_daily_log(
            user_id="u1", date="2024-03-04T12:00:00Z", mood=4, sleep_hours=8.0, sleep_quality=4, stress_level=3
        )
        self.assertEqual(updated["mood"], 4)

        logs = journal.find_daily_logs_by_date_range("u1", T0, T0)
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0]["sleep_hours"], 8.0)

    def test_daily_entries_by_day(self) -> None:
        journal.create_daily_entry(
            user_id="u1", date="2024-03-04", overall_health=6, energy_level=5, sleep_quality=7, stress_level=3
        )
        journal.create_daily_entry(
            user_id="u1", date="2024-03-06", overall_health=7, energy_level=5, sleep_quality=7, stress_level=3
        )
        found = journal.find_daily_entries_by_date_range("u1", T0, T0 + timedelta(days=1))
        self.assertEqual([e["date"] for e in found], ["2024-03-04"])

    def test_flare_lifecycle(self) -> None:
        flare = journal.create_flare(user_id="u1", body_region_id="left-knee", initial_severity=7, start_date=T0)
        self.assertEqual(flare["status"], "active")
        self.assertIsNone(flare["end_date"])
        self.assertEqual(len(flare["severity_history"]), 1)

        journal.add_flare_severity_update(
            user_id="u1", flare_id=flare["id"], severity=5, status="improving", timestamp=T0 + timedelta(days=1)
        )
        resolved = journal.add_flare_severity_update(
            user_id="u1", flare_id=flare["id"], severity=1, status="resolved", timestamp=T0 + timedelta(days=3)
        )
        self.assertEqual(resolved["status"], "resolved")
        self.assertEqual(resolved["current_severity"], 1.0)
        self.assertEqual(resolved["initial_severity"], 7.0)
        self.assertIsNotNone(resolved["end_date"])
        self.assertEqual([h["severity"] for h in resolved["severity_history"]], [7.0, 5.0, 1.0])

        self.assertEqual(len(journal.find_flares_by_date_range("u1", T0, T0)), 1)
        self.assertEqual(journal.find_flares_by_date_range("u1", T0 + timedelta(days=1), T0 + timedelta(days=2)), [])

        with self.assertRaises(HTTPException) as ctx:
            journal.add_flare_severity_update(user_id="u2", flare_id=flare["id"], severity=3)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_delete_user_journal(self) -> None:
        journal.create_symptom_instance(user_id="u1", name="Bloating", severity=4, timestamp=T0)
        journal.create_symptom_instance(user_id="u2", name="Bloating", severity=4, timestamp=T0)
        journal.delete_user_journal("u1")
        self.assertEqual(journal.list_tracked_symptoms("u1"), [])
        self.assertEqual(journal.list_tracked_symptoms("u2"), ["Bloating"])


if __name__ == "__main__":
    unittest.main()
