# -*- coding: utf-8 -*-
"""Journal storage helpers (SQLite).

Range lookups are inclusive on both ends. Timestamps are stored as fixed-width
ISO-8601 UTC strings so that SQL string comparison orders them correctly.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from fastapi import HTTPException

from ..app_db import db_conn
from ..config import settings
from ..timeutil import DateLike, iso, iso_now


def _loads(raw: Optional[str], default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        return default


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _range(start: DateLike, end: DateLike) -> tuple:
    return iso(start), iso(end)


# ---- Symptom instances ----


def _row_to_symptom(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "category": row["category"],
        "severity": float(row["severity"]),
        "location": row["location"],
        "notes": row["notes"],
        "timestamp": row["timestamp"],
    }


def create_symptom_instance(
    *,
    user_id: str,
    name: str,
    severity: float,
    category: str = "general",
    location: Optional[str] = None,
    notes: Optional[str] = None,
    timestamp: Optional[DateLike] = None,
) -> Dict[str, Any]:
    record_id = str(uuid4())
    ts = iso(timestamp) if timestamp is not None else iso_now()
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO symptom_instances (
                id, user_id, name, category, severity, location, notes, timestamp, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (record_id, user_id, name, category, float(severity), location, notes, ts, iso_now()),
        )
        row = conn.execute("SELECT * FROM symptom_instances WHERE id = ?", (record_id,)).fetchone()
    return _row_to_symptom(row)


def find_symptom_instances_by_date_range(
    user_id: str,
    start: DateLike,
    end: DateLike,
    name: Optional[str] = None,
) -> List[Dict[str, Any]]:
    lo, hi = _range(start, end)
    sql = "SELECT * FROM symptom_instances WHERE user_id = ? AND timestamp >= ? AND timestamp <= ?"
    params: List[Any] = [user_id, lo, hi]
    if name is not None:
        sql += " AND name = ?"
        params.append(name)
    sql += " ORDER BY timestamp ASC"
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_symptom(r) for r in rows]


def list_tracked_symptoms(user_id: str) -> List[str]:
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(
            "SELECT DISTINCT name FROM symptom_instances WHERE user_id = ? ORDER BY name",
            (user_id,),
        ).fetchall()
    return [r["name"] for r in rows]


# ---- Foods ----


def _row_to_food(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "category": row["category"],
        "allergen_tags": _loads(row["allergen_tags"], []),
        "is_active": bool(row["is_active"]),
    }


def create_food(
    *,
    user_id: str,
    name: str,
    category: str = "other",
    allergen_tags: Iterable[str] | None = None,
    is_active: bool = True,
    food_id: Optional[str] = None,
) -> Dict[str, Any]:
    record_id = food_id or str(uuid4())
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO foods (id, user_id, name, category, allergen_tags, is_active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record_id,
                user_id,
                name,
                category,
                _dumps(list(allergen_tags or [])),
                1 if is_active else 0,
                iso_now(),
            ),
        )
        row = conn.execute("SELECT * FROM foods WHERE id = ?", (record_id,)).fetchone()
    return _row_to_food(row)


def get_food(*, user_id: str, food_id: str) -> Dict[str, Any]:
    with db_conn(settings.db_path) as conn:
        row = conn.execute(
            "SELECT * FROM foods WHERE id = ? AND user_id = ?",
            (food_id, user_id),
        ).fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="Food not found")
    return _row_to_food(row)


def list_foods(user_id: str, active_only: bool = False) -> List[Dict[str, Any]]:
    sql = "SELECT * FROM foods WHERE user_id = ?"
    if active_only:
        sql += " AND is_active = 1"
    sql += " ORDER BY name"
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(sql, (user_id,)).fetchall()
    return [_row_to_food(r) for r in rows]


def food_name_map(user_id: str) -> Dict[str, str]:
    return {f["id"]: f["name"] for f in list_foods(user_id)}


# ---- Food events ----


def _row_to_food_event(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "meal_id": row["meal_id"],
        "food_ids": _loads(row["food_ids"], []),
        "portion_map": _loads(row["portion_map"], {}),
        "meal_type": row["meal_type"],
        "notes": row["notes"],
        "timestamp": row["timestamp"],
    }


def create_food_event(
    *,
    user_id: str,
    food_ids: List[str],
    meal_type: str = "snack",
    portion_map: Optional[Dict[str, str]] = None,
    meal_id: Optional[str] = None,
    notes: Optional[str] = None,
    timestamp: Optional[DateLike] = None,
) -> Dict[str, Any]:
    if not food_ids:
        raise HTTPException(status_code=400, detail="food_ids must not be empty")
    record_id = str(uuid4())
    ts = iso(timestamp) if timestamp is not None else iso_now()
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO food_events (
                id, user_id, meal_id, food_ids, portion_map, meal_type, notes, timestamp, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record_id,
                user_id,
                meal_id or f"meal-{record_id}",
                _dumps(list(food_ids)),
                _dumps(dict(portion_map or {})),
                meal_type,
                notes,
                ts,
                iso_now(),
            ),
        )
        row = conn.execute("SELECT * FROM food_events WHERE id = ?", (record_id,)).fetchone()
    return _row_to_food_event(row)


def find_food_events_by_date_range(user_id: str, start: DateLike, end: DateLike) -> List[Dict[str, Any]]:
    lo, hi = _range(start, end)
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(
            """
            SELECT * FROM food_events
            WHERE user_id = ? AND timestamp >= ? AND timestamp <= ?
            ORDER BY timestamp ASC
            """,
            (user_id, lo, hi),
        ).fetchall()
    return [_row_to_food_event(r) for r in rows]


def list_tracked_foods(user_id: str) -> List[str]:
    """Distinct food ids that appear in at least one logged meal."""
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(
            "SELECT food_ids FROM food_events WHERE user_id = ? ORDER BY timestamp ASC",
            (user_id,),
        ).fetchall()
    seen: Dict[str, None] = {}
    for row in rows:
        for food_id in _loads(row["food_ids"], []):
            seen.setdefault(str(food_id), None)
    return list(seen.keys())


# ---- Triggers ----


def _row_to_trigger(row: sqlite3.Row) -> Dict[str, Any]:
    return {"id": row["id"], "name": row["name"], "category": row["category"]}


def create_trigger(
    *,
    user_id: str,
    name: str,
    category: str = "environmental",
    trigger_id: Optional[str] = None,
) -> Dict[str, Any]:
    record_id = trigger_id or str(uuid4())
    with db_conn(settings.db_path) as conn:
        conn.execute(
            "INSERT INTO triggers (id, user_id, name, category, created_at) VALUES (?, ?, ?, ?, ?)",
            (record_id, user_id, name, category, iso_now()),
        )
        row = conn.execute("SELECT * FROM triggers WHERE id = ?", (record_id,)).fetchone()
    return _row_to_trigger(row)


def get_trigger(*, user_id: str, trigger_id: str) -> Dict[str, Any]:
    with db_conn(settings.db_path) as conn:
        row = conn.execute(
            "SELECT * FROM triggers WHERE id = ? AND user_id = ?",
            (trigger_id, user_id),
        ).fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="Trigger not found")
    return _row_to_trigger(row)


def list_triggers(user_id: str) -> List[Dict[str, Any]]:
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM triggers WHERE user_id = ? ORDER BY name",
            (user_id,),
        ).fetchall()
    return [_row_to_trigger(r) for r in rows]


def _row_to_trigger_event(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "trigger_id": row["trigger_id"],
        "intensity": row["intensity"],
        "notes": row["notes"],
        "timestamp": row["timestamp"],
    }


def create_trigger_event(
    *,
    user_id: str,
    trigger_id: str,
    intensity: str = "medium",
    notes: Optional[str] = None,
    timestamp: Optional[DateLike] = None,
) -> Dict[str, Any]:
    get_trigger(user_id=user_id, trigger_id=trigger_id)
    record_id = str(uuid4())
    ts = iso(timestamp) if timestamp is not None else iso_now()
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO trigger_events (id, user_id, trigger_id, intensity, notes, timestamp, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (record_id, user_id, trigger_id, intensity, notes, ts, iso_now()),
        )
        row = conn.execute("SELECT * FROM trigger_events WHERE id = ?", (record_id,)).fetchone()
    return _row_to_trigger_event(row)


def find_trigger_events_by_date_range(
    user_id: str,
    start: DateLike,
    end: DateLike,
    trigger_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    lo, hi = _range(start, end)
    sql = "SELECT * FROM trigger_events WHERE user_id = ? AND timestamp >= ? AND timestamp <= ?"
    params: List[Any] = [user_id, lo, hi]
    if trigger_id is not None:
        sql += " AND trigger_id = ?"
        params.append(trigger_id)
    sql += " ORDER BY timestamp ASC"
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_trigger_event(r) for r in rows]


def list_tracked_triggers(user_id: str) -> List[str]:
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(
            "SELECT DISTINCT trigger_id FROM trigger_events WHERE user_id = ? ORDER BY trigger_id",
            (user_id,),
        ).fetchall()
    return [r["trigger_id"] for r in rows]


# ---- Medications ----


def _row_to_medication(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "dosage": row["dosage"],
        "schedule": _loads(row["schedule_json"], []),
        "is_active": bool(row["is_active"]),
    }


def create_medication(
    *,
    user_id: str,
    name: str,
    dosage: Optional[str] = None,
    schedule: Optional[List[Dict[str, Any]]] = None,
    is_active: bool = True,
    medication_id: Optional[str] = None,
) -> Dict[str, Any]:
    record_id = medication_id or str(uuid4())
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO medications (id, user_id, name, dosage, schedule_json, is_active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (record_id, user_id, name, dosage, _dumps(list(schedule or [])), 1 if is_active else 0, iso_now()),
        )
        row = conn.execute("SELECT * FROM medications WHERE id = ?", (record_id,)).fetchone()
    return _row_to_medication(row)


def get_medication(*, user_id: str, medication_id: str) -> Dict[str, Any]:
    with db_conn(settings.db_path) as conn:
        row = conn.execute(
            "SELECT * FROM medications WHERE id = ? AND user_id = ?",
            (medication_id, user_id),
        ).fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="Medication not found")
    return _row_to_medication(row)


def list_medications(user_id: str, active_only: bool = False) -> List[Dict[str, Any]]:
    sql = "SELECT * FROM medications WHERE user_id = ?"
    if active_only:
        sql += " AND is_active = 1"
    sql += " ORDER BY name"
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(sql, (user_id,)).fetchall()
    return [_row_to_medication(r) for r in rows]


def _row_to_medication_event(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "medication_id": row["medication_id"],
        "taken": bool(row["taken"]),
        "notes": row["notes"],
        "timestamp": row["timestamp"],
    }


def create_medication_event(
    *,
    user_id: str,
    medication_id: str,
    taken: bool = True,
    notes: Optional[str] = None,
    timestamp: Optional[DateLike] = None,
) -> Dict[str, Any]:
    get_medication(user_id=user_id, medication_id=medication_id)
    record_id = str(uuid4())
    ts = iso(timestamp) if timestamp is not None else iso_now()
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO medication_events (id, user_id, medication_id, taken, notes, timestamp, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (record_id, user_id, medication_id, 1 if taken else 0, notes, ts, iso_now()),
        )
        row = conn.execute("SELECT * FROM medication_events WHERE id = ?", (record_id,)).fetchone()
    return _row_to_medication_event(row)


def find_medication_events_by_date_range(
    user_id: str,
    start: DateLike,
    end: DateLike,
    medication_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    lo, hi = _range(start, end)
    sql = "SELECT * FROM medication_events WHERE user_id = ? AND timestamp >= ? AND timestamp <= ?"
    params: List[Any] = [user_id, lo, hi]
    if medication_id is not None:
        sql += " AND medication_id = ?"
        params.append(medication_id)
    sql += " ORDER BY timestamp ASC"
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_medication_event(r) for r in rows]


def list_tracked_medications(user_id: str) -> List[str]:
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(
            "SELECT DISTINCT medication_id FROM medication_events WHERE user_id = ? ORDER BY medication_id",
            (user_id,),
        ).fetchall()
    return [r["medication_id"] for r in rows]


# ---- Daily entries ----


def _row_to_daily_entry(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "date": row["date"],
        "overall_health": float(row["overall_health"]),
        "energy_level": float(row["energy_level"]),
        "sleep_quality": float(row["sleep_quality"]),
        "stress_level": float(row["stress_level"]),
        "notes": row["notes"],
    }


def create_daily_entry(
    *,
    user_id: str,
    date: str,
    overall_health: float,
    energy_level: float,
    sleep_quality: float,
    stress_level: float,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    record_id = str(uuid4())
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO daily_entries (
                id, user_id, date, overall_health, energy_level, sleep_quality, stress_level, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record_id,
                user_id,
                date[:10],
                float(overall_health),
                float(energy_level),
                float(sleep_quality),
                float(stress_level),
                notes,
                iso_now(),
            ),
        )
        row = conn.execute("SELECT * FROM daily_entries WHERE id = ?", (record_id,)).fetchone()
    return _row_to_daily_entry(row)


def find_daily_entries_by_date_range(user_id: str, start: DateLike, end: DateLike) -> List[Dict[str, Any]]:
    lo, hi = iso(start)[:10], iso(end)[:10]
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(
            """
            SELECT * FROM daily_entries
            WHERE user_id = ? AND date >= ? AND date <= ?
            ORDER BY date ASC
            """,
            (user_id, lo, hi),
        ).fetchall()
    return [_row_to_daily_entry(r) for r in rows]


# ---- Daily logs ----


def _row_to_daily_log(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "date": row["date"],
        "mood": int(row["mood"]),
        "sleep_hours": float(row["sleep_hours"]),
        "sleep_quality": int(row["sleep_quality"]),
        "stress_level": int(row["stress_level"]),
        "notes": row["notes"],
    }


def upsert_daily_log(
    *,
    user_id: str,
    date: str,
    mood: int,
    sleep_hours: float,
    sleep_quality: int,
    stress_level: int,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """One log per user per day; a second write for the same date replaces the values."""
    now = iso_now()
    day = date[:10]
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO daily_logs (
                id, user_id, date, mood, sleep_hours, sleep_quality, stress_level, notes, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, date) DO UPDATE SET
                mood = excluded.mood,
                sleep_hours = excluded.sleep_hours,
                sleep_quality = excluded.sleep_quality,
                stress_level = excluded.stress_level,
                notes = excluded.notes,
                updated_at = excluded.updated_at
            """,
            (str(uuid4()), user_id, day, int(mood), float(sleep_hours), int(sleep_quality), int(stress_level), notes, now, now),
        )
        row = conn.execute(
            "SELECT * FROM daily_logs WHERE user_id = ? AND date = ?",
            (user_id, day),
        ).fetchone()
    return _row_to_daily_log(row)


def find_daily_logs_by_date_range(user_id: str, start: DateLike, end: DateLike) -> List[Dict[str, Any]]:
    lo, hi = iso(start)[:10], iso(end)[:10]
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(
            """
            SELECT * FROM daily_logs
            WHERE user_id = ? AND date >= ? AND date <= ?
            ORDER BY date ASC
            """,
            (user_id, lo, hi),
        ).fetchall()
    return [_row_to_daily_log(r) for r in rows]


# ---- Flares ----


def _flare_history(conn: sqlite3.Connection, flare_id: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT timestamp, severity, status FROM flare_events WHERE flare_id = ? ORDER BY timestamp ASC",
        (flare_id,),
    ).fetchall()
    return [
        {"timestamp": r["timestamp"], "severity": float(r["severity"]), "status": r["status"]}
        for r in rows
    ]


def _row_to_flare(conn: sqlite3.Connection, row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "body_region_id": row["body_region_id"],
        "status": row["status"],
        "initial_severity": float(row["initial_severity"]),
        "current_severity": float(row["current_severity"]),
        "start_date": row["start_date"],
        "end_date": row["end_date"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
        "severity_history": _flare_history(conn, row["id"]),
    }


def create_flare(
    *,
    user_id: str,
    body_region_id: str,
    initial_severity: float,
    status: str = "active",
    start_date: Optional[DateLike] = None,
) -> Dict[str, Any]:
    flare_id = str(uuid4())
    start = iso(start_date) if start_date is not None else iso_now()
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO flares (
                id, user_id, body_region_id, status, initial_severity, current_severity,
                start_date, end_date, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, NULL, ?, ?)
            """,
            (flare_id, user_id, body_region_id, status, float(initial_severity), float(initial_severity), start, start, start),
        )
        conn.execute(
            """
            INSERT INTO flare_events (id, flare_id, user_id, severity, status, timestamp)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (str(uuid4()), flare_id, user_id, float(initial_severity), status, start),
        )
        row = conn.execute("SELECT * FROM flares WHERE id = ?", (flare_id,)).fetchone()
        return _row_to_flare(conn, row)


def add_flare_severity_update(
    *,
    user_id: str,
    flare_id: str,
    severity: float,
    status: Optional[str] = None,
    timestamp: Optional[DateLike] = None,
) -> Dict[str, Any]:
    ts = iso(timestamp) if timestamp is not None else iso_now()
    with db_conn(settings.db_path) as conn:
        row = conn.execute(
            "SELECT * FROM flares WHERE id = ? AND user_id = ?",
            (flare_id, user_id),
        ).fetchone()
        if not row:
            raise HTTPException(status_code=404, detail="Flare not found")
        new_status = status or row["status"]
        end_date = ts if new_status == "resolved" else row["end_date"]
        conn.execute(
            """
            INSERT INTO flare_events (id, flare_id, user_id, severity, status, timestamp)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (str(uuid4()), flare_id, user_id, float(severity), new_status, ts),
        )
        conn.execute(
            """
            UPDATE flares SET current_severity = ?, status = ?, end_date = ?, updated_at = ?
            WHERE id = ?
            """,
            (float(severity), new_status, end_date, ts, flare_id),
        )
        updated = conn.execute("SELECT * FROM flares WHERE id = ?", (flare_id,)).fetchone()
        return _row_to_flare(conn, updated)


def list_flares(user_id: str) -> List[Dict[str, Any]]:
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM flares WHERE user_id = ? ORDER BY start_date ASC",
            (user_id,),
        ).fetchall()
        return [_row_to_flare(conn, r) for r in rows]


def find_flares_by_date_range(user_id: str, start: DateLike, end: DateLike) -> List[Dict[str, Any]]:
    """Flares whose start_date falls inside [start, end]."""
    lo, hi = _range(start, end)
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(
            """
            SELECT * FROM flares
            WHERE user_id = ? AND start_date >= ? AND start_date <= ?
            ORDER BY start_date ASC
            """,
            (user_id, lo, hi),
        ).fetchall()
        return [_row_to_flare(conn, r) for r in rows]


def delete_user_journal(user_id: str) -> None:
    with db_conn(settings.db_path) as conn:
        for table in (
            "symptom_instances",
            "food_events",
            "foods",
            "trigger_events",
            "triggers",
            "medication_events",
            "medications",
            "daily_entries",
            "daily_logs",
            "flare_events",
            "flares",
        ):
            conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
