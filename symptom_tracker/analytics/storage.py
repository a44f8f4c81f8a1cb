# -*- coding: utf-8 -*-
"""Stored analytics records (SQLite): correlations, treatment effectiveness and alerts."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, List, Optional
from uuid import uuid4

from fastapi import HTTPException

from ..app_db import db_conn
from ..config import settings
from ..timeutil import DateLike, from_ms, iso, iso_now
from .engine import CorrelationRecord
from .treatment import TreatmentEffectiveness


def _row_to_correlation(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "user_id": row["user_id"],
        "type": row["type"],
        "item1": row["item1"],
        "item2": row["item2"],
        "coefficient": float(row["coefficient"]),
        "strength": row["strength"],
        "significance": float(row["significance"]),
        "sample_size": int(row["sample_size"]),
        "lag_hours": int(row["lag_hours"]),
        "confidence": row["confidence"],
        "time_range": row["time_range"],
        "calculated_at": row["calculated_at"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def upsert_correlation(record: CorrelationRecord) -> Dict[str, Any]:
    """Insert or refresh the record identified by (user, type, items, lag, range)."""
    now = iso_now()
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO correlations (
                id, user_id, type, item1, item2, coefficient, strength, significance,
                sample_size, lag_hours, confidence, time_range, calculated_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, type, item1, item2, lag_hours, time_range) DO UPDATE SET
                coefficient = excluded.coefficient,
                strength = excluded.strength,
                significance = excluded.significance,
                sample_size = excluded.sample_size,
                confidence = excluded.confidence,
                calculated_at = excluded.calculated_at,
                updated_at = excluded.updated_at
            """,
            (
                record.id or str(uuid4()),
                record.user_id,
                record.type,
                record.item1,
                record.item2,
                float(record.coefficient),
                record.strength,
                float(record.significance),
                int(record.sample_size),
                int(record.lag_hours),
                record.confidence,
                record.time_range,
                record.calculated_at,
                now,
                now,
            ),
        )
        row = conn.execute(
            """
            SELECT * FROM correlations
            WHERE user_id = ? AND type = ? AND item1 = ? AND item2 = ? AND lag_hours = ? AND time_range = ?
            """,
            (record.user_id, record.type, record.item1, record.item2, int(record.lag_hours), record.time_range),
        ).fetchone()
    return _row_to_correlation(row)


def list_correlations(
    user_id: str,
    *,
    type: Optional[str] = None,
    time_range: Optional[str] = None,
    min_abs_coefficient: Optional[float] = None,
) -> List[Dict[str, Any]]:
    sql = "SELECT * FROM correlations WHERE user_id = ?"
    params: List[Any] = [user_id]
    if type:
        sql += " AND type = ?"
        params.append(type)
    if time_range:
        sql += " AND time_range = ?"
        params.append(time_range)
    if min_abs_coefficient is not None:
        sql += " AND ABS(coefficient) >= ?"
        params.append(float(min_abs_coefficient))
    sql += " ORDER BY ABS(coefficient) DESC"
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_correlation(r) for r in rows]


def get_correlation(*, user_id: str, correlation_id: str) -> Dict[str, Any]:
    with db_conn(settings.db_path) as conn:
        row = conn.execute(
            "SELECT * FROM correlations WHERE id = ? AND user_id = ?",
            (correlation_id, user_id),
        ).fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="Correlation not found")
    return _row_to_correlation(row)


def delete_older_than(user_id: str, cutoff: DateLike) -> int:
    with db_conn(settings.db_path) as conn:
        cur = conn.execute(
            "DELETE FROM correlations WHERE user_id = ? AND calculated_at < ?",
            (user_id, iso(cutoff)),
        )
        return cur.rowcount


def delete_all(user_id: str) -> int:
    with db_conn(settings.db_path) as conn:
        cur = conn.execute("DELETE FROM correlations WHERE user_id = ?", (user_id,))
        return cur.rowcount


# ---- Treatment effectiveness history ----


def _row_to_effectiveness(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "user_id": row["user_id"],
        "treatment_id": row["treatment_id"],
        "treatment_type": row["treatment_type"],
        "treatment_name": row["treatment_name"],
        "effectiveness_score": float(row["effectiveness_score"]),
        "trend_direction": row["trend_direction"],
        "sample_size": int(row["sample_size"]),
        "confidence": row["confidence"],
        "time_range": json.loads(row["time_range"]),
        "calculated_at": row["calculated_at"],
    }


def save_treatment_effectiveness(result: TreatmentEffectiveness) -> Dict[str, Any]:
    """Append one calculation; history rows are never overwritten."""
    record_id = str(uuid4())
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO treatment_effectiveness (
                id, user_id, treatment_id, treatment_type, treatment_name, effectiveness_score,
                trend_direction, sample_size, confidence, time_range, calculated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record_id,
                result.user_id,
                result.treatment_id,
                result.treatment_type,
                result.treatment_name,
                float(result.effectiveness_score),
                result.trend_direction,
                int(result.sample_size),
                result.confidence,
                json.dumps(result.time_range),
                iso(from_ms(result.last_calculated)),
            ),
        )
        row = conn.execute("SELECT * FROM treatment_effectiveness WHERE id = ?", (record_id,)).fetchone()
    return _row_to_effectiveness(row)


def list_treatment_effectiveness(user_id: str, treatment_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Oldest first."""
    sql = "SELECT * FROM treatment_effectiveness WHERE user_id = ?"
    params: List[Any] = [user_id]
    if treatment_id:
        sql += " AND treatment_id = ?"
        params.append(treatment_id)
    sql += " ORDER BY calculated_at ASC, rowid ASC"
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_effectiveness(r) for r in rows]


# ---- Treatment alerts ----


def _row_to_alert(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "user_id": row["user_id"],
        "treatment_id": row["treatment_id"],
        "alert_type": row["alert_type"],
        "severity": row["severity"],
        "message": row["message"],
        "action_suggestion": row["action_suggestion"],
        "dismissed": bool(row["dismissed"]),
        "created_at": row["created_at"],
    }


def insert_treatment_alert(alert: Dict[str, Any]) -> Dict[str, Any]:
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO treatment_alerts (
                id, user_id, treatment_id, alert_type, severity, message, action_suggestion, dismissed, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                alert["id"],
                alert["user_id"],
                alert["treatment_id"],
                alert["alert_type"],
                alert["severity"],
                alert["message"],
                alert["action_suggestion"],
                1 if alert.get("dismissed") else 0,
                alert["created_at"],
            ),
        )
        row = conn.execute("SELECT * FROM treatment_alerts WHERE id = ?", (alert["id"],)).fetchone()
    return _row_to_alert(row)


def find_active_treatment_alert(user_id: str, treatment_id: str, alert_type: str) -> Optional[Dict[str, Any]]:
    with db_conn(settings.db_path) as conn:
        row = conn.execute(
            """
            SELECT * FROM treatment_alerts
            WHERE user_id = ? AND treatment_id = ? AND alert_type = ? AND dismissed = 0
            """,
            (user_id, treatment_id, alert_type),
        ).fetchone()
    return _row_to_alert(row) if row else None


def list_treatment_alerts(user_id: str, include_dismissed: bool = False) -> List[Dict[str, Any]]:
    sql = "SELECT * FROM treatment_alerts WHERE user_id = ?"
    if not include_dismissed:
        sql += " AND dismissed = 0"
    sql += " ORDER BY created_at DESC"
    with db_conn(settings.db_path) as conn:
        rows = conn.execute(sql, (user_id,)).fetchall()
    return [_row_to_alert(r) for r in rows]


def dismiss_treatment_alert(*, user_id: str, alert_id: str) -> Dict[str, Any]:
    with db_conn(settings.db_path) as conn:
        cur = conn.execute(
            "UPDATE treatment_alerts SET dismissed = 1 WHERE id = ? AND user_id = ?",
            (alert_id, user_id),
        )
        if cur.rowcount == 0:
            raise HTTPException(status_code=404, detail="Alert not found")
        row = conn.execute("SELECT * FROM treatment_alerts WHERE id = ?", (alert_id,)).fetchone()
    return _row_to_alert(row)


def delete_treatment_data(user_id: str) -> int:
    with db_conn(settings.db_path) as conn:
        removed = conn.execute("DELETE FROM treatment_effectiveness WHERE user_id = ?", (user_id,)).rowcount
        removed += conn.execute("DELETE FROM treatment_alerts WHERE user_id = ?", (user_id,)).rowcount
    return removed
