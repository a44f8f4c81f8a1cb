# -*- coding: utf-8 -*-
"""Result caches backed by the ``analysis_results`` table.

Two caches share the table: trend results keyed by (user, metric, time range),
and food/symptom correlation results keyed ``correlation:["user", "food", "symptom"]``
with the pair also stored in the ``food_id`` and ``symptom_id`` columns.
Expired rows are removed lazily on read and by ``cleanup_expired``.
"""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from ..app_db import db_conn
from ..config import settings
from ..timeutil import iso, utc_now

logger = logging.getLogger(__name__)

CORRELATION_PREFIX = "correlation:"
ANY_RANGE = "*"


def _expires_at(ttl_hours: float) -> str:
    return iso(utc_now() + timedelta(hours=float(ttl_hours)))


def _save(
    user_id: str,
    metric: str,
    time_range: str,
    result: Dict[str, Any],
    ttl_hours: float,
    food_id: Optional[str] = None,
    symptom_id: Optional[str] = None,
) -> None:
    now = iso(utc_now())
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO analysis_results (
                user_id, metric, time_range, result_json, created_at, expires_at, food_id, symptom_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, metric, time_range) DO UPDATE SET
                result_json = excluded.result_json,
                created_at = excluded.created_at,
                expires_at = excluded.expires_at
            """,
            (
                user_id,
                metric,
                time_range,
                json.dumps(result, ensure_ascii=False),
                now,
                _expires_at(ttl_hours),
                food_id,
                symptom_id,
            ),
        )


class AnalysisResultCache:
    """Trend results per (user, metric, time range) with a TTL."""

    def __init__(self, ttl_hours: Optional[float] = None) -> None:
        self._ttl_hours = ttl_hours

    @property
    def ttl_hours(self) -> float:
        return float(self._ttl_hours if self._ttl_hours is not None else settings.trend_ttl_hours)

    def get_result(self, user_id: str, metric: str, time_range: str) -> Optional[Dict[str, Any]]:
        now = iso(utc_now())
        with db_conn(settings.db_path) as conn:
            row = conn.execute(
                """
                SELECT id, result_json, expires_at FROM analysis_results
                WHERE user_id = ? AND metric = ? AND time_range = ?
                """,
                (user_id, metric, time_range),
            ).fetchone()
            if not row:
                return None
            if row["expires_at"] < now:
                conn.execute("DELETE FROM analysis_results WHERE id = ?", (row["id"],))
                return None
        return json.loads(row["result_json"])

    def save_result(self, user_id: str, metric: str, time_range: str, result: Dict[str, Any]) -> None:
        _save(user_id, metric, time_range, result, self.ttl_hours)

    def invalidate_cache(self, user_id: str, metric: Optional[str] = None) -> int:
        sql = "DELETE FROM analysis_results WHERE user_id = ? AND metric NOT LIKE ?"
        params: list = [user_id, CORRELATION_PREFIX + "%"]
        if metric is not None:
            sql += " AND metric = ?"
            params.append(metric)
        with db_conn(settings.db_path) as conn:
            return conn.execute(sql, params).rowcount

    def cleanup_expired(self, user_id: Optional[str] = None) -> int:
        sql = "DELETE FROM analysis_results WHERE expires_at < ? AND metric NOT LIKE ?"
        params: list = [iso(utc_now()), CORRELATION_PREFIX + "%"]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        with db_conn(settings.db_path) as conn:
            return conn.execute(sql, params).rowcount


class CorrelationCache:
    """Food/symptom correlation results with a TTL (24 h by default)."""

    def __init__(self, ttl_hours: Optional[float] = None) -> None:
        self._ttl_hours = ttl_hours

    @property
    def ttl_hours(self) -> float:
        return float(self._ttl_hours if self._ttl_hours is not None else settings.correlation_ttl_hours)

    @staticmethod
    def cache_key(user_id: str, food_id: str, symptom_id: str) -> str:
        # JSON keeps ids containing ":" from colliding.
        return CORRELATION_PREFIX + json.dumps([user_id, food_id, symptom_id], ensure_ascii=False)

    def set(
        self,
        user_id: str,
        food_id: str,
        symptom_id: str,
        result: Dict[str, Any],
        time_range: str = ANY_RANGE,
        ttl_hours: Optional[float] = None,
    ) -> None:
        ttl = self.ttl_hours if ttl_hours is None else float(ttl_hours)
        _save(user_id, self.cache_key(user_id, food_id, symptom_id), time_range, result, ttl, food_id, symptom_id)

    def get(
        self,
        user_id: str,
        food_id: str,
        symptom_id: str,
        time_range: str = ANY_RANGE,
    ) -> Optional[Dict[str, Any]]:
        key = self.cache_key(user_id, food_id, symptom_id)
        now = iso(utc_now())
        with db_conn(settings.db_path) as conn:
            row = conn.execute(
                """
                SELECT id, result_json, expires_at FROM analysis_results
                WHERE user_id = ? AND metric = ? AND time_range = ?
                """,
                (user_id, key, time_range),
            ).fetchone()
            if not row:
                return None
            if row["expires_at"] < now:
                conn.execute("DELETE FROM analysis_results WHERE id = ?", (row["id"],))
                logger.debug("Expired correlation cache entry removed: %s", key)
                return None
        logger.debug("Correlation cache hit: %s", key)
        return json.loads(row["result_json"])

    def invalidate(self, user_id: str, food_id: str, symptom_id: str) -> int:
        with db_conn(settings.db_path) as conn:
            return conn.execute(
                "DELETE FROM analysis_results WHERE user_id = ? AND metric = ?",
                (user_id, self.cache_key(user_id, food_id, symptom_id)),
            ).rowcount

    def _delete_where(self, user_id: str, column: str, value: str) -> int:
        with db_conn(settings.db_path) as conn:
            return conn.execute(
                f"DELETE FROM analysis_results WHERE user_id = ? AND metric LIKE ? AND {column} = ?",
                (user_id, CORRELATION_PREFIX + "%", value),
            ).rowcount

    def invalidate_by_food(self, user_id: str, food_id: str) -> int:
        return self._delete_where(user_id, "food_id", food_id)

    def invalidate_by_symptom(self, user_id: str, symptom_id: str) -> int:
        return self._delete_where(user_id, "symptom_id", symptom_id)

    def cleanup_expired(self, user_id: Optional[str] = None) -> int:
        sql = "DELETE FROM analysis_results WHERE metric LIKE ? AND expires_at < ?"
        params: list = [CORRELATION_PREFIX + "%", iso(utc_now())]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        with db_conn(settings.db_path) as conn:
            return conn.execute(sql, params).rowcount

    def get_stats(self, user_id: str) -> Dict[str, int]:
        now = iso(utc_now())
        with db_conn(settings.db_path) as conn:
            rows = conn.execute(
                "SELECT expires_at FROM analysis_results WHERE user_id = ? AND metric LIKE ?",
                (user_id, CORRELATION_PREFIX + "%"),
            ).fetchall()
        expired = sum(1 for r in rows if r["expires_at"] < now)
        return {"total": len(rows), "expired": expired, "active": len(rows) - expired}


analysis_result_cache = AnalysisResultCache()
correlation_cache = CorrelationCache()
