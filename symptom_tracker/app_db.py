# -*- coding: utf-8 -*-
"""Local database helpers (SQLite) and versioned schema migrations.

The schema version is tracked in ``PRAGMA user_version``. Each migration runs
once, in order, inside its own transaction.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Tuple

logger = logging.getLogger(__name__)


MIGRATIONS: List[Tuple[int, List[str]]] = [
    (
        1,
        [
            """
            CREATE TABLE IF NOT EXISTS symptom_instances (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                category TEXT NOT NULL,
                severity REAL NOT NULL,
                location TEXT,
                notes TEXT,
                timestamp TEXT NOT NULL,
                created_at TEXT NOT NULL
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_symptom_instances_user_ts ON symptom_instances(user_id, timestamp);",
            """
            CREATE TABLE IF NOT EXISTS daily_entries (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                date TEXT NOT NULL,
                overall_health REAL NOT NULL,
                energy_level REAL NOT NULL,
                sleep_quality REAL NOT NULL,
                stress_level REAL NOT NULL,
                notes TEXT,
                created_at TEXT NOT NULL
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_daily_entries_user_date ON daily_entries(user_id, date);",
            """
            CREATE TABLE IF NOT EXISTS medications (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                dosage TEXT,
                schedule_json TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS medication_events (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                medication_id TEXT NOT NULL,
                taken INTEGER NOT NULL,
                notes TEXT,
                timestamp TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(medication_id) REFERENCES medications(id) ON DELETE CASCADE
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_medication_events_user_ts ON medication_events(user_id, timestamp);",
        ],
    ),
    (
        2,
        [
            """
            CREATE TABLE IF NOT EXISTS triggers (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                category TEXT NOT NULL,
                created_at TEXT NOT NULL
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS trigger_events (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                trigger_id TEXT NOT NULL,
                intensity TEXT NOT NULL,
                notes TEXT,
                timestamp TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(trigger_id) REFERENCES triggers(id) ON DELETE CASCADE
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_trigger_events_user_ts ON trigger_events(user_id, timestamp);",
            """
            CREATE TABLE IF NOT EXISTS flares (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                body_region_id TEXT NOT NULL,
                status TEXT NOT NULL,
                initial_severity REAL NOT NULL,
                current_severity REAL NOT NULL,
                start_date TEXT NOT NULL,
                end_date TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_flares_user_start ON flares(user_id, start_date);",
            """
            CREATE TABLE IF NOT EXISTS flare_events (
                id TEXT PRIMARY KEY,
                flare_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                severity REAL NOT NULL,
                status TEXT,
                timestamp TEXT NOT NULL,
                FOREIGN KEY(flare_id) REFERENCES flares(id) ON DELETE CASCADE
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_flare_events_flare_ts ON flare_events(flare_id, timestamp);",
        ],
    ),
    (
        3,
        [
            """
            CREATE TABLE IF NOT EXISTS foods (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                category TEXT NOT NULL,
                allergen_tags TEXT NOT NULL DEFAULT '[]',
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS food_events (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                meal_id TEXT NOT NULL,
                food_ids TEXT NOT NULL,
                portion_map TEXT NOT NULL DEFAULT '{}',
                meal_type TEXT NOT NULL,
                notes TEXT,
                timestamp TEXT NOT NULL,
                created_at TEXT NOT NULL
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_food_events_user_ts ON food_events(user_id, timestamp);",
            """
            CREATE TABLE IF NOT EXISTS daily_logs (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                date TEXT NOT NULL,
                mood INTEGER NOT NULL,
                sleep_hours REAL NOT NULL,
                sleep_quality INTEGER NOT NULL,
                stress_level INTEGER NOT NULL,
                notes TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """,
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_daily_logs_user_date ON daily_logs(user_id, date);",
        ],
    ),
    (
        4,
        [
            """
            CREATE TABLE IF NOT EXISTS correlations (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                type TEXT NOT NULL,
                item1 TEXT NOT NULL,
                item2 TEXT NOT NULL,
                coefficient REAL NOT NULL,
                strength TEXT NOT NULL,
                significance REAL NOT NULL,
                sample_size INTEGER NOT NULL,
                lag_hours INTEGER NOT NULL,
                confidence TEXT NOT NULL,
                time_range TEXT NOT NULL,
                calculated_at TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """,
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_correlations_identity
            ON correlations(user_id, type, item1, item2, lag_hours, time_range);
            """,
            """
            CREATE TABLE IF NOT EXISTS analysis_results (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                metric TEXT NOT NULL,
                time_range TEXT NOT NULL,
                result_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                expires_at TEXT NOT NULL
            );
            """,
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_analysis_results_key
            ON analysis_results(user_id, metric, time_range);
            """,
            """
            CREATE TABLE IF NOT EXISTS recalc_state (
                user_id TEXT PRIMARY KEY,
                is_calculating INTEGER NOT NULL DEFAULT 0,
                last_calculated TEXT,
                cache_timestamp TEXT
            );
            """,
        ],
    ),
    (
        5,
        [
            # Correlation cache rows carry their pair so invalidation compares columns.
            "DELETE FROM analysis_results WHERE metric LIKE 'correlation:%';",
            "ALTER TABLE analysis_results ADD COLUMN food_id TEXT;",
            "ALTER TABLE analysis_results ADD COLUMN symptom_id TEXT;",
            "CREATE INDEX IF NOT EXISTS idx_analysis_results_food ON analysis_results(user_id, food_id);",
            "CREATE INDEX IF NOT EXISTS idx_analysis_results_symptom ON analysis_results(user_id, symptom_id);",
            """
            CREATE TABLE IF NOT EXISTS treatment_effectiveness (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                treatment_id TEXT NOT NULL,
                treatment_type TEXT NOT NULL,
                treatment_name TEXT NOT NULL,
                effectiveness_score REAL NOT NULL,
                trend_direction TEXT NOT NULL,
                sample_size INTEGER NOT NULL,
                confidence TEXT NOT NULL,
                time_range TEXT NOT NULL,
                calculated_at TEXT NOT NULL
            );
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_treatment_effectiveness_user_treatment
            ON treatment_effectiveness(user_id, treatment_id, calculated_at);
            """,
            """
            CREATE TABLE IF NOT EXISTS treatment_alerts (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                treatment_id TEXT NOT NULL,
                alert_type TEXT NOT NULL,
                severity TEXT NOT NULL,
                message TEXT NOT NULL,
                action_suggestion TEXT NOT NULL,
                dismissed INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );
            """,
            "CREATE INDEX IF NOT EXISTS idx_treatment_alerts_user ON treatment_alerts(user_id, dismissed);",
        ],
    ),
]

LATEST_VERSION = MIGRATIONS[-1][0]


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def schema_version(db_path: Path) -> int:
    conn = connect(db_path)
    try:
        return int(conn.execute("PRAGMA user_version;").fetchone()[0])
    finally:
        conn.close()


def init_app_db(db_path: Path) -> int:
    """Apply pending migrations and return the resulting schema version."""
    conn = connect(db_path)
    # Autocommit mode; each migration opens its own transaction so DDL rolls back too.
    conn.isolation_level = None
    try:
        current = int(conn.execute("PRAGMA user_version;").fetchone()[0])
        for version, statements in MIGRATIONS:
            if version <= current:
                continue
            cur = conn.cursor()
            cur.execute("BEGIN")
            try:
                for statement in statements:
                    cur.execute(statement)
                # PRAGMA does not accept bound parameters.
                cur.execute(f"PRAGMA user_version = {int(version)};")
                cur.execute("COMMIT")
            except sqlite3.DatabaseError:
                cur.execute("ROLLBACK")
                logger.exception("Migration to schema v%s failed", version)
                raise
            logger.info("Applied schema migration v%s to %s", version, db_path)
            current = version
        return current
    finally:
        conn.close()


@contextmanager
def db_conn(db_path: Path) -> Iterator[sqlite3.Connection]:
    conn = connect(db_path)
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()
