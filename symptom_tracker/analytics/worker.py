# -*- coding: utf-8 -*-
"""Background worker pool and recalculation scheduling.

Heavy analysis runs on a small thread pool instead of the request thread.
Jobs are keyed: submitting a key whose job is still pending or running hands
back that job. Correlation recalculation is debounced per user, and its
progress flags live in the ``recalc_state`` table so a restart can clear
stale ``is_calculating`` markers.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, Iterable, Optional
from uuid import uuid4

from ..app_db import db_conn
from ..config import settings
from ..journal import storage as journal
from ..timeutil import iso, iso_now, to_utc, utc_now
from . import storage as correlation_store
from .cache import analysis_result_cache, correlation_cache
from .engine import TIME_RANGES, find_significant_correlations
from .treatment_alerts import generate_treatment_alerts, record_treatment_effectiveness

logger = logging.getLogger(__name__)

PENDING = "pending"
RUNNING = "running"
DONE = "done"
FAILED = "failed"

MAX_FINISHED_JOBS = 500


@dataclass
class AnalysisJob:
    id: str
    key: str
    kind: str
    user_id: Optional[str] = None
    status: str = PENDING
    submitted_at: str = field(default_factory=iso_now)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    result: Any = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "kind": self.kind,
            "user_id": self.user_id,
            "status": self.status,
            "submitted_at": self.submitted_at,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": self.result,
            "error": self.error,
        }


class AnalysisWorkerPool:
    """Thread pool with keyed, inspectable jobs."""

    def __init__(self, max_workers: Optional[int] = None) -> None:
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._jobs: Dict[str, AnalysisJob] = {}
        self._active: Dict[str, str] = {}
        self._events: Dict[str, threading.Event] = {}

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            workers = self._max_workers or settings.workers
            self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="analysis")
        return self._executor

    def submit(
        self,
        key: str,
        fn: Callable[..., Any],
        *args: Any,
        kind: str = "analysis",
        user_id: Optional[str] = None,
        **kwargs: Any,
    ) -> AnalysisJob:
        with self._lock:
            active_id = self._active.get(key)
            if active_id is not None:
                logger.debug("Job %s already active for key=%s", active_id, key)
                return self._jobs[active_id]

            job = AnalysisJob(id=str(uuid4()), key=key, kind=kind, user_id=user_id)
            self._jobs[job.id] = job
            self._active[key] = job.id
            self._events[job.id] = threading.Event()
            self._prune_locked()
            executor = self._get_executor()

        executor.submit(self._run, job, fn, args, kwargs)
        return job

    def _run(self, job: AnalysisJob, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        job.status = RUNNING
        job.started_at = iso_now()
        try:
            job.result = fn(*args, **kwargs)
            job.status = DONE
        except Exception as exc:
            logger.exception("Analysis job %s (%s) failed", job.id, job.key)
            job.error = str(exc) or exc.__class__.__name__
            job.status = FAILED
        finally:
            job.finished_at = iso_now()
            with self._lock:
                if self._active.get(job.key) == job.id:
                    del self._active[job.key]
                event = self._events.get(job.id)
            if event is not None:
                event.set()

    def _prune_locked(self) -> None:
        finished = [j for j in self._jobs.values() if j.status in (DONE, FAILED)]
        excess = len(finished) - MAX_FINISHED_JOBS
        if excess <= 0:
            return
        finished.sort(key=lambda j: j.finished_at or "")
        for job in finished[:excess]:
            self._jobs.pop(job.id, None)
            self._events.pop(job.id, None)

    def get_job(self, job_id: str) -> Optional[AnalysisJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[AnalysisJob]:
        with self._lock:
            event = self._events.get(job_id)
        if event is not None:
            event.wait(timeout)
        return self.get_job(job_id)

    def active_jobs(self) -> Iterable[AnalysisJob]:
        with self._lock:
            return [self._jobs[job_id] for job_id in self._active.values()]

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=wait)


# ---- Recalculation state ----


def _get_state(user_id: str) -> Dict[str, Any]:
    with db_conn(settings.db_path) as conn:
        row = conn.execute(
            "SELECT is_calculating, last_calculated, cache_timestamp FROM recalc_state WHERE user_id = ?",
            (user_id,),
        ).fetchone()
    if not row:
        return {"is_calculating": False, "last_calculated": None, "cache_timestamp": None}
    return {
        "is_calculating": bool(row["is_calculating"]),
        "last_calculated": row["last_calculated"],
        "cache_timestamp": row["cache_timestamp"],
    }


def _set_calculating(user_id: str, flag: bool) -> None:
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO recalc_state (user_id, is_calculating) VALUES (?, ?)
            ON CONFLICT(user_id) DO UPDATE SET is_calculating = excluded.is_calculating
            """,
            (user_id, 1 if flag else 0),
        )


def _mark_calculated(user_id: str, when: str) -> None:
    with db_conn(settings.db_path) as conn:
        conn.execute(
            """
            INSERT INTO recalc_state (user_id, is_calculating, last_calculated, cache_timestamp)
            VALUES (?, 0, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                last_calculated = excluded.last_calculated,
                cache_timestamp = excluded.cache_timestamp
            """,
            (user_id, when, when),
        )


class RecalculationScheduler:
    """Debounced per-user correlation recalculation."""

    def __init__(self, pool: AnalysisWorkerPool) -> None:
        self.pool = pool
        self._lock = threading.Lock()
        self._timers: Dict[str, threading.Timer] = {}

    @staticmethod
    def job_key(user_id: str) -> str:
        return f"recalculate:{user_id}"

    def initialize(self) -> int:
        """Clear calculating flags left behind by an interrupted process."""
        with db_conn(settings.db_path) as conn:
            cleared = conn.execute("UPDATE recalc_state SET is_calculating = 0 WHERE is_calculating = 1").rowcount
        if cleared:
            logger.info("Cleared %s stale recalculation flags", cleared)
        return cleared

    def schedule(self, user_id: str, delay_sec: Optional[float] = None) -> None:
        delay = settings.recalc_debounce_sec if delay_sec is None else float(delay_sec)
        with self._lock:
            previous = self._timers.pop(user_id, None)
            if previous is not None:
                previous.cancel()
            timer = threading.Timer(delay, self._fire, args=(user_id,))
            timer.daemon = True
            self._timers[user_id] = timer
            timer.start()
        logger.debug("Recalculation for user=%s scheduled in %.0fs", user_id, delay)

    def _fire(self, user_id: str) -> None:
        with self._lock:
            self._timers.pop(user_id, None)
        self.pool.submit(self.job_key(user_id), self.recalculate, user_id, kind="recalculate", user_id=user_id)

    def on_data_logged(self, user_id: str) -> None:
        self.schedule(user_id)

    def pending(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._timers

    def _claim(self, user_id: str, force: bool) -> Optional[str]:
        """Set the calculating flag; returns the reason when the run must be skipped."""
        with self._lock:
            state = _get_state(user_id)
            if state["is_calculating"]:
                return "already calculating"
            if not force and state["cache_timestamp"]:
                age = (utc_now() - to_utc(state["cache_timestamp"])).total_seconds()
                if age < settings.recalc_fresh_sec:
                    return "cache fresh"
            _set_calculating(user_id, True)
        return None

    def recalculate(self, user_id: str, force: bool = False) -> Dict[str, Any]:
        skipped = self._claim(user_id, force)
        if skipped is not None:
            logger.info("Recalculation for user=%s skipped: %s", user_id, skipped)
            return {"user_id": user_id, "status": "skipped", "reason": skipped}

        logger.info("Recalculation for user=%s started", user_id)
        try:
            now = utc_now()
            purged = correlation_store.delete_older_than(
                user_id, now - timedelta(days=settings.correlation_retention_days)
            )
            stored: Dict[str, int] = {}
            for time_range in TIME_RANGES:
                records = find_significant_correlations(user_id, time_range, settings.min_threshold, now=now)
                for record in records:
                    correlation_store.upsert_correlation(record)
                stored[time_range] = len(records)
            treatments = record_treatment_effectiveness(user_id, "90d", now)
            alerts = generate_treatment_alerts(user_id, now)
            _mark_calculated(user_id, iso(now))
        finally:
            _set_calculating(user_id, False)

        logger.info("Recalculation for user=%s finished: stored=%s purged=%s", user_id, stored, purged)
        return {
            "user_id": user_id,
            "status": "completed",
            "stored": stored,
            "purged": purged,
            "treatments": len(treatments),
            "alerts": len(alerts),
        }

    def force_recalculation(self, user_id: str) -> AnalysisJob:
        with self._lock:
            timer = self._timers.pop(user_id, None)
        if timer is not None:
            timer.cancel()
        return self.pool.submit(
            self.job_key(user_id), self.recalculate, user_id, force=True, kind="recalculate", user_id=user_id
        )

    def is_calculating(self, user_id: str) -> bool:
        return _get_state(user_id)["is_calculating"]

    def get_last_calculated(self, user_id: str) -> Optional[str]:
        return _get_state(user_id)["last_calculated"]

    def clear_user_data(self, user_id: str) -> None:
        with self._lock:
            timer = self._timers.pop(user_id, None)
        if timer is not None:
            timer.cancel()
        removed = correlation_store.delete_all(user_id)
        removed_treatments = correlation_store.delete_treatment_data(user_id)
        with db_conn(settings.db_path) as conn:
            conn.execute("DELETE FROM analysis_results WHERE user_id = ?", (user_id,))
            conn.execute("DELETE FROM recalc_state WHERE user_id = ?", (user_id,))
        logger.info(
            "Cleared analytics data for user=%s (%s correlations, %s treatment rows)", user_id, removed, removed_treatments
        )

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()


worker_pool = AnalysisWorkerPool()
scheduler = RecalculationScheduler(worker_pool)


def notify_journal_write(
    user_id: str,
    kind: str,
    food_ids: Optional[Iterable[str]] = None,
    symptom_name: Optional[str] = None,
) -> None:
    """Drop cached analytics touched by a new journal record and queue recalculation."""
    analysis_result_cache.invalidate_cache(user_id)
    for food_id in food_ids or []:
        correlation_cache.invalidate_by_food(user_id, food_id)
    if symptom_name:
        correlation_cache.invalidate_by_symptom(user_id, symptom_name)
    logger.debug("Journal write kind=%s user=%s", kind, user_id)
    scheduler.on_data_logged(user_id)


def clear_user(user_id: str) -> None:
    scheduler.clear_user_data(user_id)
    journal.delete_user_journal(user_id)
