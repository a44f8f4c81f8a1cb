# -*- coding: utf-8 -*-
"""Trend analysis service.

Builds a metric series for a user and time range, fits a least-squares trend
line, caches the fit per (user, metric, time range) and turns it into a
direction/confidence interpretation.

Supported metrics (case-insensitive):

- ``overallhealth`` / ``energylevel`` / ``sleepquality`` / ``stresslevel``: daily entry scores
- ``symptom-frequency[:daily|weekly|monthly]``: symptom counts per bucket
- ``symptom:<name>`` or ``symptom:all``: severity of each symptom instance
- ``flare-severity``: flare severity-history samples
- ``medication-adherence``: daily taken/scheduled percentage
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from ..journal import storage as journal
from ..statistics.regression import compute_linear_regression
from ..timeutil import end_of_day, start_of_day, subtract_time_range, sunday_weekday, to_ms, to_utc, utc_now
from .cache import AnalysisResultCache, analysis_result_cache

logger = logging.getLogger(__name__)

# lower-cased metric name -> daily entry column
DIRECT_METRICS: Dict[str, str] = {
    "overallhealth": "overall_health",
    "energylevel": "energy_level",
    "sleepquality": "sleep_quality",
    "stresslevel": "stress_level",
}

METRIC_LABELS: Dict[str, str] = {
    "overallhealth": "Overall Health",
    "energylevel": "Energy Level",
    "sleepquality": "Sleep Quality",
    "stresslevel": "Stress Level",
    "symptom-frequency": "Symptom Frequency",
    "flare-severity": "Flare Severity",
    "medication-adherence": "Medication Adherence",
}

MIN_INTERPRETATION_POINTS = 14
STABLE_SLOPE = 0.1

Point = Tuple[float, float]


@dataclass
class MetricSeries:
    raw: List[Dict[str, Any]] = field(default_factory=list)
    points: List[Point] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "raw": list(self.raw),
            "points": [{"x": x, "y": y} for x, y in self.points],
            "metadata": dict(self.metadata),
        }


def parse_time_range(time_range: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    end = now or utc_now()
    start = subtract_time_range(end, time_range)
    return start_of_day(start), end_of_day(end)


def parse_granularity(metric: str) -> str:
    if "monthly" in metric:
        return "monthly"
    if "weekly" in metric:
        return "weekly"
    return "daily"


def _bucket_start(dt: datetime, granularity: str) -> datetime:
    day = start_of_day(dt)
    if granularity == "weekly":
        return day - timedelta(days=sunday_weekday(day))
    if granularity == "monthly":
        return day.replace(day=1)
    return day


class TrendAnalysisService:
    def __init__(self, cache: Optional[AnalysisResultCache] = None) -> None:
        self.cache = cache or analysis_result_cache

    # ---- series ----

    def fetch_metric_series(
        self,
        user_id: str,
        metric: str,
        time_range: str,
        now: Optional[datetime] = None,
    ) -> MetricSeries:
        start, end = parse_time_range(time_range, now)
        normalized = (metric or "").strip().lower()

        if normalized in DIRECT_METRICS:
            return self._direct_metric_series(user_id, normalized, start, end)
        if normalized.startswith("symptom-frequency"):
            return self._symptom_frequency_series(user_id, start, end, parse_granularity(normalized))
        if normalized.startswith("symptom:"):
            key = normalized.split(":")[1] or "all"
            return self._symptom_severity_series(user_id, key, start, end)
        if normalized.startswith("flare-severity"):
            return self._flare_severity_series(user_id, start, end)
        if normalized.startswith("medication-adherence"):
            return self._medication_adherence_series(user_id, start, end)

        logger.warning('Unsupported trend metric "%s"', metric)
        return MetricSeries(metadata={"label": "Unknown Metric"})

    def _direct_metric_series(self, user_id: str, metric: str, start: datetime, end: datetime) -> MetricSeries:
        column = DIRECT_METRICS[metric]
        entries = journal.find_daily_entries_by_date_range(user_id, start, end)
        points = sorted((float(to_ms(e["date"])), float(e[column])) for e in entries)
        return MetricSeries(
            raw=entries,
            points=points,
            metadata={"label": METRIC_LABELS[metric], "unit": "score"},
        )

    def _symptom_severity_series(self, user_id: str, key: str, start: datetime, end: datetime) -> MetricSeries:
        instances = journal.find_symptom_instances_by_date_range(user_id, start, end)
        if key != "all":
            instances = [i for i in instances if i["name"].lower() == key]
        points = sorted((float(to_ms(i["timestamp"])), float(i["severity"])) for i in instances)
        label = "Symptom Severity (All)" if key == "all" else f"Symptom Severity ({key})"
        return MetricSeries(raw=instances, points=points, metadata={"label": label, "unit": "severity"})

    def _symptom_frequency_series(self, user_id: str, start: datetime, end: datetime, granularity: str) -> MetricSeries:
        instances = journal.find_symptom_instances_by_date_range(user_id, start, end)
        buckets: List[Dict[str, Any]] = []
        if instances:
            frame = pd.DataFrame(
                {"bucket": [to_ms(_bucket_start(to_utc(i["timestamp"]), granularity)) for i in instances]}
            )
            counts = frame.groupby("bucket", sort=True).size()
            buckets = [{"timestamp": int(ts), "count": int(n)} for ts, n in counts.items()]
        points = [(float(b["timestamp"]), float(b["count"])) for b in buckets]
        return MetricSeries(
            raw=buckets,
            points=points,
            metadata={
                "label": f"{METRIC_LABELS['symptom-frequency']} ({granularity})",
                "unit": "occurrences",
                "granularity": granularity,
                "summary": {"total_occurrences": len(instances), "buckets": len(buckets)},
            },
        )

    def _flare_severity_series(self, user_id: str, start: datetime, end: datetime) -> MetricSeries:
        flares = journal.list_flares(user_id)
        lo, hi = to_ms(start), to_ms(end)
        records: List[Dict[str, Any]] = []
        for flare in flares:
            for entry in flare.get("severity_history") or []:
                ts = to_ms(entry["timestamp"])
                if ts < lo or ts > hi:
                    continue
                records.append(
                    {
                        "flare_id": flare["id"],
                        "timestamp": ts,
                        "severity": float(entry["severity"]),
                        "status": entry.get("status"),
                    }
                )
        points = sorted((float(r["timestamp"]), r["severity"]) for r in records)
        average = sum(r["severity"] for r in records) / len(records) if records else 0.0
        return MetricSeries(
            raw=records,
            points=points,
            metadata={
                "label": METRIC_LABELS["flare-severity"],
                "unit": "severity",
                "summary": {
                    "flare_count": len(flares),
                    "samples": len(records),
                    "average_severity": round(average, 2),
                },
            },
        )

    def _medication_adherence_series(self, user_id: str, start: datetime, end: datetime) -> MetricSeries:
        medications = journal.list_medications(user_id, active_only=True)
        events = journal.find_medication_events_by_date_range(user_id, start, end)

        events_by_day: Dict[int, List[Dict[str, Any]]] = {}
        for event in events:
            events_by_day.setdefault(to_ms(start_of_day(event["timestamp"])), []).append(event)

        scheduled_total: Dict[str, int] = {m["id"]: 0 for m in medications}
        days: List[Dict[str, Any]] = []
        day = start_of_day(start)
        while day <= end:
            weekday = sunday_weekday(day)
            scheduled = 0
            for medication in medications:
                occurrences = sum(
                    1 for slot in medication.get("schedule") or [] if weekday in (slot.get("days_of_week") or [])
                )
                scheduled_total[medication["id"]] += occurrences
                scheduled += occurrences

            key = to_ms(day)
            day_events = events_by_day.get(key, [])
            if scheduled > 0 or day_events:
                taken = sum(1 for e in day_events if e["taken"])
                adherence = taken / scheduled * 100 if scheduled > 0 else 0.0
                days.append(
                    {
                        "timestamp": key,
                        "scheduled": scheduled,
                        "taken": taken,
                        "skipped": len(day_events) - taken,
                        "adherence": round(adherence, 2),
                    }
                )
            day += timedelta(days=1)

        per_medication = []
        for medication in medications:
            scheduled = scheduled_total[medication["id"]]
            taken = sum(1 for e in events if e["medication_id"] == medication["id"] and e["taken"])
            per_medication.append(
                {
                    "medication_id": medication["id"],
                    "medication_name": medication["name"],
                    "scheduled": scheduled,
                    "taken": taken,
                    "adherence_rate": round(taken / scheduled * 100, 2) if scheduled > 0 else 0.0,
                }
            )
        total_scheduled = sum(m["scheduled"] for m in per_medication)
        total_taken = sum(m["taken"] for m in per_medication)
        overall = total_taken / total_scheduled * 100 if total_scheduled > 0 else 0.0

        return MetricSeries(
            raw=days,
            points=[(float(d["timestamp"]), float(d["adherence"])) for d in days],
            metadata={
                "label": METRIC_LABELS["medication-adherence"],
                "unit": "percentage",
                "summary": {
                    "overall_adherence": round(overall, 2),
                    "per_medication": per_medication,
                    "total_scheduled": total_scheduled,
                    "total_taken": total_taken,
                },
            },
        )

    # ---- trend ----

    def compute_trend(
        self,
        user_id: str,
        metric: str,
        time_range: str,
        series: Optional[MetricSeries] = None,
    ) -> Optional[Dict[str, float]]:
        cached = self.cache.get_result(user_id, metric, time_range)
        if cached is not None:
            logger.debug("Trend cache hit user=%s metric=%s range=%s", user_id, metric, time_range)
            return cached

        working = series if series is not None else self.fetch_metric_series(user_id, metric, time_range)
        if len(working.points) < 2:
            return None
        try:
            result = compute_linear_regression(working.points).to_dict()
        except ValueError as exc:
            logger.info("Trend not computable for metric=%s: %s", metric, exc)
            return None

        self.cache.save_result(user_id, metric, time_range, result)
        return result

    @staticmethod
    def generate_interpretation(result: Dict[str, float], sample_size: int) -> Dict[str, str]:
        if sample_size < MIN_INTERPRETATION_POINTS:
            return {"direction": "Insufficient data", "confidence": "N/A"}

        slope = float(result["slope"])
        direction = "stable"
        if abs(slope) > STABLE_SLOPE:
            direction = "worsening" if slope > 0 else "improving"

        score = float(result["r_squared"]) * 100
        if score >= 90:
            confidence = "very-high"
        elif score >= 70:
            confidence = "high"
        elif score >= 50:
            confidence = "moderate"
        else:
            confidence = "low"
        return {"direction": direction, "confidence": confidence}


trend_analysis_service = TrendAnalysisService()
