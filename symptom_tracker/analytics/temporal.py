# -*- coding: utf-8 -*-
"""Trigger to symptom time-lag buckets."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..journal import storage as journal
from ..timeutil import HOUR_MS, subtract_time_range, to_ms, utc_now

# (label, lower bound inclusive, upper bound exclusive), in ms
TIME_BUCKETS: List[Tuple[str, int, int]] = [
    ("0-2h", 0, 2 * HOUR_MS),
    ("2-4h", 2 * HOUR_MS, 4 * HOUR_MS),
    ("4-6h", 4 * HOUR_MS, 6 * HOUR_MS),
    ("6-12h", 6 * HOUR_MS, 12 * HOUR_MS),
    ("12-24h", 12 * HOUR_MS, 24 * HOUR_MS),
]
MAX_LAG_MS = 24 * HOUR_MS


@dataclass
class TriggerCorrelation:
    trigger_id: str
    trigger_name: str
    symptom_name: str
    correlation_score: float
    occurrences: int
    avg_severity: float
    confidence: str
    time_lag: str
    bucket_counts: Dict[str, int]

    def to_dict(self) -> dict:
        return {
            "trigger_id": self.trigger_id,
            "trigger_name": self.trigger_name,
            "symptom_name": self.symptom_name,
            "correlation_score": self.correlation_score,
            "occurrences": self.occurrences,
            "avg_severity": self.avg_severity,
            "confidence": self.confidence,
            "time_lag": self.time_lag,
            "bucket_counts": dict(self.bucket_counts),
        }


def bucket_for(delta_ms: int) -> Optional[str]:
    for label, lo, hi in TIME_BUCKETS:
        if lo <= delta_ms < hi:
            return label
    return None


def _confidence(occurrences: int, score: float) -> str:
    if occurrences >= 10 and score > 0.7:
        return "high"
    if occurrences >= 5 and score > 0.5:
        return "medium"
    return "low"


def calculate_temporal_correlation(
    trigger_events: Sequence[dict],
    symptoms: Sequence[dict],
    trigger_names: Optional[Dict[str, str]] = None,
) -> List[TriggerCorrelation]:
    """Counts, for every trigger/symptom pair, symptoms that follow a trigger within 24 h."""
    names = trigger_names or {}
    symptom_points = [(to_ms(s["timestamp"]), s["name"], float(s["severity"])) for s in symptoms]

    counts: Dict[Tuple[str, str], Dict[str, int]] = {}
    severities: Dict[Tuple[str, str], List[float]] = {}
    for event in trigger_events:
        fired = to_ms(event["timestamp"])
        for ts, name, severity in symptom_points:
            delta = ts - fired
            if delta < 0 or delta > MAX_LAG_MS:
                continue
            label = bucket_for(delta)
            if label is None:
                continue
            key = (event["trigger_id"], name)
            bucket_counts = counts.setdefault(key, {b[0]: 0 for b in TIME_BUCKETS})
            bucket_counts[label] += 1
            severities.setdefault(key, []).append(severity)

    results: List[TriggerCorrelation] = []
    for (trigger_id, symptom_name), bucket_counts in counts.items():
        total = sum(bucket_counts.values())
        # ties resolve to the earliest bucket
        dominant = max(TIME_BUCKETS, key=lambda b: bucket_counts[b[0]])[0]
        score = (bucket_counts[dominant] / total + min(total / 10.0, 1.0)) / 2.0
        results.append(
            TriggerCorrelation(
                trigger_id=trigger_id,
                trigger_name=names.get(trigger_id, trigger_id),
                symptom_name=symptom_name,
                correlation_score=score,
                occurrences=total,
                avg_severity=float(np.mean(severities[(trigger_id, symptom_name)])),
                confidence=_confidence(total, score),
                time_lag=dominant,
                bucket_counts=bucket_counts,
            )
        )
    results.sort(key=lambda r: r.correlation_score, reverse=True)
    return results


def temporal_correlations_for_user(
    user_id: str, time_range: str, now: Optional[datetime] = None
) -> List[TriggerCorrelation]:
    end = now or utc_now()
    start = subtract_time_range(end, time_range)
    events = journal.find_trigger_events_by_date_range(user_id, start, end)
    symptoms = journal.find_symptom_instances_by_date_range(user_id, start, end)
    names = {t["id"]: t["name"] for t in journal.list_triggers(user_id)}
    return calculate_temporal_correlation(events, symptoms, names)


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    if len(x) != len(y) or len(x) == 0:
        return 0.0
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    n = float(len(xs))
    numerator = n * float(np.sum(xs * ys)) - float(np.sum(xs)) * float(np.sum(ys))
    spread = (n * float(np.sum(xs * xs)) - float(np.sum(xs)) ** 2) * (
        n * float(np.sum(ys * ys)) - float(np.sum(ys)) ** 2
    )
    if spread <= 0:
        return 0.0
    return numerator / float(np.sqrt(spread))
